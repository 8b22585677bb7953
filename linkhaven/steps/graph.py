"""
Knowledge graph steps.

- BuildGraphStep:
  Derives record/tag/source nodes and membership/co-occurrence edges from
  state.records into state.graph.
- SimilarityEdgesStep:
  Adds content_similarity edges between records whose SimHash fingerprints
  are within `threshold` bits (default 10).
- LayoutGraphStep:
  Assigns 2D positions with the Barnes-Hut layout (or the exact layout
  when `algorithm` is "naive").
- GraphInsightsStep:
  Stores orphan record ids and bridge tag ids.

config keys: threshold, width, height, iterations, margin, algorithm.
"""

from ..core.base import PipelineStep
from ..core.models import PipelineState
from ..graph.builder import add_similarity_edges, build_graph, find_bridges, find_orphans, graph_stats
from ..graph.layout import DEFAULT_ITERATIONS, DEFAULT_MARGIN, iter_layout, naive_layout


class BuildGraphStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        state.graph = build_graph(state.records)
        self.log_artifact("Graph stats", graph_stats(state.graph))
        print(
            f"[{self.__class__.__name__}] Built graph with {len(state.graph.nodes)} nodes "
            f"and {len(state.graph.edges)} edges."
        )
        return state


class SimilarityEdgesStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        if state.graph is None:
            state.graph = build_graph(state.records)

        before = len(state.graph.edges)
        state.graph = add_similarity_edges(
            state.graph,
            state.records,
            threshold=self.config.get("threshold", 10),
        )
        print(f"[{self.__class__.__name__}] Added {len(state.graph.edges) - before} similarity edges.")
        return state


class LayoutGraphStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        if state.graph is None:
            state.graph = build_graph(state.records)

        width = float(self.config.get("width", 1200))
        height = float(self.config.get("height", 800))
        iterations = int(self.config.get("iterations", DEFAULT_ITERATIONS))
        algorithm = self.config.get("algorithm", "barnes_hut")

        if algorithm == "naive":
            state.graph = naive_layout(
                state.graph, width, height, iterations,
                margin=float(self.config.get("margin", 50.0)),
            )
            print(f"[{self.__class__.__name__}] Exact layout finished ({iterations} iterations).")
            return state

        out = []
        progress = None
        for progress in iter_layout(
            state.graph, width, height, iterations,
            margin=float(self.config.get("margin", DEFAULT_MARGIN)),
            result=out,
        ):
            pass
        state.graph = out[0] if out else state.graph

        if progress is not None:
            self.log_artifact("Layout", {
                "iterations": progress.iteration + 1,
                "movement": round(progress.movement, 3),
                "converged": progress.converged,
            })
        print(f"[{self.__class__.__name__}] Laid out {len(state.graph.nodes)} nodes.")
        return state


class GraphInsightsStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        if state.graph is None:
            state.graph = build_graph(state.records)

        state.orphans = [n.id for n in find_orphans(state.graph)]
        state.bridges = [n.id for n in find_bridges(state.graph)]
        print(
            f"[{self.__class__.__name__}] {len(state.orphans)} orphans, "
            f"{len(state.bridges)} bridge tags."
        )
        return state
