"""
Force-directed graph layout.

Physical model, per iteration:
- repulsion between every pair of nodes (inverse square), approximated with
  a Barnes-Hut quadtree in layout()/iter_layout() and exact in naive_layout()
- spring attraction along edges: (d - k) * attraction * weight
- gravity towards the canvas centre
- velocity damping and a cooling temperature

Both layouts are deterministic: nodes without a position get an
index-seeded placement, nodes with a position are refined from where they
are. Coordinates are clamped to [margin, dimension - margin] every
iteration and non-finite values are never written back.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from loguru import logger

from ..core.models import KnowledgeGraph
from .quadtree import build_quadtree

DEFAULT_ITERATIONS = 80
DEFAULT_MARGIN = 30.0
LARGE_GRAPH = 100
DAMPING = 0.85
CONVERGENCE_PER_NODE = 0.5


@dataclass
class LayoutParams:
    k: float
    gravity: float
    attraction: float
    theta: float

    @property
    def repulsion(self) -> float:
        return self.k * self.k

    @classmethod
    def for_size(cls, node_count: int, width: float, height: float) -> "LayoutParams":
        large = node_count > LARGE_GRAPH
        return cls(
            k=math.sqrt((width * height) / node_count) * (0.6 if large else 0.5),
            gravity=0.12 if large else 0.08,
            attraction=0.04 if large else 0.06,
            theta=0.7 if large else 0.5,
        )


@dataclass
class LayoutProgress:
    iteration: int
    movement: float
    temperature: float
    converged: bool = False


class _Body:
    __slots__ = ("x", "y", "vx", "vy", "mass")

    def __init__(self, x: float, y: float, mass: float):
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0
        self.mass = mass


def initial_position(index: int, width: float, height: float):
    x = width * 0.2 + (width * 0.6) * ((index * 7919) % 1000) / 1000
    y = height * 0.2 + (height * 0.6) * ((index * 7907) % 1000) / 1000
    return x, y


def _init_bodies(graph: KnowledgeGraph, width: float, height: float) -> List[_Body]:
    bodies = []
    for idx, node in enumerate(graph.nodes):
        x, y = initial_position(idx, width, height)
        if node.x is not None and math.isfinite(node.x):
            x = node.x
        if node.y is not None and math.isfinite(node.y):
            y = node.y
        mass = node.size if node.size > 0 else 1.0
        bodies.append(_Body(x, y, mass))
    return bodies


def _apply_springs(
    graph: KnowledgeGraph,
    bodies: List[_Body],
    index: Dict[str, int],
    k: float,
    attraction: float,
    temperature: float,
) -> None:
    for edge in graph.edges:
        si = index.get(edge.source)
        ti = index.get(edge.target)
        if si is None or ti is None or si == ti:
            continue
        source = bodies[si]
        target = bodies[ti]

        dx = target.x - source.x
        dy = target.y - source.y
        dist = max(1.0, math.sqrt(dx * dx + dy * dy))
        force = (dist - k) * attraction * edge.weight * temperature

        fx = (dx / dist) * force
        fy = (dy / dist) * force
        source.vx += fx
        source.vy += fy
        target.vx -= fx
        target.vy -= fy


def _apply_gravity(bodies: List[_Body], width: float, height: float, gravity: float, temperature: float) -> None:
    cx = width / 2
    cy = height / 2
    for body in bodies:
        body.vx += (cx - body.x) * gravity * temperature
        body.vy += (cy - body.y) * gravity * temperature


def _integrate(bodies: List[_Body], width: float, height: float, margin: float, damping: float) -> float:
    movement = 0.0
    for body in bodies:
        if not (math.isfinite(body.vx) and math.isfinite(body.vy)):
            body.vx = body.vy = 0.0
        old_x, old_y = body.x, body.y
        body.x = max(margin, min(width - margin, old_x + body.vx))
        body.y = max(margin, min(height - margin, old_y + body.vy))
        movement += abs(body.x - old_x) + abs(body.y - old_y)
        body.vx *= damping
        body.vy *= damping
    return movement


def _positioned(graph: KnowledgeGraph, bodies: List[_Body]) -> KnowledgeGraph:
    nodes = [
        node.model_copy(update={"x": body.x, "y": body.y})
        for node, body in zip(graph.nodes, bodies)
    ]
    return KnowledgeGraph(nodes=nodes, edges=list(graph.edges))


def iter_layout(
    graph: KnowledgeGraph,
    width: float,
    height: float,
    iterations: int = DEFAULT_ITERATIONS,
    margin: float = DEFAULT_MARGIN,
    result: Optional[List[KnowledgeGraph]] = None,
) -> Iterator[LayoutProgress]:
    """Barnes-Hut layout as a generator, one LayoutProgress per iteration.

    Lets a caller interleave other work between iterations. The positioned
    graph is appended to ``result`` once the generator is exhausted.
    """
    if not graph.nodes:
        if result is not None:
            result.append(graph)
        return

    bodies = _init_bodies(graph, width, height)
    index = {node.id: i for i, node in enumerate(graph.nodes)}
    params = LayoutParams.for_size(len(bodies), width, height)

    prev_movement = math.inf
    threshold = CONVERGENCE_PER_NODE * len(bodies)

    for iteration in range(iterations):
        temperature = (1 - iteration / iterations) ** 1.5

        # all repulsion is read from this iteration's tree before any move
        tree = build_quadtree([(b.x, b.y, b.mass) for b in bodies], width, height)
        forces = [tree.force_on(b.x, b.y, params.theta, params.repulsion) for b in bodies]
        for body, (fx, fy) in zip(bodies, forces):
            body.vx += fx * temperature
            body.vy += fy * temperature

        _apply_springs(graph, bodies, index, params.k, params.attraction, temperature)
        _apply_gravity(bodies, width, height, params.gravity, temperature)
        movement = _integrate(bodies, width, height, margin, DAMPING)

        converged = movement < threshold and movement >= prev_movement * 0.99
        yield LayoutProgress(iteration, movement, temperature, converged)
        if converged:
            logger.debug(f"Layout converged after {iteration + 1} iterations (movement={movement:.2f})")
            break
        prev_movement = movement

    if result is not None:
        result.append(_positioned(graph, bodies))


def layout(
    graph: KnowledgeGraph,
    width: float,
    height: float,
    iterations: int = DEFAULT_ITERATIONS,
    margin: float = DEFAULT_MARGIN,
) -> KnowledgeGraph:
    """Barnes-Hut force layout, O(N log N) per iteration."""
    if not graph.nodes:
        return graph
    out: List[KnowledgeGraph] = []
    for _ in iter_layout(graph, width, height, iterations, margin, result=out):
        pass
    return out[0]


def naive_layout(
    graph: KnowledgeGraph,
    width: float,
    height: float,
    iterations: int = 100,
    margin: float = 50.0,
) -> KnowledgeGraph:
    """Exact O(N^2) force layout. Fine for small graphs, used as a reference."""
    if not graph.nodes:
        return graph

    bodies = _init_bodies(graph, width, height)
    index = {node.id: i for i, node in enumerate(graph.nodes)}

    k = math.sqrt((width * height) / len(bodies)) * 0.5
    repulsion = k * k
    gravity = 0.1
    attraction = 0.1

    for iteration in range(iterations):
        temperature = 1 - iteration / iterations

        for i in range(len(bodies)):
            a = bodies[i]
            for j in range(i + 1, len(bodies)):
                b = bodies[j]
                dx = b.x - a.x
                dy = b.y - a.y
                dist = max(1.0, math.sqrt(dx * dx + dy * dy))
                force = repulsion / (dist * dist)
                fx = (dx / dist) * force * temperature
                fy = (dy / dist) * force * temperature
                a.vx -= fx
                a.vy -= fy
                b.vx += fx
                b.vy += fy

        _apply_springs(graph, bodies, index, k, attraction, temperature)
        _apply_gravity(bodies, width, height, gravity, temperature)
        _integrate(bodies, width, height, margin, 0.8)

    return _positioned(graph, bodies)
