"""
Duplicate detection steps.

- FindDuplicatesStep:
  Runs the three-stage duplicate pipeline (exact URL, same-domain edit
  distance, SimHash/LSH) over state.records and stores the
  DeduplicationResult in state.duplicates.
- PlanMergesStep:
  Turns state.duplicates into MergePlans (keep the oldest record of each
  group) for the merge collaborator.
- CleanupRecommendationsStep:
  Combines duplicates, stale records and dead links into a single
  CleanupRecommendation.

config keys: url_threshold, title_threshold, stale_days, now_ms.
"""

from ..core.base import PipelineStep
from ..core.models import PipelineState
from ..similarity.dedup import find_duplicates, get_cleanup_recommendations, plan_merges


class FindDuplicatesStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        if not state.records:
            print(f"[{self.__class__.__name__}] Warning: No records found in state.")

        result = find_duplicates(
            state.records,
            url_threshold=self.config.get("url_threshold", 85),
            title_threshold=self.config.get("title_threshold", 80),
        )
        state.duplicates = result

        by_reason = {}
        for group in result.groups:
            by_reason[group.reason.value] = by_reason.get(group.reason.value, 0) + 1
        self.log_artifact("Duplicate groups by reason", by_reason)

        print(
            f"[{self.__class__.__name__}] Found {len(result.groups)} groups "
            f"({result.total_duplicates} records, {result.potential_savings} removable)."
        )
        return state


class PlanMergesStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        if state.duplicates is None:
            state.duplicates = find_duplicates(state.records)

        state.merge_plans = plan_merges(state.duplicates, state.records)
        print(f"[{self.__class__.__name__}] Planned {len(state.merge_plans)} merges.")
        return state


class CleanupRecommendationsStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        cleanup = get_cleanup_recommendations(
            state.records,
            stale_days=self.config.get("stale_days", 365),
            now_ms=self.config.get("now_ms"),
        )
        state.cleanup = cleanup
        if state.duplicates is None:
            state.duplicates = cleanup.duplicates

        self.log_artifact("Cleanup potential", {
            "duplicates": cleanup.duplicates.potential_savings,
            "stale": len(cleanup.stale_records),
            "broken": len(cleanup.broken_links),
            "total": cleanup.total_cleanup_potential,
        })
        print(f"[{self.__class__.__name__}] Cleanup potential: {cleanup.total_cleanup_potential} records.")
        return state
