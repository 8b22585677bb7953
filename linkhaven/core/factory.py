from typing import Dict, Any

# Import your concrete steps here (BUT NOT PipelineModule)
from ..steps.deduplicate import (
    FindDuplicatesStep,
    PlanMergesStep,
    CleanupRecommendationsStep,
)
from ..steps.graph import (
    BuildGraphStep,
    SimilarityEdgesStep,
    LayoutGraphStep,
    GraphInsightsStep,
)
from ..steps.records import LoadRecordsStep, MockRecordLoader, FingerprintRecordsStep


class StepFactory:
    # Do NOT put "module" in here to avoid circular imports
    _registry = {
        "load_records": LoadRecordsStep,
        "mock_records": MockRecordLoader,
        "fingerprint_records": FingerprintRecordsStep,
        "find_duplicates": FindDuplicatesStep,
        "plan_merges": PlanMergesStep,
        "cleanup_recommendations": CleanupRecommendationsStep,
        "build_graph": BuildGraphStep,
        "similarity_edges": SimilarityEdgesStep,
        "layout_graph": LayoutGraphStep,
        "graph_insights": GraphInsightsStep,
    }

    @classmethod
    def register(cls, name: str, step_class):
        cls._registry[name] = step_class

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name == "module" or name in cls._registry

    @classmethod
    def create(cls, step_def: Dict[str, Any]):
        step_type = step_def["type"]
        step_config = step_def.get("settings", {})

        if step_type == "module":
            # Import locally to prevent circular dependency
            from .base import PipelineModule
            return PipelineModule(step_config)

        step_class = cls._registry.get(step_type)
        if not step_class:
            raise ValueError(f"Step type '{step_type}' not registered.")

        return step_class(step_config)
