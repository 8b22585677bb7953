from typing import Any, Dict, List, Set

from .factory import StepFactory

# setting name -> (min, max); None means unbounded on that side
_NUMERIC_RANGES = {
    "url_threshold": (0, 100),
    "title_threshold": (0, 100),
    "threshold": (0, 64),
    "iterations": (1, None),
    "width": (1, None),
    "height": (1, None),
    "margin": (0, None),
    "stale_days": (0, None),
    "batch_size": (1, None),
}


def validate_pipeline_config(config: Dict[str, Any]):
    """
    Validates a pipeline config before the orchestrator is built.
    - every 'type' must be registered with the StepFactory (or be 'module')
    - numeric settings must fall in their documented ranges
    - a layout step needs a canvas larger than twice its margin
    """
    print("--- Validating Pipeline Config ---")

    step_types = _collect_step_types(config.get("steps", []))
    errors = []

    # 1. Step types
    for step_type in sorted(step_types):
        if StepFactory.is_registered(step_type):
            print(f"    [OK] Step: {step_type}")
        else:
            print(f"    [ERROR] Unknown step type: {step_type}")
            errors.append(f"Unknown step type: {step_type}")

    # 2. Settings
    errors.extend(_validate_settings_recursive(config.get("steps", [])))

    # 3. Final Verdict
    if errors:
        print("\n[CRITICAL] CONFIG VALIDATION FAILED")
        for err in errors:
            print(f"   - {err}")
        print("-" * 40)
        raise ValueError("Pipeline cannot start due to invalid configuration.")

    print("[OK] Config validated successfully.")


def _collect_step_types(steps: List[Dict[str, Any]]) -> Set[str]:
    """Recursively finds all step types, including those nested in modules."""
    types = set()
    for step_def in steps:
        step_type = step_def.get("type")
        if step_type:
            types.add(step_type)
        if step_type == "module":
            types.update(_collect_step_types(step_def.get("settings", {}).get("steps", [])))
    return types


def _validate_settings_recursive(steps: List[Dict[str, Any]]) -> List[str]:
    errors = []
    for step_def in steps:
        step_type = step_def.get("type", "?")
        settings = step_def.get("settings", {}) or {}

        if step_type == "module":
            errors.extend(_validate_settings_recursive(settings.get("steps", [])))
            continue

        for key, (low, high) in _NUMERIC_RANGES.items():
            if key not in settings:
                continue
            value = settings[key]
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                errors.append(f"{step_type}.{key} must be a number, got {value!r}")
                continue
            if (low is not None and value < low) or (high is not None and value > high):
                errors.append(f"{step_type}.{key}={value} outside [{low}, {high}]")

        if step_type == "layout_graph":
            margin = settings.get("margin", 30)
            for dim in ("width", "height"):
                size = settings.get(dim)
                if isinstance(size, (int, float)) and isinstance(margin, (int, float)) and size <= 2 * margin:
                    errors.append(f"layout_graph.{dim}={size} leaves no room inside margin {margin}")

        if step_type == "load_records" and not settings.get("path"):
            errors.append("load_records requires a 'path' setting")

    return errors
