import json
import os
import sys
from typing import Any, Dict, Protocol, Optional

from loguru import logger


class PipelineObserver(Protocol):
    def on_run_start(self, name: str, run_id: str): ...

    def on_step_start(self, step_name: str, config: Dict[str, Any], depth: int): ...

    def on_step_end(self, step_name: str, duration: float, state_json: str, depth: int): ...

    def on_artifact(self, label: str, data: Any, depth: int): ...

    def on_run_end(self, duration: float): ...

    def log_summary(self, summary_text: str): ...


def default_log_dir() -> str:
    env_dir = os.environ.get("LINKHAVEN_LOG_DIR")
    if env_dir:
        return env_dir
    # .../linkhaven/core/logging.py -> project root
    core_dir = os.path.dirname(os.path.abspath(__file__))
    project_root = os.path.dirname(os.path.dirname(core_dir))
    return os.path.join(project_root, "logs")


class PipelineLogger:
    def __init__(self, run_id: str, debug: bool = True, log_dir: Optional[str] = None):
        self.debug = debug
        self.run_id = run_id
        self.log_file = None

        # Reset loguru to clear default handlers
        logger.remove()

        if self.debug:
            log_dir = log_dir or default_log_dir()
            os.makedirs(log_dir, exist_ok=True)
            self.log_file = os.path.join(log_dir, f"pipeline_debug_{run_id}.log")

            # Simple format: Time | Message
            fmt = "<green>{time:H:mm:ss}</green>\n{message}\n"

            logger.add(self.log_file, format=fmt, level="DEBUG")
            logger.add(sys.stderr, format=fmt, level="ERROR")

    def _format_json(self, data: Any) -> str:
        try:
            s = json.dumps(data, indent=2, default=str)
            s = s.replace("\\n", "\n      ")
            return s
        except Exception:
            return str(data)

    def _truncate_large(self, obj: Any, max_len: int = 1000, max_items: int = 50) -> Any:
        if isinstance(obj, str):
            if len(obj) > max_len:
                return obj[:max_len] + f"... [truncated {len(obj) - max_len} chars]"
            return obj
        if isinstance(obj, dict):
            return {k: self._truncate_large(v, max_len, max_items) for k, v in obj.items()}
        if isinstance(obj, list):
            head = [self._truncate_large(i, max_len, max_items) for i in obj[:max_items]]
            if len(obj) > max_items:
                head.append(f"... [truncated {len(obj) - max_items} items]")
            return head
        return obj

    def _log(self, text: str, depth: int):
        if not self.debug: return

        step_indent = "   " * depth
        lines = text.splitlines()
        if not lines: return

        final_msg = f"{step_indent}{lines[0]}"
        for line in lines[1:]:
            final_msg += f"\n{step_indent}{line}"

        logger.debug(final_msg)

    # -------------------------------------------------------------------------
    # PUBLIC EVENTS
    # -------------------------------------------------------------------------

    def on_run_start(self, name: str, run_id: str):
        if not self.debug: return
        divider = "=" * 80
        msg = f"{divider}\nLAUNCHING PIPELINE: {name} (ID: {run_id})\n{divider}"
        self._log(msg, 0)

    def on_step_start(self, step_name: str, config: Dict[str, Any], depth: int):
        # 1. Format Config (record payloads are logged with the state instead)
        safe_conf = {k: v for k, v in config.items() if k not in ["debug", "records", "steps"]}
        conf_str = self._format_json(safe_conf)

        # 2. Build Block (Header, Newline, Settings)
        msg = (
            f"START STEP: {step_name}\n"
            f"--- SETTINGS ---\n"
            f"{conf_str}\n"
            f"----------------"
        )
        self._log(msg, depth)

    def on_step_end(self, step_name: str, duration: float, state_json: str, depth: int):
        # 1. Parse & Truncate State
        try:
            state_dict = json.loads(state_json)
            clean_state = self._truncate_large(state_dict)
            clean_json_str = self._format_json(clean_state)
        except Exception:
            clean_json_str = state_json

        divider = "=" * 80

        # 2. Build Block
        msg = (
            f"--- OUTPUT STATE ---\n"
            f"{clean_json_str}\n"
            f"{divider}\n"
            f"FINISHED: {step_name} | DURATION: {duration:.4f}s\n"
            f"{divider}"
        )
        self._log(msg, depth)

    def on_artifact(self, label: str, data: Any, depth: int):
        if isinstance(data, (dict, list)):
            content = self._format_json(self._truncate_large(data))
        else:
            content = str(data)

        msg = f">>> [ARTIFACT] {label}\n{content}"
        self._log(msg, depth=depth)

    def on_run_end(self, duration: float):
        divider = "=" * 80
        msg = f"{divider}\nTOTAL PIPELINE TIME: {duration:.4f}s\n{divider}"
        self._log(msg, 0)

    def log_summary(self, summary_text: str):
        if not self.debug or not self.log_file: return
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write("\n" + summary_text + "\n")
        except OSError as e:
            print(f"Logging error: {e}")
