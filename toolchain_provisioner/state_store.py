from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"yaml", "yml"}:
        return "yaml"
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if _detect_format(p) == "yaml":
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "yaml":
        p.write_text(yaml.safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with defaults (without overriding recorded values)."""

    state.setdefault("version", STATE_VERSION)
    state.setdefault("config", {})
    state.setdefault("image", {})
    state.setdefault("sources", {})
    state.setdefault("builds", {})
    state.setdefault("environment", {})
    state.setdefault("execution", {})

    exe = state["execution"]
    exe.setdefault("status", "pending")
    exe.setdefault("current_step", None)
    exe.setdefault("completed_steps", [])
    exe.setdefault("failed_step", None)
    exe.setdefault("errors", [])

    return state


def reset_execution(state: Dict[str, Any]) -> None:
    """Start a fresh run: forget what earlier runs completed and produced."""

    for key in ("image", "sources", "builds", "environment", "verification"):
        state.pop(key, None)
    ensure_defaults(state)
    exe = state["execution"]
    exe["status"] = "pending"
    exe["current_step"] = None
    exe["completed_steps"] = []
    exe["failed_step"] = None


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    exe = state.setdefault("execution", {})
    completed = exe.setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)


def is_step_completed(state: Dict[str, Any], step_id: str) -> bool:
    exe = state.get("execution") or {}
    completed = exe.get("completed_steps") or []
    return step_id in completed


def mark_step_failed(state: Dict[str, Any], step_id: Optional[str], error: BaseException) -> None:
    exe = state.setdefault("execution", {})
    exe["status"] = "failed"
    exe["failed_step"] = step_id
    exe.setdefault("errors", []).append(
        {
            "step": step_id,
            "type": type(error).__name__,
            "error": str(error),
        }
    )
