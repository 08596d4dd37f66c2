from __future__ import annotations

from typing import Any, Dict, List

import pytest

from toolchain_provisioner.errors import ConfigError
from toolchain_provisioner.pipeline import run_pipeline
from toolchain_provisioner.state_store import ensure_defaults


class RecordingStep:
    def __init__(self, step_id: str, log: List[str], fail: bool = False) -> None:
        self.step_id = step_id
        self.log = log
        self.fail = fail

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        self.log.append(self.step_id)
        if self.fail:
            raise RuntimeError(f"{self.step_id} broke")
        return state


def _steps(log: List[str], fail_at: str | None = None) -> list[RecordingStep]:
    return [RecordingStep(s, log, fail=(s == fail_at)) for s in ("10_a", "20_b", "30_c")]


def test_runs_every_step_in_order() -> None:
    log: List[str] = []
    result = run_pipeline(state=ensure_defaults({}), steps=_steps(log))

    assert log == ["10_a", "20_b", "30_c"]
    assert result.ran_steps == log
    assert result.state["execution"]["status"] == "completed"
    assert result.state["execution"]["current_step"] is None


def test_first_failure_aborts_and_is_recorded() -> None:
    log: List[str] = []
    state = ensure_defaults({})

    with pytest.raises(RuntimeError, match="20_b broke"):
        run_pipeline(state=state, steps=_steps(log, fail_at="20_b"))

    assert log == ["10_a", "20_b"]
    exe = state["execution"]
    assert exe["status"] == "failed"
    assert exe["failed_step"] == "20_b"
    assert exe["completed_steps"] == ["10_a"]
    assert exe["errors"] == [{"step": "20_b", "type": "RuntimeError", "error": "20_b broke"}]


def test_completed_steps_are_skipped_unless_forced() -> None:
    log: List[str] = []
    state = ensure_defaults({})
    state["execution"]["completed_steps"] = ["10_a"]

    result = run_pipeline(state=state, steps=_steps(log))
    assert result.skipped_steps == ["10_a"]
    assert log == ["20_b", "30_c"]

    log.clear()
    result = run_pipeline(state=state, steps=_steps(log), force=True)
    assert log == ["10_a", "20_b", "30_c"]


def test_start_at_and_stop_after() -> None:
    log: List[str] = []
    result = run_pipeline(state=ensure_defaults({}), steps=_steps(log), start_at="20_b", stop_after="20_b")

    assert log == ["20_b"]
    assert result.state["execution"]["status"] == "stopped"


def test_unknown_step_ids_are_rejected() -> None:
    with pytest.raises(ConfigError):
        run_pipeline(state={}, steps=_steps([]), start_at="99_nope")
    with pytest.raises(ConfigError):
        run_pipeline(state={}, steps=_steps([]), stop_after="99_nope")
