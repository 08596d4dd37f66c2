from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import ConfigError
from .state_store import is_step_completed, mark_step_completed, mark_step_failed

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single provisioning step."""

    step_id: str

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]


def run_pipeline(
    *,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
) -> PipelineResult:
    """Run steps strictly in order; the first failure aborts the sequence.

    Nothing is rolled back. The failing step and its error are recorded in
    state before the exception propagates.
    """

    ids = [s.step_id for s in steps]
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in ids:
            raise ConfigError(f"Unknown step for {name}: {value} (known: {', '.join(ids)})")

    ran: List[str] = []
    skipped: List[str] = []

    exe = state.setdefault("execution", {})
    exe["status"] = "running"
    started = start_at is None

    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            else:
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id

        if (not force) and is_step_completed(state, step.step_id):
            logger.info("Skipping step %s (already completed)", step.step_id)
            skipped.append(step.step_id)
        else:
            logger.info("Running step %s", step.step_id)
            try:
                state = step.run(state)
            except Exception as e:
                mark_step_failed(state, step.step_id, e)
                logger.error("Step %s failed: %s: %s", step.step_id, type(e).__name__, e)
                raise
            mark_step_completed(state, step.step_id)
            ran.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            exe = state.setdefault("execution", {})
            exe["current_step"] = None
            exe["status"] = "stopped"
            return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)

    exe = state.setdefault("execution", {})
    exe["current_step"] = None
    exe["status"] = "completed"
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
