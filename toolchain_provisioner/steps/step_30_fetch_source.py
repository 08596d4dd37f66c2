from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisionCtx
from ..errors import TRANSIENT_ERRORS
from ..lib.retry import RetryPolicy
from ..provision_config import RepositoryRef

logger = logging.getLogger(__name__)


class FetchSourceStep:
    """Clone one repository to its deterministic path under the work dir."""

    def __init__(self, ctx: ProvisionCtx, repo: RepositoryRef) -> None:
        self.ctx = ctx
        self.repo = repo
        self.step_id = f"30_fetch:{repo.name}"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        repo = self.repo
        attempts: list[dict[str, Any]] = []

        def on_retry(e: Exception, attempt: int, delay: float) -> None:
            attempts.append({"attempt": attempt, "error": type(e).__name__, "delay": round(delay, 2)})

        policy = RetryPolicy(self.ctx.cfg.fetch_retry, sleep=self.ctx.sleep)
        commit = policy.execute(
            lambda: self.ctx.vcs.clone(repo.url, repo.path, ref=repo.ref),
            retryable=lambda e: isinstance(e, TRANSIENT_ERRORS),
            on_retry=on_retry,
        )

        state.setdefault("sources", {})[repo.name] = {
            "url": repo.url,
            "path": repo.path,
            "ref": repo.ref,
            "commit": commit or None,
            "retries": attempts,
        }
        if not repo.ref:
            logger.warning("%s is not pinned; fetched the default branch (%s)", repo.name, commit or "unknown")
        return state
