from __future__ import annotations

import logging
import os
import shutil
from typing import Any, Dict

from ..context import ProvisionCtx
from ..errors import VerificationError

logger = logging.getLogger(__name__)


class VerifyToolchainStep:
    """Every expected tool must resolve by name on the finalized PATH."""

    step_id = "60_verify_toolchain"

    def __init__(self, ctx: ProvisionCtx) -> None:
        self.ctx = ctx

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        binaries = self.ctx.cfg.verify_binaries
        if self.ctx.dry_run:
            logger.info("Dry run: not verifying %s", ", ".join(binaries) or "(nothing)")
            return state

        target = self.ctx.target
        # A resumed run skips the finalizer, so its recorded PATH wins over a fresh capture.
        recorded = ((state.get("environment") or {}).get("variables") or {}).get("PATH")
        if recorded is not None:
            entries = [e for e in recorded.split(self.ctx.environment.sep) if e]
        else:
            entries = self.ctx.environment.entries("PATH")
        search = os.pathsep.join(str(target.host_path(e)) for e in entries)

        resolved: Dict[str, str] = {}
        missing: list[str] = []
        for name in binaries:
            found = shutil.which(name, path=search)
            if found:
                resolved[name] = found
            else:
                missing.append(name)

        state.setdefault("verification", {})["resolved"] = resolved
        if missing:
            raise VerificationError(f"Not found on finalized PATH: {', '.join(missing)}")

        logger.info("Toolchain verified: %s", ", ".join(f"{k}={v}" for k, v in resolved.items()))
        return state
