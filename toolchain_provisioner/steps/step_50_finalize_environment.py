from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisionCtx
from ..lib.environment import render_profile, write_profile

logger = logging.getLogger(__name__)


class FinalizeEnvironmentStep:
    step_id = "50_finalize_environment"

    def __init__(self, ctx: ProvisionCtx) -> None:
        self.ctx = ctx

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = self.ctx.cfg
        env = self.ctx.environment

        original = env.get("PATH")
        appended = env.append("PATH", cfg.path_append)

        profile = self.ctx.target.host_path(f"/etc/profile.d/{cfg.profile_name}.sh")
        write_profile(profile, render_profile({"PATH": [cfg.path_append]}), dry_run=self.ctx.dry_run)

        state["environment"] = {
            "original": {"PATH": original},
            "variables": env.as_dict(),
            "appended": {"PATH": [cfg.path_append]} if appended else {},
            "profile": str(profile),
            "entrypoint": list(cfg.entrypoint),
            "root": self.ctx.target.root,
        }
        logger.info("PATH finalized: %s", env.get("PATH"))
        logger.info("Entry command: %s", " ".join(cfg.entrypoint))
        return state
