from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisionCtx
from ..lib.pkg import dedup
from ..lib.target import mount_chroot_binds, umount_chroot_binds

logger = logging.getLogger(__name__)


class InstallPackagesStep:
    step_id = "20_install_packages"

    def __init__(self, ctx: ProvisionCtx) -> None:
        self.ctx = ctx

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        packages = dedup(self.ctx.cfg.packages)
        state.setdefault("execution", {}).setdefault("plan", {})["packages"] = packages

        mount_chroot_binds(self.ctx.target, runner=self.ctx.runner)
        try:
            # Stale metadata is the usual cause of "Unable to locate package".
            self.ctx.packages.refresh_index()
            self.ctx.packages.install(packages)
        finally:
            umount_chroot_binds(self.ctx.target, runner=self.ctx.runner)

        logger.info("Package set installed: %s", ", ".join(packages) or "(none)")
        return state
