from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisionCtx
from ..lib.images import ensure_base_image, resolve_image

logger = logging.getLogger(__name__)


class SelectBaseImageStep:
    step_id = "10_select_base_image"

    def __init__(self, ctx: ProvisionCtx) -> None:
        self.ctx = ctx

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = self.ctx.cfg
        img = resolve_image(cfg.base_image)

        origin = ensure_base_image(
            img,
            self.ctx.target,
            mirror=cfg.mirror,
            arch=cfg.arch,
            runner=self.ctx.runner,
        )

        state["image"] = {
            "ref": img.ref,
            "suite": img.suite,
            "root": self.ctx.target.root,
            "origin": origin,
        }
        logger.info("Base image %s ready at %s (%s)", img.ref, self.ctx.target.root, origin)
        return state
