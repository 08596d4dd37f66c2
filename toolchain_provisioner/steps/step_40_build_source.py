from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Sequence

from ..context import ProvisionCtx
from ..lib.recipes import run_recipe
from ..lib.target import mount_chroot_binds, umount_chroot_binds
from ..provision_config import RepositoryRef

logger = logging.getLogger(__name__)


def _record(state: Dict[str, Any], repo: RepositoryRef, status: str, **extra: Any) -> None:
    state.setdefault("builds", {})[repo.name] = {"status": status, "path": repo.path, **extra}


class BuildSourceStep:
    """configure + build_and_install for a single fetched repository."""

    def __init__(self, ctx: ProvisionCtx, repo: RepositoryRef) -> None:
        self.ctx = ctx
        self.repo = repo
        self.step_id = f"40_build:{repo.name}"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        recipe = self.ctx.recipe_for(self.repo)
        mount_chroot_binds(self.ctx.target, runner=self.ctx.runner)
        try:
            run_recipe(recipe)
        except Exception as e:
            _record(state, self.repo, "failed", error=str(e))
            raise
        finally:
            umount_chroot_binds(self.ctx.target, runner=self.ctx.runner)
        _record(state, self.repo, "installed")
        return state


class BuildSourcesStep:
    """Build several independent repositories concurrently.

    Each repository touches only its own working copy. All builds are
    allowed to settle; the first failure (in repository order) is re-raised.
    """

    step_id = "40_build_sources"

    def __init__(self, ctx: ProvisionCtx, repos: Sequence[RepositoryRef]) -> None:
        self.ctx = ctx
        self.repos = list(repos)

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        recipes = [(repo, self.ctx.recipe_for(repo)) for repo in self.repos]
        workers = max(1, min(self.ctx.cfg.build_workers, len(recipes)))

        mount_chroot_binds(self.ctx.target, runner=self.ctx.runner)
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as pool:
                futures = [(repo, pool.submit(run_recipe, recipe)) for repo, recipe in recipes]
                first_error: BaseException | None = None
                for repo, fut in futures:
                    err = fut.exception()
                    if err is None:
                        _record(state, repo, "installed")
                        continue
                    _record(state, repo, "failed", error=str(err))
                    logger.error("Build of %s failed: %s", repo.name, err)
                    if first_error is None:
                        first_error = err
        finally:
            umount_chroot_binds(self.ctx.target, runner=self.ctx.runner)

        if first_error is not None:
            raise first_error
        return state
