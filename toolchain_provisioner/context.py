from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from .lib.command import Runner, run_cmd
from .lib.environment import EnvironmentStore
from .lib.pkg import AptPackageManager, PackageManager
from .lib.recipes import BuildRecipe, ShellBuildRecipe
from .lib.target import Target
from .lib.vcs import GitClient, VersionControl
from .provision_config import ProvisionConfig, RepositoryRef


@dataclass
class ProvisionCtx:
    """Everything a step needs besides the state dict.

    Collaborators are plain attributes so tests can swap in fakes.
    """

    cfg: ProvisionConfig
    target: Target
    packages: PackageManager
    vcs: VersionControl
    recipe_factory: Callable[[RepositoryRef], BuildRecipe]
    environment: EnvironmentStore
    runner: Runner = run_cmd
    sleep: Callable[[float], None] = time.sleep
    recipes: dict[str, BuildRecipe] = field(default_factory=dict)

    @property
    def dry_run(self) -> bool:
        return self.target.dry_run

    def recipe_for(self, repo: RepositoryRef) -> BuildRecipe:
        if repo.name not in self.recipes:
            self.recipes[repo.name] = self.recipe_factory(repo)
        return self.recipes[repo.name]


def build_ctx(
    cfg: ProvisionConfig,
    *,
    dry_run: bool = False,
    environ: Mapping[str, str] | None = None,
    runner: Runner = run_cmd,
) -> ProvisionCtx:
    target = Target(root=cfg.target_root, dry_run=dry_run)

    def recipe_factory(repo: RepositoryRef) -> BuildRecipe:
        return ShellBuildRecipe(
            repo.name,
            repo.path,
            target,
            configure_cmd=repo.configure_cmd,
            install_cmd=repo.install_cmd,
            runner=runner,
        )

    return ProvisionCtx(
        cfg=cfg,
        target=target,
        packages=AptPackageManager(target, with_recommends=cfg.with_recommends, runner=runner),
        vcs=GitClient(target, depth=cfg.fetch_depth, timeout=cfg.fetch_timeout, runner=runner),
        recipe_factory=recipe_factory,
        environment=EnvironmentStore.capture(environ=environ),
        runner=runner,
    )
