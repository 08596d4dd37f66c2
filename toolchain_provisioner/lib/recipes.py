from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from ..errors import ExternalBuildError
from .command import Runner, run_cmd
from .target import Target

logger = logging.getLogger(__name__)

CONFIGURE = "configure"
BUILD_AND_INSTALL = "build_and_install"


@dataclass(frozen=True)
class BuildResult:
    step: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class BuildRecipe(Protocol):
    """A fetched repository's own build entry points, treated as opaque."""

    name: str

    def configure(self) -> BuildResult:
        ...

    def build_and_install(self) -> BuildResult:
        ...


class ShellBuildRecipe:
    """Runs the repository's configure script, then its install target."""

    def __init__(
        self,
        name: str,
        workdir: str,
        target: Target,
        *,
        configure_cmd: Sequence[str] = ("./configure",),
        install_cmd: Sequence[str] = ("make", "install"),
        runner: Runner = run_cmd,
    ) -> None:
        self.name = name
        self.workdir = workdir
        self.target = target
        self.configure_cmd = list(configure_cmd)
        self.install_cmd = list(install_cmd)
        self.runner = runner

    def _run(self, step: str, argv: Sequence[str]) -> BuildResult:
        if not argv:
            logger.info("[%s] no %s command; skipping", self.name, step)
            return BuildResult(step=step, exit_code=0)
        r = self.target.run(argv, cwd=self.workdir, check=False, runner=self.runner)
        if r.stderr and not r.ok:
            logger.error("[%s] %s stderr:\n%s", self.name, step, r.stderr.strip())
        return BuildResult(step=step, exit_code=r.returncode)

    def configure(self) -> BuildResult:
        return self._run(CONFIGURE, self.configure_cmd)

    def build_and_install(self) -> BuildResult:
        return self._run(BUILD_AND_INSTALL, self.install_cmd)


def run_recipe(recipe: BuildRecipe) -> list[BuildResult]:
    """configure, then build_and_install; stop at the first non-zero exit."""

    results: list[BuildResult] = []
    for call in (recipe.configure, recipe.build_and_install):
        result = call()
        results.append(result)
        if not result.ok:
            raise ExternalBuildError(recipe.name, result.step, result.exit_code)
        logger.info("[%s] %s ok", recipe.name, result.step)
    return results
