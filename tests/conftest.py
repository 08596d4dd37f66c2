from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from toolchain_provisioner.context import ProvisionCtx
from toolchain_provisioner.errors import PathAlreadyExistsError
from toolchain_provisioner.lib.command import CmdResult
from toolchain_provisioner.lib.environment import EnvironmentStore
from toolchain_provisioner.lib.recipes import BuildResult
from toolchain_provisioner.lib.target import Target
from toolchain_provisioner.provision_config import RepositoryRef, parse_config

ORIGINAL_PATH = "/usr/local/bin:/usr/bin:/bin"


class FakeRunner:
    """Records argv lists and answers from a queue of canned results."""

    def __init__(self, results: Optional[List[CmdResult]] = None) -> None:
        self.calls: List[List[str]] = []
        self.kwargs: List[Dict[str, Any]] = []
        self.results = list(results or [])

    def __call__(self, argv, **kwargs) -> CmdResult:
        self.calls.append(list(argv))
        self.kwargs.append(kwargs)
        if self.results:
            return self.results.pop(0)
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")


class FakePackageManager:
    def __init__(self, events: List[str], fail_with: Optional[Exception] = None) -> None:
        self.events = events
        self.fail_with = fail_with
        self.installed: List[str] = []

    def refresh_index(self) -> None:
        self.events.append("refresh_index")

    def install(self, packages) -> None:
        self.events.append("install")
        if self.fail_with is not None:
            raise self.fail_with
        self.installed.extend(packages)


class FakeVcs:
    """Creates a working copy on disk; failures are queued per URL."""

    def __init__(self, target: Target, events: List[str]) -> None:
        self.target = target
        self.events = events
        self.failures: Dict[str, List[Exception]] = {}

    def clone(self, url: str, dest: str, *, ref: Optional[str] = None) -> str:
        self.events.append(f"clone:{url}")
        host = self.target.host_path(dest)
        if host.exists():
            raise PathAlreadyExistsError(str(host))
        queued = self.failures.get(url) or []
        if queued:
            raise queued.pop(0)
        host.mkdir(parents=True)
        (host / "configure").write_text("#!/bin/sh\n", encoding="utf-8")
        return "0123456789abcdef"


class FakeRecipe:
    def __init__(self, repo: RepositoryRef, target: Target, events: List[str], *, binaries=(), fail_at=None, exit_code=2):
        self.name = repo.name
        self.repo = repo
        self.target = target
        self.events = events
        self.binaries = list(binaries)
        self.fail_at = fail_at
        self.exit_code = exit_code

    def configure(self) -> BuildResult:
        self.events.append(f"configure:{self.name}")
        if self.fail_at == "configure":
            return BuildResult("configure", self.exit_code)
        return BuildResult("configure", 0)

    def build_and_install(self) -> BuildResult:
        self.events.append(f"build_and_install:{self.name}")
        if self.fail_at == "build_and_install":
            return BuildResult("build_and_install", self.exit_code)
        workdir = self.target.host_path(self.repo.path)
        (workdir / "build.out").write_text("artifact\n", encoding="utf-8")
        bin_dir = self.target.host_path("/root/.lc3")
        bin_dir.mkdir(parents=True, exist_ok=True)
        for name in self.binaries:
            exe = bin_dir / name
            exe.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
            exe.chmod(exe.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return BuildResult("build_and_install", 0)


def base_manifest(root: Path) -> Dict[str, Any]:
    return {
        "base_image": "ubuntu:22.04",
        "target": {"root": str(root), "workdir": "/root"},
        "packages": ["build-essential", "git", "flex", "tzdata"],
        "repositories": [
            {"name": "toolchainA", "url": "https://example.com/toolchainA.git"},
            {"name": "toolchainB", "url": "https://example.com/toolchainB.git"},
        ],
        "fetch": {"max_attempts": 1},
        "environment": {"path_append": "/root/.lc3"},
        "verify": {"binaries": ["lc3as"]},
    }


def write_os_release(root: Path, ident: str = "ubuntu", version: str = "22.04") -> None:
    etc = root / "etc"
    etc.mkdir(parents=True, exist_ok=True)
    (etc / "os-release").write_text(f'ID={ident}\nVERSION_ID="{version}"\n', encoding="utf-8")


class Harness:
    """A provisioning context over a fake rootfs under tmp_path."""

    def __init__(self, tmp_path: Path, **overrides: Any) -> None:
        self.root = tmp_path / "rootfs"
        write_os_release(self.root)
        raw = base_manifest(self.root)
        raw.update(overrides)
        self.cfg = parse_config(raw)
        self.events: List[str] = []
        self.target = Target(root=str(self.root))
        self.runner = FakeRunner()
        self.packages = FakePackageManager(self.events)
        self.vcs = FakeVcs(self.target, self.events)
        self.recipe_options: Dict[str, Dict[str, Any]] = {"toolchainA": {"binaries": ["lc3as", "lc3sim"]}}
        self.sleeps: List[float] = []
        self.ctx = ProvisionCtx(
            cfg=self.cfg,
            target=self.target,
            packages=self.packages,
            vcs=self.vcs,
            recipe_factory=self._recipe,
            environment=EnvironmentStore({"PATH": ORIGINAL_PATH}),
            runner=self.runner,
            sleep=self.sleeps.append,
        )

    def _recipe(self, repo: RepositoryRef) -> FakeRecipe:
        return FakeRecipe(repo, self.target, self.events, **self.recipe_options.get(repo.name, {}))

    def fresh_ctx(self) -> ProvisionCtx:
        """A new context (fresh process) over the same filesystem."""
        self.ctx = ProvisionCtx(
            cfg=self.cfg,
            target=self.target,
            packages=self.packages,
            vcs=self.vcs,
            recipe_factory=self._recipe,
            environment=EnvironmentStore({"PATH": ORIGINAL_PATH}),
            runner=self.runner,
            sleep=self.sleeps.append,
        )
        return self.ctx


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


def provisioner_handlers() -> List[logging.Handler]:
    return [h for h in logging.getLogger().handlers if getattr(h, "_toolchain_provisioner", False)]


@pytest.fixture
def isolated_logging():
    """Drop the handlers configure_logging installs once the test is done."""
    root = logging.getLogger()
    level = root.level
    yield
    for h in provisioner_handlers():
        root.removeHandler(h)
        h.close()
    root.setLevel(level)
