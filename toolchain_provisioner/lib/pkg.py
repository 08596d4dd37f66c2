from __future__ import annotations

import logging
import re
from typing import Protocol, Sequence

from ..errors import CommandError, DependencyConflictError, PackageNotFoundError
from .command import CmdResult, Runner, run_cmd
from .target import Target

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

_NOT_FOUND_RES = (
    re.compile(r"Unable to locate package (\S+)"),
    re.compile(r"Package '?([^'\s]+)'? has no installation candidate"),
    re.compile(r"Couldn't find any package by (?:glob|regex) '([^']+)'"),
)
_CONFLICT_MARKERS = (
    "unmet dependencies",
    "held broken packages",
    "Conflicts:",
    "Breaks:",
)


class PackageManager(Protocol):
    def refresh_index(self) -> None:
        ...

    def install(self, packages: Sequence[str]) -> None:
        ...


def dedup(packages: Sequence[str]) -> list[str]:
    out: list[str] = []
    for p in packages:
        name = str(p).strip()
        if name and name not in out:
            out.append(name)
    return out


def classify_apt_failure(packages: Sequence[str], r: CmdResult) -> Exception:
    text = f"{r.stderr}\n{r.stdout}"
    for rx in _NOT_FOUND_RES:
        m = rx.search(text)
        if m:
            return PackageNotFoundError(m.group(1))
    if any(marker in text for marker in _CONFLICT_MARKERS):
        detail = next((ln.strip() for ln in text.splitlines() if "Depends:" in ln or "Conflicts:" in ln), "")
        return DependencyConflictError(list(packages), detail)
    return CommandError(
        f"apt-get install failed ({r.returncode})",
        returncode=r.returncode,
        stderr=r.stderr,
    )


class AptPackageManager:
    """apt-get on the target root (directly on the host, chroot otherwise)."""

    def __init__(self, target: Target, *, with_recommends: bool = True, runner: Runner = run_cmd) -> None:
        self.target = target
        self.with_recommends = with_recommends
        self.runner = runner

    def refresh_index(self) -> None:
        r = self.target.run(["apt-get", "update"], check=False, env=APT_ENV, runner=self.runner)
        if not r.ok:
            raise CommandError(f"apt-get update failed ({r.returncode})", returncode=r.returncode, stderr=r.stderr)

    def install(self, packages: Sequence[str]) -> None:
        if not packages:
            return
        argv = ["apt-get", "install", "-y"]
        if not self.with_recommends:
            argv.append("--no-install-recommends")
        r = self.target.run([*argv, *packages], check=False, env=APT_ENV, runner=self.runner)
        if not r.ok:
            raise classify_apt_failure(packages, r)
        logger.info("Installed %d packages", len(packages))
