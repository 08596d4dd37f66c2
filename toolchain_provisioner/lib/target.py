from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .command import CmdResult, Runner, run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """The root filesystem being provisioned.

    root == "/" provisions the running host. Any other root is a rootfs
    directory entered with chroot.
    """

    root: str = "/"
    dry_run: bool = False

    @property
    def is_host(self) -> bool:
        return str(Path(self.root)) == "/"

    def host_path(self, path: str) -> Path:
        """Map an absolute path inside the target to a path on the host."""
        if self.is_host:
            return Path(path)
        return Path(self.root) / str(path).lstrip("/")

    def wrap(self, argv: Sequence[str], *, cwd: str | None = None) -> list[str]:
        """Return argv rewritten to run inside the target (optionally in cwd)."""
        argv_list = list(argv)
        if self.is_host:
            return argv_list
        if cwd:
            script = f"cd {shlex.quote(cwd)} && exec " + " ".join(shlex.quote(a) for a in argv_list)
            return ["chroot", self.root, "/bin/sh", "-c", script]
        return ["chroot", self.root, *argv_list]

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        runner: Runner = run_cmd,
    ) -> CmdResult:
        wrapped = self.wrap(argv, cwd=cwd)
        # On the host the working directory is handed to subprocess directly.
        host_cwd = cwd if self.is_host else None
        return runner(wrapped, check=check, env=env, cwd=host_cwd, timeout=timeout, dry_run=self.dry_run)


def mount_chroot_binds(target: Target, *, runner: Runner = run_cmd) -> None:
    if target.is_host:
        return
    # Minimal bind mounts for apt and the upstream build scripts
    for src in ("/dev", "/proc", "/sys"):
        runner(["mount", "--bind", src, str(target.host_path(src))], dry_run=target.dry_run)


def umount_chroot_binds(target: Target, *, runner: Runner = run_cmd) -> None:
    if target.is_host:
        return
    for p in ("/sys", "/proc", "/dev"):
        runner(["umount", "-lf", str(target.host_path(p))], check=False, dry_run=target.dry_run)
