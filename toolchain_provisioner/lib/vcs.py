from __future__ import annotations

import logging
import re
import shutil
from typing import Protocol

from ..errors import CommandError, FetchTimeoutError, NetworkUnreachableError, PathAlreadyExistsError
from .command import CmdResult, Runner, run_cmd
from .target import Target

logger = logging.getLogger(__name__)

_NETWORK_MARKERS = (
    "Could not resolve host",
    "Network is unreachable",
    "Connection refused",
    "Failed to connect",
    "Could not connect",
    "unable to access",
)
_TIMEOUT_MARKERS = (
    "timed out",
    "Operation timed out",
)


_SHA_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")


def is_commit_sha(ref: str) -> bool:
    return bool(_SHA_RE.match(ref))


class VersionControl(Protocol):
    def clone(self, url: str, dest: str, *, ref: str | None = None) -> str:
        """Clone url into dest (a path inside the target). Returns the commit."""
        ...


def classify_git_failure(url: str, r: CmdResult) -> Exception:
    text = r.stderr or ""
    if any(m in text for m in _TIMEOUT_MARKERS):
        return FetchTimeoutError(f"Timed out fetching {url}")
    if any(m in text for m in _NETWORK_MARKERS):
        detail = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
        return NetworkUnreachableError(url, detail)
    return CommandError(f"git clone {url} failed ({r.returncode})", returncode=r.returncode, stderr=text)


class GitClient:
    """git on the host, writing into the target's filesystem."""

    def __init__(
        self,
        target: Target,
        *,
        depth: int | None = None,
        timeout: float | None = 600.0,
        runner: Runner = run_cmd,
    ) -> None:
        self.target = target
        self.depth = depth
        self.timeout = timeout
        self.runner = runner

    def clone(self, url: str, dest: str, *, ref: str | None = None) -> str:
        host_dest = self.target.host_path(dest)
        if host_dest.exists():
            raise PathAlreadyExistsError(str(host_dest))

        # --branch only takes branch or tag names; commits are checked out after a full clone.
        pin_commit = bool(ref) and is_commit_sha(str(ref))

        argv = ["git", "clone"]
        if self.depth and not pin_commit:
            argv += ["--depth", str(self.depth)]
        if ref and not pin_commit:
            argv += ["--branch", ref]
        argv += [url, str(host_dest)]

        try:
            r = self.runner(argv, check=False, timeout=self.timeout, dry_run=self.target.dry_run)
            if not r.ok:
                raise classify_git_failure(url, r)
            if pin_commit:
                co = self.runner(
                    ["git", "-C", str(host_dest), "checkout", "--detach", str(ref)],
                    check=False,
                    dry_run=self.target.dry_run,
                )
                if not co.ok:
                    raise CommandError(
                        f"git checkout {ref} in {host_dest} failed ({co.returncode})",
                        returncode=co.returncode,
                        stderr=co.stderr,
                    )
        except Exception:
            # Leave nothing behind for the next attempt.
            if host_dest.exists():
                shutil.rmtree(host_dest, ignore_errors=True)
            raise

        head = self.runner(
            ["git", "-C", str(host_dest), "rev-parse", "HEAD"],
            check=False,
            dry_run=self.target.dry_run,
        )
        commit = head.stdout.strip() if head.ok else ""
        logger.info("Cloned %s -> %s (%s)", url, host_dest, commit or "unknown commit")
        return commit
