from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from ..errors import ImageNotFoundError
from .command import Runner, run_cmd
from .target import Target

logger = logging.getLogger(__name__)

UBUNTU_ARCHIVE = "http://archive.ubuntu.com/ubuntu"
DEBIAN_MIRROR = "http://deb.debian.org/debian"


@dataclass(frozen=True)
class BaseImage:
    name: str
    version: str
    suite: str
    mirror: str

    @property
    def ref(self) -> str:
        return f"{self.name}:{self.version}"


KNOWN_IMAGES: Dict[str, BaseImage] = {
    img.ref: img
    for img in (
        BaseImage("ubuntu", "20.04", "focal", UBUNTU_ARCHIVE),
        BaseImage("ubuntu", "22.04", "jammy", UBUNTU_ARCHIVE),
        BaseImage("ubuntu", "24.04", "noble", UBUNTU_ARCHIVE),
        BaseImage("debian", "11", "bullseye", DEBIAN_MIRROR),
        BaseImage("debian", "12", "bookworm", DEBIAN_MIRROR),
    )
}


def resolve_image(ref: str) -> BaseImage:
    """Resolve a pinned ``name:version`` identifier to a known base image."""

    ref = str(ref).strip()
    if ":" not in ref:
        raise ImageNotFoundError(ref, "identifier must be pinned as name:version")
    img = KNOWN_IMAGES.get(ref)
    if img is None:
        raise ImageNotFoundError(ref)
    return img


def parse_os_release(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        out[key.strip()] = value.strip().strip('"').strip("'")
    return out


def read_os_release(target: Target) -> Dict[str, str] | None:
    for rel in ("/etc/os-release", "/usr/lib/os-release"):
        p = target.host_path(rel)
        if p.exists():
            return parse_os_release(p.read_text(encoding="utf-8"))
    return None


def matches(img: BaseImage, os_release: Dict[str, str]) -> bool:
    return os_release.get("ID") == img.name and os_release.get("VERSION_ID") == img.version


def ensure_base_image(
    img: BaseImage,
    target: Target,
    *,
    mirror: str | None = None,
    arch: str | None = None,
    runner: Runner = run_cmd,
) -> str:
    """Make sure the target root holds the requested base image.

    Returns "host", "existing" or "bootstrapped".
    """

    current = read_os_release(target)

    if target.is_host:
        if target.dry_run and current is None:
            return "host"
        if current is None or not matches(img, current):
            found = f"{(current or {}).get('ID')}:{(current or {}).get('VERSION_ID')}"
            raise ImageNotFoundError(img.ref, f"host is {found}")
        return "host"

    if current is not None:
        if not matches(img, current):
            found = f"{current.get('ID')}:{current.get('VERSION_ID')}"
            raise ImageNotFoundError(img.ref, f"{target.root} already holds {found}")
        logger.info("Reusing existing rootfs at %s (%s)", target.root, img.ref)
        return "existing"

    if not target.dry_run:
        Path(target.root).mkdir(parents=True, exist_ok=True)
    argv = ["debootstrap"]
    if arch:
        argv += ["--arch", arch]
    argv += [img.suite, target.root, mirror or img.mirror]
    r = runner(argv, check=False, dry_run=target.dry_run)
    if not r.ok:
        raise ImageNotFoundError(img.ref, f"debootstrap exited {r.returncode}")
    logger.info("Bootstrapped %s into %s", img.ref, target.root)
    return "bootstrapped"
