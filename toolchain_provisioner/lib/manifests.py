from __future__ import annotations

from pathlib import Path

DEFAULT_MANIFEST = "lc3"


def _manifests_dir() -> Path:
    # toolchain_provisioner/lib/manifests.py -> toolchain_provisioner/manifests
    return Path(__file__).resolve().parents[1] / "manifests"


def manifest_path(name: str = DEFAULT_MANIFEST) -> str:
    """Path of a bundled manifest (manifests/<name>.yaml)."""
    p = _manifests_dir() / f"{name}.yaml"
    if not p.exists():
        raise FileNotFoundError(str(p))
    return str(p)


def list_manifests() -> list[str]:
    return sorted(p.stem for p in _manifests_dir().glob("*.yaml"))
