from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .lib.retry import RetryConfig

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
BUILD_STRATEGIES = ("sequential", "parallel")


def repo_name_from_url(url: str) -> str:
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail


@dataclass(frozen=True)
class RepositoryRef:
    name: str
    url: str
    path: str
    ref: Optional[str] = None
    configure_cmd: tuple[str, ...] = ("./configure",)
    install_cmd: tuple[str, ...] = ("make", "install")


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any]

    @property
    def base_image(self) -> str:
        return str(self.raw.get("base_image") or "ubuntu:22.04")

    @property
    def target_root(self) -> str:
        return str(((self.raw.get("target") or {}).get("root")) or "/")

    @property
    def workdir(self) -> str:
        return str(((self.raw.get("target") or {}).get("workdir")) or "/root")

    @property
    def arch(self) -> Optional[str]:
        arch = (self.raw.get("target") or {}).get("arch")
        return str(arch) if arch else None

    @property
    def mirror(self) -> Optional[str]:
        mirror = (self.raw.get("target") or {}).get("mirror")
        return str(mirror) if mirror else None

    @property
    def packages(self) -> List[str]:
        return [str(p) for p in (self.raw.get("packages") or [])]

    @property
    def with_recommends(self) -> bool:
        return bool(self.raw.get("install_recommends", True))

    @property
    def repositories(self) -> List[RepositoryRef]:
        out: List[RepositoryRef] = []
        for item in self.raw.get("repositories") or []:
            url = str(item["url"])
            name = str(item.get("name") or repo_name_from_url(url))
            out.append(
                RepositoryRef(
                    name=name,
                    url=url,
                    path=posixpath.join(self.workdir, name),
                    ref=str(item["ref"]) if item.get("ref") else None,
                    configure_cmd=tuple(item.get("configure", ["./configure"]) or ()),
                    install_cmd=tuple(item.get("install", ["make", "install"]) or ()),
                )
            )
        return out

    @property
    def fetch_retry(self) -> RetryConfig:
        fetch = self.raw.get("fetch") or {}
        return RetryConfig(
            max_attempts=int(fetch.get("max_attempts", 3)),
            base_delay=float(fetch.get("base_delay", 2.0)),
            max_delay=float(fetch.get("max_delay", 30.0)),
        )

    @property
    def fetch_timeout(self) -> Optional[float]:
        timeout = (self.raw.get("fetch") or {}).get("timeout", 600)
        return float(timeout) if timeout else None

    @property
    def fetch_depth(self) -> Optional[int]:
        depth = (self.raw.get("fetch") or {}).get("depth")
        return int(depth) if depth else None

    @property
    def build_strategy(self) -> str:
        return str(((self.raw.get("build") or {}).get("strategy")) or "sequential")

    @property
    def build_workers(self) -> int:
        return int(((self.raw.get("build") or {}).get("workers")) or 2)

    @property
    def path_append(self) -> str:
        return str(((self.raw.get("environment") or {}).get("path_append")) or "/root/.lc3")

    @property
    def profile_name(self) -> str:
        return str(((self.raw.get("environment") or {}).get("profile_name")) or "toolchain-provisioner")

    @property
    def entrypoint(self) -> List[str]:
        ep = self.raw.get("entrypoint") or ["bash"]
        if isinstance(ep, str):
            return [ep]
        return [str(a) for a in ep]

    @property
    def verify_binaries(self) -> List[str]:
        return [str(b) for b in ((self.raw.get("verify") or {}).get("binaries") or [])]

    def validate(self) -> "ProvisionConfig":
        if ":" not in self.base_image:
            raise ConfigError(f"base_image must be pinned as name:version, got {self.base_image!r}")
        if not posixpath.isabs(self.workdir):
            raise ConfigError(f"target.workdir must be absolute: {self.workdir}")
        if not posixpath.isabs(self.path_append):
            raise ConfigError(f"environment.path_append must be absolute: {self.path_append}")
        if self.build_strategy not in BUILD_STRATEGIES:
            raise ConfigError(f"build.strategy must be one of {BUILD_STRATEGIES}, got {self.build_strategy!r}")
        if not self.entrypoint:
            raise ConfigError("entrypoint must not be empty")

        seen: set[str] = set()
        try:
            repos = self.repositories
        except KeyError as e:
            raise ConfigError(f"repository entry missing {e}") from e
        for repo in repos:
            if not _NAME_RE.match(repo.name):
                raise ConfigError(f"invalid repository name: {repo.name!r}")
            if repo.name in seen:
                raise ConfigError(f"duplicate repository name: {repo.name}")
            seen.add(repo.name)
        return self

    def summary(self) -> Dict[str, Any]:
        return {
            "base_image": self.base_image,
            "target_root": self.target_root,
            "workdir": self.workdir,
            "packages": self.packages,
            "repositories": [
                {"name": r.name, "url": r.url, "path": r.path, "ref": r.ref} for r in self.repositories
            ],
            "build_strategy": self.build_strategy,
            "path_append": self.path_append,
            "entrypoint": self.entrypoint,
        }


def parse_config(raw: Any) -> ProvisionConfig:
    if not isinstance(raw, dict):
        raise ConfigError("provisioning manifest must contain a mapping/object")
    return ProvisionConfig(raw=raw).validate()


def load_config(path: str) -> ProvisionConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"provisioning manifest not found: {path}")

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("provisioning manifest must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return parse_config(raw)
