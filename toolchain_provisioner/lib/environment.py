from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import Dict, Iterator, Mapping

logger = logging.getLogger(__name__)


class EnvironmentStore:
    """Process-wide environment variables as an explicit key/value store.

    ``append`` is the only mutation used for search paths: it never replaces
    the existing value and never adds an entry that is already present.
    """

    def __init__(self, initial: Mapping[str, str] | None = None, *, sep: str = os.pathsep) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self.sep = sep

    @classmethod
    def capture(cls, keys: tuple[str, ...] = ("PATH",), environ: Mapping[str, str] | None = None) -> "EnvironmentStore":
        environ = os.environ if environ is None else environ
        return cls({k: environ[k] for k in keys if k in environ})

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def entries(self, key: str) -> list[str]:
        value = self._values.get(key) or ""
        return [e for e in value.split(self.sep) if e]

    def append(self, key: str, value: str) -> bool:
        """Append value to key. Returns False when it was already present."""
        value = str(value)
        if not value:
            raise ValueError("cannot append an empty value")
        current = self._values.get(key)
        norm = value.rstrip("/") or "/"
        if any((e.rstrip("/") or "/") == norm for e in self.entries(key)):
            logger.info("%s already contains %s", key, value)
            return False
        self._values[key] = f"{current}{self.sep}{value}" if current else value
        logger.info("Appended %s to %s", value, key)
        return True

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


def render_profile(appended: Mapping[str, list[str]], *, sep: str = ":") -> str:
    """Render a /etc/profile.d snippet that appends to the session's values."""

    lines = ["# Managed by toolchain-provisioner", ""]
    for key in sorted(appended):
        for value in appended[key]:
            q = shlex.quote(value)
            lines.append(f'case "{sep}${{{key}}}{sep}" in')
            lines.append(f'  *"{sep}"{q}"{sep}"*) ;;')
            lines.append(f'  *) export {key}="${{{key}:+${{{key}}}{sep}}}"{q} ;;')
            lines.append("esac")
    return "\n".join(lines) + "\n"


def write_profile(path: Path, content: str, *, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("Would write %s", path)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Wrote environment profile %s", path)
