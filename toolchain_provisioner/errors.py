from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for every fatal provisioning failure."""


class ConfigError(ProvisionError):
    pass


class CommandError(ProvisionError):
    """A command exited non-zero and no more specific error applies."""

    def __init__(self, message: str, *, returncode: int, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ImageNotFoundError(ProvisionError):
    def __init__(self, image: str, reason: Optional[str] = None) -> None:
        msg = f"Base image not found: {image}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.image = image


class PackageNotFoundError(ProvisionError):
    def __init__(self, package: str) -> None:
        super().__init__(f"Package not found: {package}")
        self.package = package


class DependencyConflictError(ProvisionError):
    def __init__(self, packages: list[str], detail: str = "") -> None:
        msg = f"Dependency conflict installing {', '.join(packages)}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.packages = list(packages)
        self.detail = detail


class PathAlreadyExistsError(ProvisionError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Refusing to overwrite existing path: {path}")
        self.path = path


class NetworkUnreachableError(ProvisionError):
    def __init__(self, url: str, detail: str = "") -> None:
        msg = f"Network unreachable fetching {url}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.url = url


class FetchTimeoutError(ProvisionError, TimeoutError):
    """A fetch did not finish in time. Also catchable as ``TimeoutError``."""


class ExternalBuildError(ProvisionError):
    def __init__(self, repository: str, step: str, exit_code: int) -> None:
        super().__init__(f"Build of {repository} failed at {step} (exit {exit_code})")
        self.repository = repository
        self.step = step
        self.exit_code = exit_code


class VerificationError(ProvisionError):
    pass


TRANSIENT_ERRORS = (NetworkUnreachableError, FetchTimeoutError)
