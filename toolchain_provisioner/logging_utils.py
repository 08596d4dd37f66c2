from __future__ import annotations

import logging
from pathlib import Path

DEFAULT_LOG_PATH = "/var/log/toolchain-provisioner.log"
FALLBACK_LOG_NAME = "toolchain-provisioner.log"

_HANDLER_TAG = "_toolchain_provisioner"
_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)


def _open_log_file(log_path: str) -> tuple[logging.Handler, str]:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), log_path
    except OSError:
        # Unprivileged runs cannot write /var/log.
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback, encoding="utf-8"), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    console_level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Route provisioning logs to a file and the console.

    The file always records DEBUG, which includes the captured stdout and
    stderr of every apt, git, configure and make invocation; the console
    shows console_level and up. Calling again replaces the handlers a
    previous call installed.

    Returns the log file actually in use.
    """

    root = logging.getLogger()
    for h in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(h)
        h.close()
    root.setLevel(logging.DEBUG)

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setLevel(logging.DEBUG)
    handlers = [file_handler]

    if also_console:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        handlers.append(console)

    for h in handlers:
        h.setFormatter(_FORMAT)
        setattr(h, _HANDLER_TAG, True)
        root.addHandler(h)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
