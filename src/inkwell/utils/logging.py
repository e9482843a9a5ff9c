"""Log configuration for hosts embedding the AI edit core.

The core itself only ever calls ``logging.getLogger(__name__)``. Hosts opt in
to file output through :func:`setup_logging`, usually by passing
``configure_logging=True`` to :func:`inkwell.ai.container.create_ai_services`,
which forwards ``AISettings.log``.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Mapping

from ..services.settings import LogSettings

__all__ = ["LOG_FILE_NAME", "apply_component_levels", "get_log_path", "parse_level", "setup_logging"]

LOGGER = logging.getLogger(__name__)

LOG_FILE_NAME = "inkwell.log"
_DEFAULT_LOG_DIR = Path.home() / ".inkwell" / "logs"
_THIRD_PARTY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_handlers: list[logging.Handler] = []
_log_path: Path | None = None


def parse_level(value: str | int, default: int = logging.INFO) -> int:
    """Resolve ``"debug"``/``"WARNING"``/``10`` style levels; unknown names fall back to ``default``."""

    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if isinstance(resolved, int):
        return resolved
    LOGGER.warning("Unknown log level %r; using %s", value, logging.getLevelName(default))
    return default


def setup_logging(settings: LogSettings | None = None, *, force: bool = False) -> Path:
    """Attach a rotating file handler (and optionally a console) to the root logger.

    Only the handlers installed here are replaced on a forced call, so handlers
    owned by the host or by pytest stay in place. Repeated unforced calls return
    the current log path untouched.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    settings = settings or LogSettings()
    level = parse_level(settings.level)
    log_dir = Path(settings.log_dir or _DEFAULT_LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    _remove_installed_handlers(root)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=settings.max_bytes, backupCount=settings.backup_count, encoding="utf-8"
    )
    _handlers.append(file_handler)
    if settings.console:
        _handlers.append(logging.StreamHandler())
    for handler in _handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(level)
    logging.captureWarnings(True)
    apply_component_levels(settings.component_levels)
    _quiet_third_party(level)

    _log_path = log_path
    LOGGER.info("Logging to %s at %s", log_path, logging.getLevelName(level))
    return log_path


def apply_component_levels(levels: Mapping[str, str | int]) -> None:
    """Set per-package levels such as ``{"inkwell.ai": "DEBUG"}``."""

    for name, level in _component_levels(levels).items():
        logging.getLogger(name).setLevel(level)


def get_log_path() -> Path | None:
    return _log_path


def _component_levels(levels: Mapping[str, str | int]) -> dict[str, int]:
    return {name: parse_level(level) for name, level in levels.items() if name}


def _remove_installed_handlers(root: logging.Logger) -> None:
    while _handlers:
        handler = _handlers.pop()
        root.removeHandler(handler)
        handler.close()


def _quiet_third_party(level: int) -> None:
    quiet_level = max(level, logging.WARNING)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
