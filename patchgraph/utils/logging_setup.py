"""Logging configuration helpers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional


REPO_ROOT = Path(__file__).resolve().parents[2]


def _relative_path(pathname: str) -> str:
    """Return repo-relative path if possible."""
    candidate = Path(pathname).resolve()
    try:
        return str(candidate.relative_to(REPO_ROOT))
    except ValueError:
        return str(candidate)


class _ConsoleFormatter(logging.Formatter):
    """Compact [MMDDhhmmss_mmm] timestamps; report blocks are printed bare."""

    def format(self, record: logging.LogRecord) -> str:
        if record.name == "pipeline.report":
            return record.getMessage()
        stamp = self.formatTime(record)
        return f"[{stamp}] {record.name} {record.levelname}: {record.getMessage()}"

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc).astimezone()
        return dt.strftime("%m%d%H%M%S") + f"_{int(record.msecs):03d}"


class _FileFormatter(logging.Formatter):
    """ISO-like timestamp formatter for log files."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).astimezone().isoformat()
        rel = _relative_path(record.pathname)
        return f"{ts} {record.name} {record.levelname}: {record.getMessage()} [{rel}]:line {record.lineno} :: {record.funcName}"


@dataclass
class ModuleLevel:
    level: str


@dataclass
class LoggingSettings:
    enabled: bool = True
    console_enabled: bool = True
    console_level: str = "INFO"
    file_enabled: bool = False
    file_level: str = "DEBUG"
    file_path: Path = Path("logs/patchgraph.log")
    module_levels: Dict[str, ModuleLevel] = field(default_factory=dict)


def load_logging_settings(path: Optional[Path]) -> LoggingSettings:
    """Read logging settings from JSON; a missing file yields the defaults."""
    if path is None or not path.exists():
        return LoggingSettings()
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    console_section = data.get("console", {})
    file_section = data.get("file", {})
    modules_cfg = {}
    for name, module_data in data.get("modules", {}).items():
        modules_cfg[name] = ModuleLevel(level=str(module_data.get("level", "INFO")).upper())
    return LoggingSettings(
        enabled=bool(data.get("enabled", True)),
        console_enabled=bool(console_section.get("enabled", True)),
        console_level=str(console_section.get("level", "INFO")).upper(),
        file_enabled=bool(file_section.get("enabled", False)),
        file_level=str(file_section.get("level", "DEBUG")).upper(),
        file_path=Path(file_section.get("path", "logs/patchgraph.log")),
        module_levels=modules_cfg,
    )


def configure_python_logging(settings: LoggingSettings, console_level: Optional[str] = None) -> None:
    """Configure root logging handlers per settings.

    ``console_level`` overrides the configured console level (used by the
    ``--quiet`` CLI flag).
    """
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
        handler.close()

    if not settings.enabled:
        logging.getLogger().disabled = True
        return
    logging.getLogger().disabled = False

    logging.getLogger().setLevel(logging.DEBUG)
    handlers = []
    if settings.console_enabled:
        level_name = (console_level or settings.console_level).upper()
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, level_name, logging.INFO))
        console_handler.setFormatter(_ConsoleFormatter())
        handlers.append(console_handler)
    if settings.file_enabled:
        settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.file_path, encoding="utf-8")
        file_handler.setLevel(getattr(logging, settings.file_level, logging.DEBUG))
        file_handler.setFormatter(_FileFormatter())
        handlers.append(file_handler)
    for handler in handlers:
        logging.getLogger().addHandler(handler)

    for module_name, module_level in settings.module_levels.items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.level, logging.INFO))


__all__ = [
    "LoggingSettings",
    "ModuleLevel",
    "load_logging_settings",
    "configure_python_logging",
]
