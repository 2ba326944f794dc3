"""Logging setup for the pipeline workbench.

Records emitted by the executor for a failing step carry ``step`` and
``operation`` attributes; the formatter appends them so a log line names the
step without the message having to repeat it.
"""
from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_LOG_FILENAME = "pipeline_workbench.log"
DEFAULT_LOG_DIRNAME = "logs"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ANONYMISED_FORMAT = "%(asctime)s | %(levelname)s | %(component)s | %(message)s%(step_context)s"
_DIAGNOSTIC_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | "
    "%(message)s%(step_context)s"
)


class _StepContextFormatter(logging.Formatter):
    """Fill ``component`` and ``step_context`` and optionally hide the home path."""

    def __init__(self, fmt: str, *, anonymise: bool) -> None:
        super().__init__(fmt=fmt, datefmt=_DATE_FORMAT)
        self._home = str(Path.home()) if anonymise else ""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "component"):
            record.component = record.name
        step = getattr(record, "step", None)
        operation = getattr(record, "operation", None)
        if step is not None or operation is not None:
            record.step_context = f" [step={step} operation={operation}]"
        else:
            record.step_context = ""
        formatted = super().format(record)
        if self._home and len(self._home) > 1:
            formatted = formatted.replace(self._home, "~")
        return formatted


@dataclass
class LoggingOptions:
    """Runtime options for configuring the logging subsystem."""

    log_directory: Optional[os.PathLike] = None
    level: int = logging.INFO
    enable_console: bool = True
    enable_file: bool = True
    developer_diagnostics: bool = False
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5

    @property
    def effective_level(self) -> int:
        return logging.DEBUG if self.developer_diagnostics else self.level


class LoggingConfigurator:
    """Install rotating-file and console handlers on the root logger."""

    def __init__(self, options: Optional[LoggingOptions] = None) -> None:
        self.options = options or LoggingOptions()
        self.logger = logging.getLogger()

    def configure(self) -> Optional[Path]:
        """Replace the root handlers and return the log file path, if any."""

        level = self.options.effective_level
        self.logger.setLevel(level)
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        log_path: Optional[Path] = None
        if self.options.enable_file:
            log_path = self.log_path()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=self.options.max_bytes,
                backupCount=self.options.backup_count,
                encoding="utf-8",
            )
            self._install(file_handler, level, anonymise=True)

        if self.options.enable_console:
            self._install(
                logging.StreamHandler(),
                level,
                anonymise=not self.options.developer_diagnostics,
            )

        self.logger.debug("Logging configured", extra={"component": "LoggingConfigurator"})
        return log_path

    def log_path(self) -> Path:
        base_dir = (
            Path(self.options.log_directory)
            if self.options.log_directory is not None
            else Path.home() / DEFAULT_LOG_DIRNAME
        )
        return base_dir / DEFAULT_LOG_FILENAME

    def _install(self, handler: logging.Handler, level: int, *, anonymise: bool) -> None:
        fmt = _ANONYMISED_FORMAT if anonymise else _DIAGNOSTIC_FORMAT
        handler.setFormatter(_StepContextFormatter(fmt, anonymise=anonymise))
        handler.setLevel(level)
        self.logger.addHandler(handler)


__all__ = ["DEFAULT_LOG_FILENAME", "LoggingConfigurator", "LoggingOptions"]
