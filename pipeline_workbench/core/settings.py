"""Runtime configuration for the pipeline workbench."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .logging_config import LoggingOptions


_DEFAULT_READINESS_TIMEOUT = 10.0
READINESS_TIMEOUT_ENV = "WORKBENCH_READINESS_TIMEOUT"


def _default_readiness_timeout() -> float:
    raw = os.environ.get(READINESS_TIMEOUT_ENV)
    if raw is None:
        return _DEFAULT_READINESS_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring invalid %s=%r; using %s seconds",
            READINESS_TIMEOUT_ENV,
            raw,
            _DEFAULT_READINESS_TIMEOUT,
        )
        return _DEFAULT_READINESS_TIMEOUT
    return max(0.0, value)


@dataclass
class WorkbenchConfiguration:
    """Configuration shared by the session, executor and CLI."""

    readiness_timeout_seconds: float = field(default_factory=_default_readiness_timeout)
    output_format: str = "PNG"
    script_input_path: str = "input_image.jpg"
    script_output_path: str = "output_image.jpg"
    log_directory: Optional[Path] = None
    enable_console_logging: bool = True
    enable_file_logging: bool = False
    developer_diagnostics: bool = False
    max_log_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 5

    def logging_options(self) -> LoggingOptions:
        """Return :class:`LoggingOptions` derived from this configuration."""

        return LoggingOptions(
            log_directory=self.log_directory,
            enable_console=self.enable_console_logging,
            enable_file=self.enable_file_logging,
            developer_diagnostics=self.developer_diagnostics,
            max_bytes=self.max_log_bytes,
            backup_count=self.log_backup_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            data[item.name] = str(value) if isinstance(value, Path) else value
        return data

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "WorkbenchConfiguration":
        """Build a configuration from ``values``; unknown keys are rejected."""

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        kwargs = dict(values)
        if kwargs.get("log_directory") is not None:
            kwargs["log_directory"] = Path(kwargs["log_directory"])
        if "readiness_timeout_seconds" in kwargs:
            kwargs["readiness_timeout_seconds"] = float(kwargs["readiness_timeout_seconds"])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, payload: str | Mapping[str, Any]) -> "WorkbenchConfiguration":
        if isinstance(payload, str):
            data = json.loads(payload)
        else:
            data = dict(payload)
        if not isinstance(data, MutableMapping):
            raise ValueError("Configuration JSON must describe an object")
        return cls.from_mapping(data)

    @classmethod
    def load(cls, path: Path | str) -> "WorkbenchConfiguration":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        return cls.from_json(path.read_text(encoding="utf-8"))


__all__ = ["WorkbenchConfiguration", "READINESS_TIMEOUT_ENV"]
