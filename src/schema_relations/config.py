"""
Configuration Management for Schema Relations
Uses Pydantic for validation and type safety
"""
from __future__ import annotations

import os
from enum import Enum
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .utils import setup_logging


class LogLevel(str, Enum):
    """Log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


ENV_PREFIX = "SCHEMA_RELATIONS_"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(f"{ENV_PREFIX}{name}", default).strip().lower() in ("1", "true", "yes", "on")


class InferenceConfig(BaseModel):
    """
    Configuration for one relationship inference run

    rel_constraint and rel_exclude hold raw (lhs, rhs) shorthand pairs. Values
    may be strings, compiled regular expressions, lists or dicts; they are
    normalized by the pattern compiler, not here.
    """
    rel_constraint: List[Any] = Field(default_factory=list)
    rel_exclude: List[Any] = Field(default_factory=list)
    quiet: bool = False
    log_level: LogLevel = LogLevel.INFO
    json_logs: bool = False

    @field_validator('rel_constraint', 'rel_exclude', mode='before')
    @classmethod
    def validate_rule_list(cls, v: Any) -> Any:
        """Rule lists must be sequences; entry shape is checked by the pattern compiler"""
        if v is None:
            return []
        if isinstance(v, (str, bytes, dict)) or not hasattr(v, '__iter__'):
            raise ValueError("expected a list of (lhs, rhs) pairs")
        return list(v)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides: Any) -> "InferenceConfig":
        """Create configuration from environment variables (and an optional .env file)"""
        load_dotenv(dotenv_path=dotenv_path)

        values: dict = {
            "quiet": _env_flag("QUIET"),
            "log_level": LogLevel(os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper()),
            "json_logs": _env_flag("JSON_LOGS"),
        }
        values.update(overrides)
        return cls(**values)

    def configure_logging(self, log_file: Optional[str] = None) -> None:
        """Apply log_level / json_logs to the process-wide logging setup"""
        setup_logging(level=self.log_level.value, json_format=self.json_logs, log_file=log_file)

    model_config = {"arbitrary_types_allowed": True}
