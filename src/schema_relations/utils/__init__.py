"""
Utilities Package for Schema Relations
"""
from .logging import (
    setup_logging,
    get_logger,
    new_run_id,
    get_run_id,
    clear_context,
    log_context,
    log_operation,
)

from .errors import (
    ErrorCategory,
    ErrorContext,
    RelationsError,
    ConfigurationError,
    MalformedPatternError,
    UnsupportedModifierError,
    MetadataError,
    format_error,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "new_run_id",
    "get_run_id",
    "clear_context",
    "log_context",
    "log_operation",
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "RelationsError",
    "ConfigurationError",
    "MalformedPatternError",
    "UnsupportedModifierError",
    "MetadataError",
    "format_error",
]
