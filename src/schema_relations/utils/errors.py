"""
Error Handling Module for Schema Relations

Only fatal problems are raised: malformed rule shorthand and unusable metadata.
Per-candidate rejections and the capability gap are reported as diagnostics
on the inference result instead.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    CONFIGURATION = "configuration"
    PATTERN = "pattern"
    METADATA = "metadata"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Where in the input an error was detected"""
    entry_index: Optional[int] = None
    side: Optional[str] = None  # "lhs" or "rhs"
    raw_value: Any = None
    source: Optional[str] = None  # file path or source name

    @property
    def location(self) -> str:
        if self.entry_index is None:
            return ""
        if self.side:
            return f"entry {self.entry_index}, {self.side}"
        return f"entry {self.entry_index}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_index": self.entry_index,
            "side": self.side,
            "raw_value": None if self.raw_value is None else repr(self.raw_value),
            "source": self.source,
        }


class RelationsError(Exception):
    """Base exception for Schema Relations"""

    category = ErrorCategory.INTERNAL
    default_suggestions: List[str] = []

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        suggestions: Optional[List[str]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.suggestions = list(suggestions or self.default_suggestions)
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "category": self.category.value,
            "message": self.message,
            "context": self.context.to_dict(),
            "suggestions": self.suggestions,
            "original_error": None if self.original_error is None else str(self.original_error),
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class ConfigurationError(RelationsError):
    """Invalid engine configuration"""

    category = ErrorCategory.CONFIGURATION
    default_suggestions = ["Review the rel_constraint / rel_exclude settings"]


class MalformedPatternError(ConfigurationError):
    """A rule entry uses shorthand that cannot be normalized"""

    category = ErrorCategory.PATTERN
    default_suggestions = [
        "Use 'schema.table.column', a compiled regex, a list of up to "
        "three parts, or a dict with schema/table/column/index/type/diagnostics",
    ]

    def __init__(
        self,
        message: str,
        entry_index: Optional[int] = None,
        side: Optional[str] = None,
        raw_value: Any = None,
        suggestions: Optional[List[str]] = None,
    ):
        context = ErrorContext(entry_index=entry_index, side=side, raw_value=raw_value)
        if context.location:
            message = f"{message} ({context.location})"
        super().__init__(message, context=context, suggestions=suggestions)

    @property
    def entry_index(self) -> Optional[int]:
        return self.context.entry_index

    @property
    def side(self) -> Optional[str]:
        return self.context.side

    @property
    def raw_value(self) -> Any:
        return self.context.raw_value


class UnsupportedModifierError(MalformedPatternError):
    """A modifier key is used where it is not allowed"""

    def __init__(
        self,
        modifier: str,
        entry_index: Optional[int] = None,
        side: Optional[str] = None,
        raw_value: Any = None,
        reason: str = "exclude entries accept only schema, table and column",
    ):
        super().__init__(
            f"Unsupported modifier '{modifier}': {reason}",
            entry_index=entry_index,
            side=side,
            raw_value=raw_value,
            suggestions=[f"Remove the '{modifier}' key from this entry"],
        )
        self.modifier = modifier


class MetadataError(RelationsError):
    """Metadata snapshot could not be loaded or is inconsistent"""

    category = ErrorCategory.METADATA
    default_suggestions = ["Check that every index and relationship names a known column"]

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        suggestions = list(self.default_suggestions)
        if source:
            suggestions.append(f"Verify that '{source}' is a readable YAML or JSON snapshot")
        super().__init__(
            message,
            context=ErrorContext(source=source),
            suggestions=suggestions,
            original_error=original_error,
        )

    @property
    def source(self) -> Optional[str]:
        return self.context.source


def format_error(error: RelationsError) -> str:
    """Render an error with its suggestions for log or console output"""
    lines = [str(error)]

    if error.context.entry_index is not None:
        lines.append(f"Entry: {error.context.entry_index}")
    if error.context.raw_value is not None:
        lines.append(f"Value: {error.context.raw_value!r}")
    if error.context.source:
        lines.append(f"Source: {error.context.source}")

    if error.suggestions:
        lines.append("Suggestions:")
        lines.extend(f"  - {suggestion}" for suggestion in error.suggestions)

    return "\n".join(lines)
