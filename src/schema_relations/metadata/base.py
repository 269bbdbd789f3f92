"""
Metadata Snapshot Module
Defines the immutable schema metadata consumed by the inference engine and
the abstract interface for the collaborators that supply it
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from ..utils import MetadataError


class TableKey(NamedTuple):
    """Identity of a table"""
    schema: Optional[str]
    table: str

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table


class ColumnKey(NamedTuple):
    """Identity of a column, unique within one snapshot"""
    schema: Optional[str]
    table: str
    column: str

    @property
    def table_key(self) -> TableKey:
        return TableKey(self.schema, self.table)

    def __str__(self) -> str:
        return f"{self.table_key}.{self.column}"


class IndexKind(str, Enum):
    """Kinds of index reported by the metadata collaborator"""
    PRIMARY = "primary"
    UNIQUE = "unique"
    NONUNIQUE = "nonunique"


@dataclass(frozen=True)
class ColumnMeta:
    """Schema information for one column"""
    schema: Optional[str]
    table: str
    column: str
    data_type: Optional[str] = None
    size: Optional[int] = None

    @property
    def key(self) -> ColumnKey:
        return ColumnKey(self.schema, self.table, self.column)

    @property
    def table_key(self) -> TableKey:
        return TableKey(self.schema, self.table)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "column": self.column,
            "data_type": self.data_type,
            "size": self.size,
        }


@dataclass(frozen=True)
class IndexMeta:
    """Index information; ordered_columns gives each column's leftmost position"""
    schema: Optional[str]
    table: str
    kind: IndexKind
    ordered_columns: Tuple[str, ...]
    name: Optional[str] = None

    @property
    def table_key(self) -> TableKey:
        return TableKey(self.schema, self.table)

    @property
    def width(self) -> int:
        return len(self.ordered_columns)

    @property
    def is_composite(self) -> bool:
        return len(self.ordered_columns) > 1

    def position_of(self, column: str) -> Optional[int]:
        """Zero-based leftmost position of a column, or None if not a member"""
        try:
            return self.ordered_columns.index(column)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "kind": self.kind.value,
            "ordered_columns": list(self.ordered_columns),
            "name": self.name,
        }


@dataclass(frozen=True)
class ExistingRelationship:
    """A relationship already found by plain foreign key introspection"""
    referencing: ColumnKey
    referenced: ColumnKey

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referencing": list(self.referencing),
            "referenced": list(self.referenced),
        }


@dataclass
class MetadataSnapshot:
    """
    Complete metadata for one inference run

    supports_nonunique_indexes is False when the collaborator cannot report
    non-unique indexes at all. opaque_tables lists tables (views, for example)
    whose index information is unknown.
    """
    columns: List[ColumnMeta] = field(default_factory=list)
    indexes: List[IndexMeta] = field(default_factory=list)
    relationships: List[ExistingRelationship] = field(default_factory=list)
    supports_nonunique_indexes: bool = True
    opaque_tables: List[TableKey] = field(default_factory=list)

    def validate(self) -> "MetadataSnapshot":
        """Check column identity and cross references, raising MetadataError"""
        known: Dict[ColumnKey, ColumnMeta] = {}
        for column in self.columns:
            if column.key in known:
                raise MetadataError(f"Duplicate column in metadata snapshot: {column.key}")
            known[column.key] = column

        for index in self.indexes:
            if not index.ordered_columns:
                raise MetadataError(f"Index on {index.table_key} has no columns")
            for name in index.ordered_columns:
                if ColumnKey(index.schema, index.table, name) not in known:
                    raise MetadataError(
                        f"Index on {index.table_key} names unknown column '{name}'"
                    )

        for rel in self.relationships:
            for key in (rel.referencing, rel.referenced):
                if key not in known:
                    raise MetadataError(f"Relationship names unknown column {key}")

        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "indexes": [i.to_dict() for i in self.indexes],
            "relationships": [r.to_dict() for r in self.relationships],
            "supports_nonunique_indexes": self.supports_nonunique_indexes,
            "opaque_tables": [list(t) for t in self.opaque_tables],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetadataSnapshot":
        """Create snapshot from dictionary"""
        try:
            columns = [
                ColumnMeta(
                    schema=c.get("schema"),
                    table=c["table"],
                    column=c["column"],
                    data_type=c.get("data_type"),
                    size=c.get("size"),
                )
                for c in data.get("columns", [])
            ]
            indexes = [
                IndexMeta(
                    schema=i.get("schema"),
                    table=i["table"],
                    kind=IndexKind(i.get("kind", "nonunique")),
                    ordered_columns=tuple(i.get("ordered_columns", [])),
                    name=i.get("name"),
                )
                for i in data.get("indexes", [])
            ]
            relationships = [
                ExistingRelationship(
                    referencing=ColumnKey(*r["referencing"]),
                    referenced=ColumnKey(*r["referenced"]),
                )
                for r in data.get("relationships", [])
            ]
            opaque = [TableKey(*t) for t in data.get("opaque_tables", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataError(f"Malformed metadata snapshot: {e}", original_error=e) from e

        return cls(
            columns=columns,
            indexes=indexes,
            relationships=relationships,
            supports_nonunique_indexes=data.get("supports_nonunique_indexes", True),
            opaque_tables=opaque,
        )


class BaseMetadataSource(ABC):
    """
    Abstract base class for metadata collaborators

    Implements Template Method pattern: subclasses supply the raw column,
    index and relationship enumerations and get_snapshot() assembles and
    validates them.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Human-readable name for logs and errors"""
        pass

    @abstractmethod
    def _fetch_columns(self) -> Sequence[ColumnMeta]:
        """Column enumeration"""
        pass

    @abstractmethod
    def _fetch_indexes(self) -> Sequence[IndexMeta]:
        """Index enumeration"""
        pass

    def _fetch_relationships(self) -> Sequence[ExistingRelationship]:
        """Relationships already known from foreign key introspection"""
        return []

    def _fetch_opaque_tables(self) -> Sequence[TableKey]:
        return []

    @property
    def supports_nonunique_indexes(self) -> bool:
        return True

    def get_snapshot(self) -> MetadataSnapshot:
        """Assemble a validated snapshot from the enumerations"""
        with self._lock:
            snapshot = MetadataSnapshot(
                columns=list(self._fetch_columns()),
                indexes=list(self._fetch_indexes()),
                relationships=list(self._fetch_relationships()),
                supports_nonunique_indexes=self.supports_nonunique_indexes,
                opaque_tables=list(self._fetch_opaque_tables()),
            )
        return snapshot.validate()
