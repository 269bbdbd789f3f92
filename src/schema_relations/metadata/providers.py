"""
Metadata Sources

Provides ways to hand schema metadata to the inference engine:
1. StaticMetadataSource - From in-memory enumerations (what a loader already holds)
2. FileMetadataSource - From a YAML/JSON snapshot file
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import yaml

from .base import (
    BaseMetadataSource,
    ColumnKey,
    ColumnMeta,
    ExistingRelationship,
    IndexKind,
    IndexMeta,
    MetadataSnapshot,
    TableKey,
)
from ..utils import MetadataError, get_logger

logger = get_logger(__name__)


def _to_column(entry: Union[ColumnMeta, Sequence[Any]]) -> ColumnMeta:
    if isinstance(entry, ColumnMeta):
        return entry
    if not 3 <= len(entry) <= 5:
        raise MetadataError(f"Column entry must be (schema, table, column[, type[, size]]): {entry!r}")
    return ColumnMeta(*entry)


def _to_index(entry: Union[IndexMeta, Sequence[Any]]) -> IndexMeta:
    if isinstance(entry, IndexMeta):
        return entry
    if len(entry) != 4:
        raise MetadataError(f"Index entry must be (schema, table, kind, columns): {entry!r}")
    schema, table, kind, columns = entry
    try:
        kind = IndexKind(kind)
    except ValueError as e:
        raise MetadataError(f"Unknown index kind '{kind}' on {table}", original_error=e) from e
    return IndexMeta(schema=schema, table=table, kind=kind, ordered_columns=tuple(columns))


def _to_relationship(entry: Union[ExistingRelationship, Sequence[Any]]) -> ExistingRelationship:
    if isinstance(entry, ExistingRelationship):
        return entry
    referencing, referenced = entry
    return ExistingRelationship(ColumnKey(*referencing), ColumnKey(*referenced))


class StaticMetadataSource(BaseMetadataSource):
    """
    Metadata held in memory

    Accepts either the value types from metadata.base or plain tuples in the
    collaborator's enumeration shape:

        columns:       (schema, table, column, data_type, size)
        indexes:       (schema, table, "primary"|"unique"|"nonunique", [columns])
        relationships: ((schema, table, column), (schema, table, column))
    """

    def __init__(
        self,
        columns: Iterable[Any],
        indexes: Optional[Iterable[Any]] = None,
        relationships: Optional[Iterable[Any]] = None,
        supports_nonunique_indexes: bool = True,
        opaque_tables: Optional[Iterable[Sequence[Any]]] = None,
        name: str = "static",
    ):
        super().__init__()
        self._columns = [_to_column(c) for c in columns]
        self._indexes = [_to_index(i) for i in (indexes or [])]
        self._relationships = [_to_relationship(r) for r in (relationships or [])]
        self._opaque = [TableKey(*t) for t in (opaque_tables or [])]
        self._supports_nonunique = supports_nonunique_indexes
        self._name = name

    @property
    def source_name(self) -> str:
        return self._name

    @property
    def supports_nonunique_indexes(self) -> bool:
        return self._supports_nonunique

    def _fetch_columns(self) -> List[ColumnMeta]:
        return self._columns

    def _fetch_indexes(self) -> List[IndexMeta]:
        return self._indexes

    def _fetch_relationships(self) -> List[ExistingRelationship]:
        return self._relationships

    def _fetch_opaque_tables(self) -> List[TableKey]:
        return self._opaque


class FileMetadataSource(BaseMetadataSource):
    """
    Loads a metadata snapshot from a YAML/JSON file

    Expected file format:
    ```yaml
    supports_nonunique_indexes: true
    columns:
      - {schema: public, table: bars, column: foo_id, data_type: integer}
      - {schema: public, table: foos, column: id, data_type: integer}
    indexes:
      - {schema: public, table: foos, kind: primary, ordered_columns: [id]}
    relationships:
      - referencing: [public, bazs, foo_id]
        referenced: [public, foos, id]
    opaque_tables:
      - [public, foo_view]
    ```
    """

    def __init__(self, file_path: str):
        super().__init__()
        self.file_path = file_path
        self._snapshot: Optional[MetadataSnapshot] = None

    @property
    def source_name(self) -> str:
        return self.file_path

    def is_available(self) -> bool:
        return os.path.exists(self.file_path)

    def _load(self) -> MetadataSnapshot:
        if self._snapshot is not None:
            return self._snapshot

        if not self.is_available():
            raise MetadataError(f"Metadata file not found: {self.file_path}", source=self.file_path)

        try:
            with open(self.file_path, 'r') as f:
                if self.file_path.endswith('.yaml') or self.file_path.endswith('.yml'):
                    data: Dict[str, Any] = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise MetadataError(
                f"Error loading metadata file: {e}", source=self.file_path, original_error=e
            ) from e

        self._snapshot = MetadataSnapshot.from_dict(data)
        logger.debug(
            f"Loaded {len(self._snapshot.columns)} columns and "
            f"{len(self._snapshot.indexes)} indexes from {self.file_path}"
        )
        return self._snapshot

    @property
    def supports_nonunique_indexes(self) -> bool:
        return self._load().supports_nonunique_indexes

    def _fetch_columns(self) -> List[ColumnMeta]:
        return self._load().columns

    def _fetch_indexes(self) -> List[IndexMeta]:
        return self._load().indexes

    def _fetch_relationships(self) -> List[ExistingRelationship]:
        return self._load().relationships

    def _fetch_opaque_tables(self) -> List[TableKey]:
        return self._load().opaque_tables

    def save(self, snapshot: MetadataSnapshot) -> None:
        """Write a snapshot to this file (JSON or YAML based on extension)"""
        with open(self.file_path, 'w') as f:
            if self.file_path.endswith('.yaml') or self.file_path.endswith('.yml'):
                f.write(yaml.dump(snapshot.to_dict(), default_flow_style=False, sort_keys=False))
            else:
                f.write(json.dumps(snapshot.to_dict(), indent=2))
        self._snapshot = None
