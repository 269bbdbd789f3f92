"""
Metadata Index

In-memory, queryable view over one MetadataSnapshot: columns per table with
their data types, and indexes per table classified by kind with ordered
column membership.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .base import ColumnKey, ColumnMeta, IndexKind, IndexMeta, MetadataSnapshot, TableKey
from ..patterns import CaptureGroups, ColumnLocator, IndexRestriction
from ..utils import get_logger

logger = get_logger(__name__)


class IndexClass(str, Enum):
    """Best index a column belongs to, in priority order"""
    PRIMARY = "primary"
    UNIQUE = "unique"
    SINGLE_NONUNIQUE = "single_nonunique"
    COMPOSITE = "composite_nonunique"
    NONE = "none"
    UNKNOWN = "unknown"


_CLASS_ORDER = {
    IndexClass.PRIMARY: 0,
    IndexClass.UNIQUE: 1,
    IndexClass.SINGLE_NONUNIQUE: 2,
    IndexClass.COMPOSITE: 3,
    IndexClass.NONE: 4,
    IndexClass.UNKNOWN: 4,
}


@dataclass(frozen=True)
class IndexClassification:
    """
    Classification of one column for priority resolution

    For COMPOSITE, position is the column's leftmost offset and width the
    size of the composite index it was classified by.
    """
    kind: IndexClass
    position: Optional[int] = None
    width: Optional[int] = None

    @property
    def rank(self) -> Tuple[int, int, int]:
        """Sort key, best first"""
        if self.kind is IndexClass.COMPOSITE:
            return (_CLASS_ORDER[self.kind], self.position or 0, -(self.width or 0))
        return (_CLASS_ORDER[self.kind], 0, 0)

    def __str__(self) -> str:
        if self.kind is IndexClass.COMPOSITE:
            return f"{self.kind.value}({self.position}/{self.width})"
        return self.kind.value


@dataclass(frozen=True)
class ColumnMatch:
    """A column matched by a locator, with the text its regexes captured"""
    column: ColumnMeta
    groups: CaptureGroups


class MetadataIndex:
    """
    Queryable view over a metadata snapshot

    When the snapshot reports no non-unique index support, non-unique indexes
    are hidden from every query, which makes index restriction 'any' behave
    like 'unique'.
    """

    def __init__(self, snapshot: MetadataSnapshot):
        self.snapshot = snapshot
        self.capability_gap = not snapshot.supports_nonunique_indexes

        self._columns: List[ColumnMeta] = list(snapshot.columns)
        self._by_key: Dict[ColumnKey, ColumnMeta] = {c.key: c for c in self._columns}
        self._opaque: Set[TableKey] = set(snapshot.opaque_tables)

        self._indexes: Dict[TableKey, List[IndexMeta]] = {}
        for index in snapshot.indexes:
            if self.capability_gap and index.kind is IndexKind.NONUNIQUE:
                continue
            self._indexes.setdefault(index.table_key, []).append(index)

        self._existing_referencing: Set[ColumnKey] = {
            rel.referencing for rel in snapshot.relationships
        }

        if self.capability_gap:
            logger.debug(
                "Metadata source cannot report non-unique indexes; "
                "index restriction 'any' now behaves like 'unique'"
            )

    def columns_matching(self, locator: ColumnLocator) -> List[ColumnMatch]:
        """All columns the locator matches, in snapshot order"""
        matches = []
        for column in self._columns:
            groups = locator.match(column.schema, column.table, column.column)
            if groups is not None:
                matches.append(ColumnMatch(column, groups))
        return matches

    def column(self, key: ColumnKey) -> Optional[ColumnMeta]:
        return self._by_key.get(key)

    def indexes_for(self, schema: Optional[str], table: str) -> List[IndexMeta]:
        """Visible indexes of a table, in snapshot order"""
        return list(self._indexes.get(TableKey(schema, table), []))

    def composite_indexes_for(self, schema: Optional[str], table: str) -> List[IndexMeta]:
        return [i for i in self.indexes_for(schema, table) if i.is_composite]

    def is_opaque(self, schema: Optional[str], table: str) -> bool:
        return TableKey(schema, table) in self._opaque

    def best_index_classification(
        self,
        schema: Optional[str],
        table: str,
        column: str,
    ) -> IndexClassification:
        """Classify a column by the best index it belongs to"""
        if self.is_opaque(schema, table):
            return IndexClassification(IndexClass.UNKNOWN)

        single_kinds: Set[IndexKind] = set()
        best_composite: Optional[Tuple[int, int]] = None

        for index in self.indexes_for(schema, table):
            position = index.position_of(column)
            if position is None:
                continue
            if not index.is_composite:
                single_kinds.add(index.kind)
                continue
            candidate = (position, index.width)
            if best_composite is None or candidate < best_composite:
                best_composite = candidate

        if IndexKind.PRIMARY in single_kinds:
            return IndexClassification(IndexClass.PRIMARY)
        if IndexKind.UNIQUE in single_kinds:
            return IndexClassification(IndexClass.UNIQUE)
        if IndexKind.NONUNIQUE in single_kinds:
            return IndexClassification(IndexClass.SINGLE_NONUNIQUE)
        if best_composite is not None:
            position, width = best_composite
            return IndexClassification(IndexClass.COMPOSITE, position=position, width=width)
        return IndexClassification(IndexClass.NONE)

    def satisfies(self, column: ColumnMeta, restriction: IndexRestriction) -> bool:
        """Whether a column's index membership complies with a restriction"""
        if restriction is IndexRestriction.OPTIONAL:
            return True
        if self.is_opaque(column.schema, column.table):
            return restriction is IndexRestriction.ANY

        if restriction is IndexRestriction.PRIMARY:
            allowed = {IndexKind.PRIMARY}
        elif restriction is IndexRestriction.UNIQUE:
            allowed = {IndexKind.PRIMARY, IndexKind.UNIQUE}
        else:
            allowed = set(IndexKind)

        return any(
            index.kind in allowed and index.position_of(column.column) is not None
            for index in self.indexes_for(column.schema, column.table)
        )

    def has_existing_relationship(self, key: ColumnKey) -> bool:
        """Whether foreign key introspection already found a relationship from this column"""
        return key in self._existing_referencing
