"""
Metadata Package
Snapshot value types, metadata sources and the queryable Metadata Index
"""
from .base import (
    TableKey,
    ColumnKey,
    IndexKind,
    ColumnMeta,
    IndexMeta,
    ExistingRelationship,
    MetadataSnapshot,
    BaseMetadataSource,
)

from .providers import (
    StaticMetadataSource,
    FileMetadataSource,
)

from .index import (
    IndexClass,
    IndexClassification,
    ColumnMatch,
    MetadataIndex,
)

__all__ = [
    # Value types
    "TableKey",
    "ColumnKey",
    "IndexKind",
    "ColumnMeta",
    "IndexMeta",
    "ExistingRelationship",
    "MetadataSnapshot",
    # Sources
    "BaseMetadataSource",
    "StaticMetadataSource",
    "FileMetadataSource",
    # Index
    "IndexClass",
    "IndexClassification",
    "ColumnMatch",
    "MetadataIndex",
]
