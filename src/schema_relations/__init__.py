"""
Schema Relations
================

Rule-driven relationship inference for relational schema metadata.

Given a snapshot of tables, columns, data types and indexes, plus an ordered
list of relationship constraint and exclusion rules, infers the foreign-key
style relationships the rules authorize, resolves ties by index priority and
merges simple-key relationships into composite keys where indexes line up.

Features:
- Literal, regular-expression, list and dict pattern shorthand
- Directive entries that set defaults for later rules
- Capture-group cross referencing between the two sides of a rule
- Priority order: primary > unique > single-column index > composite index
- Composite-key consolidation over aligned composite indexes
- A diagnostic record for every rejected candidate

Quick Start:
------------

    import re
    from schema_relations import StaticMetadataSource, infer_relationships

    source = StaticMetadataSource(
        columns=[
            ("public", "bars", "foo_id", "integer", None),
            ("public", "foos", "id", "integer", None),
        ],
        indexes=[("public", "foos", "primary", ["id"])],
    )

    result = infer_relationships(
        source,
        rel_constraint=[(re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"])],
    )
    for spec in result.relationships:
        print(spec)   # public.bars(foo_id) -> public.foos(id)
"""

__version__ = "1.0.0"
__author__ = "Schema Relations Team"

# Configuration
from .config import (
    LogLevel,
    InferenceConfig,
)

# Pattern model
from .patterns import (
    IndexRestriction,
    TypeStrictness,
    CaptureGroups,
    NameMatcher,
    ColumnLocator,
    SidePattern,
    ConstraintRule,
    ExcludeRule,
)

# Metadata
from .metadata import (
    TableKey,
    ColumnKey,
    IndexKind,
    ColumnMeta,
    IndexMeta,
    ExistingRelationship,
    MetadataSnapshot,
    BaseMetadataSource,
    StaticMetadataSource,
    FileMetadataSource,
    IndexClass,
    IndexClassification,
    MetadataIndex,
)

# Inference
from .inference import (
    DiagnosticSeverity,
    DiagnosticCode,
    Diagnostic,
    Candidate,
    RelationshipSpec,
    InferenceResult,
    PatternCompiler,
    compile_rules,
    RelationshipMatcher,
    PriorityResolver,
    CompositeKeyConsolidator,
    RelationshipInferenceEngine,
    infer_relationships,
)

# Utilities
from .utils import (
    setup_logging,
    get_logger,
    RelationsError,
    ConfigurationError,
    MalformedPatternError,
    UnsupportedModifierError,
    MetadataError,
    format_error,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "LogLevel",
    "InferenceConfig",
    # Pattern model
    "IndexRestriction",
    "TypeStrictness",
    "CaptureGroups",
    "NameMatcher",
    "ColumnLocator",
    "SidePattern",
    "ConstraintRule",
    "ExcludeRule",
    # Metadata
    "TableKey",
    "ColumnKey",
    "IndexKind",
    "ColumnMeta",
    "IndexMeta",
    "ExistingRelationship",
    "MetadataSnapshot",
    "BaseMetadataSource",
    "StaticMetadataSource",
    "FileMetadataSource",
    "IndexClass",
    "IndexClassification",
    "MetadataIndex",
    # Inference
    "DiagnosticSeverity",
    "DiagnosticCode",
    "Diagnostic",
    "Candidate",
    "RelationshipSpec",
    "InferenceResult",
    "PatternCompiler",
    "compile_rules",
    "RelationshipMatcher",
    "PriorityResolver",
    "CompositeKeyConsolidator",
    "RelationshipInferenceEngine",
    "infer_relationships",
    # Utilities
    "setup_logging",
    "get_logger",
    "RelationsError",
    "ConfigurationError",
    "MalformedPatternError",
    "UnsupportedModifierError",
    "MetadataError",
    "format_error",
]
