"""
Inference Module

Turns an ordered list of relationship constraint / exclusion rules and a
metadata snapshot into the relationships those rules authorize:

    result = infer_relationships(
        snapshot,
        rel_constraint=[
            ("foo_id", "foos.id"),
            (re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"]),
        ],
        rel_exclude=[("audit.", "")],
    )
    for spec in result.relationships:
        print(spec)
    for diagnostic in result.diagnostics:
        print(diagnostic)
"""

from .models import (
    DiagnosticSeverity,
    DiagnosticCode,
    Diagnostic,
    Candidate,
    RelationshipSpec,
    InferenceResult,
)

from .compiler import (
    ParsedSide,
    SideDefaults,
    CompilerState,
    PatternCompiler,
    parse_side,
    fold_constraint_entry,
    compile_rules,
)

from .matcher import (
    RuleMatch,
    RelationshipMatcher,
    check_data_types,
    normalize_type,
)

from .resolver import (
    Resolution,
    PriorityResolver,
)

from .consolidator import CompositeKeyConsolidator

from .engine import (
    RelationshipInferenceEngine,
    infer_relationships,
)

__all__ = [
    # Models
    "DiagnosticSeverity",
    "DiagnosticCode",
    "Diagnostic",
    "Candidate",
    "RelationshipSpec",
    "InferenceResult",

    # Compiler
    "ParsedSide",
    "SideDefaults",
    "CompilerState",
    "PatternCompiler",
    "parse_side",
    "fold_constraint_entry",
    "compile_rules",

    # Matcher
    "RuleMatch",
    "RelationshipMatcher",
    "check_data_types",
    "normalize_type",

    # Resolver
    "Resolution",
    "PriorityResolver",

    # Consolidator
    "CompositeKeyConsolidator",

    # Engine (main entry point)
    "RelationshipInferenceEngine",
    "infer_relationships",
]
