"""
Inference Model Definitions

Transient candidates produced while matching, the relationship specs handed
to the relationship installer, and the diagnostic records describing every
rejection.
"""
from __future__ import annotations

import json
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..metadata import ColumnKey, ColumnMeta, IndexClassification, TableKey
from ..patterns import ConstraintRule


class DiagnosticSeverity(str, Enum):
    """Severity of a diagnostic record"""
    INFO = "info"
    WARNING = "warning"


class DiagnosticCode(str, Enum):
    """Why a candidate was dropped, or what limited the run"""
    INDEX_MISMATCH = "index mismatch"
    UNKNOWN_DATA_TYPE = "unknown data type"
    DATA_TYPE_MISMATCH = "data type mismatch"
    DATA_TYPE_SIZE_MISMATCH = "data type size mismatch"
    MATCHED_BUT_EXCLUDED = "matched but excluded"
    MATCHED_BUT_NOT_LEFTMOST = "matched but not leftmost"
    MATCHED_BUT_DUPLICATED = "matched but duplicated"
    AMBIGUOUS_MATCH = "ambiguous match"
    NONUNIQUE_INDEXES_UNAVAILABLE = "non-unique index information unavailable"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal finding of one inference run"""
    severity: DiagnosticSeverity
    code: DiagnosticCode
    message: str
    rule_index: Optional[int] = None
    context: Tuple[ColumnKey, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "rule_index": self.rule_index,
            "context": [str(key) for key in self.context],
        }

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass
class Candidate:
    """A (referencing, referenced) column pair surviving the rule checks"""
    referencing: ColumnMeta
    referenced: ColumnMeta
    rule: ConstraintRule
    classification: IndexClassification
    rejection_reason: Optional[DiagnosticCode] = None

    @property
    def rule_index(self) -> int:
        return self.rule.index

    @property
    def priority_rank(self) -> Tuple[int, int, int]:
        return self.classification.rank

    def describe(self) -> str:
        return f"{self.referencing.key} -> {self.referenced.key}"


@dataclass(frozen=True)
class RelationshipSpec:
    """
    A relationship to install

    One column pair is a simple-key relationship; more than one is a
    composite-key relationship whose pairs follow index order.
    """
    referencing: TableKey
    referenced: TableKey
    column_pairs: Tuple[Tuple[str, str], ...]
    rule_index: Optional[int] = None

    @property
    def referencing_table(self) -> str:
        return self.referencing.table

    @property
    def referenced_table(self) -> str:
        return self.referenced.table

    @property
    def referencing_columns(self) -> List[str]:
        return [pair[0] for pair in self.column_pairs]

    @property
    def referenced_columns(self) -> List[str]:
        return [pair[1] for pair in self.column_pairs]

    @property
    def is_composite(self) -> bool:
        return len(self.column_pairs) > 1

    @property
    def name(self) -> str:
        return f"fk_{self.referencing_table}_{'_'.join(self.referencing_columns)}"

    def get_join_sql(self) -> str:
        """Generate SQL JOIN condition"""
        conditions = []
        for src_col, tgt_col in self.column_pairs:
            conditions.append(f"{self.referencing}.{src_col} = {self.referenced}.{tgt_col}")
        return " AND ".join(conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "referencing_schema": self.referencing.schema,
            "referencing_table": self.referencing_table,
            "referenced_schema": self.referenced.schema,
            "referenced_table": self.referenced_table,
            "column_pairs": [list(pair) for pair in self.column_pairs],
            "rule_index": self.rule_index,
        }

    def __str__(self) -> str:
        return (
            f"{self.referencing}({', '.join(self.referencing_columns)}) -> "
            f"{self.referenced}({', '.join(self.referenced_columns)})"
        )


@dataclass
class InferenceResult:
    """Everything one inference run produced"""
    relationships: List[RelationshipSpec] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    run_id: Optional[str] = None

    @property
    def has_warnings(self) -> bool:
        return any(d.severity is DiagnosticSeverity.WARNING for d in self.diagnostics)

    def diagnostics_by_code(self) -> "OrderedDict[DiagnosticCode, List[Diagnostic]]":
        """Diagnostics grouped by code, codes in first-seen order"""
        grouped: "OrderedDict[DiagnosticCode, List[Diagnostic]]" = OrderedDict()
        for diagnostic in self.diagnostics:
            grouped.setdefault(diagnostic.code, []).append(diagnostic)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "relationships": [r.to_dict() for r in self.relationships],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON"""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def to_yaml(self) -> str:
        """Export as YAML"""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
