"""
Relationship Matcher

Enumerates (referencing, referenced) column pairs for each constraint rule
and drops the pairs that fail the rule's checks. Checks run in a fixed order
and stop at the first failure:

1. capture groups shared by both sides captured the same text
2. the referenced column satisfies the referenced side's index restriction
3. the data types are compatible under the referenced side's strictness
4. no exclude rule matches the pair
5. no relationship already exists from the referencing column

Same-table pairs are skipped without a diagnostic unless the rule names a
table on both sides.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .models import Candidate, Diagnostic, DiagnosticCode, DiagnosticSeverity
from ..metadata import ColumnKey, ColumnMatch, ColumnMeta, MetadataIndex
from ..patterns import ConstraintRule, ExcludeRule, TypeStrictness
from ..utils import get_logger, log_context

logger = get_logger(__name__)

_UNKNOWN_TYPES = {"", "unknown"}


def normalize_type(data_type: Optional[str]) -> Optional[str]:
    """Lower-cased type name, or None when the type is unknown"""
    if data_type is None:
        return None
    normalized = data_type.strip().lower()
    if normalized in _UNKNOWN_TYPES:
        return None
    return normalized


def check_data_types(
    referencing: ColumnMeta,
    referenced: ColumnMeta,
    strictness: TypeStrictness,
) -> Optional[DiagnosticCode]:
    """Return the rejection code for incompatible types, None when compatible"""
    left = normalize_type(referencing.data_type)
    right = normalize_type(referenced.data_type)

    if left is None or right is None:
        if strictness is TypeStrictness.EXACT:
            return DiagnosticCode.UNKNOWN_DATA_TYPE
        return None

    if left != right:
        return DiagnosticCode.DATA_TYPE_MISMATCH

    if strictness is TypeStrictness.EXACT and referencing.size != referenced.size:
        return DiagnosticCode.DATA_TYPE_SIZE_MISMATCH

    return None


@dataclass
class RuleMatch:
    """Outcome of evaluating one constraint rule"""
    rule: ConstraintRule
    groups: Dict[ColumnKey, List[Candidate]] = field(default_factory=dict)
    rejected: List[Candidate] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def candidates(self) -> List[Candidate]:
        return [c for group in self.groups.values() for c in group]


class RelationshipMatcher:
    """
    Evaluates constraint rules against a Metadata Index

    Usage:
        matcher = RelationshipMatcher(index, exclude_rules)
        settled = set()
        for rule_match in matcher.iter_matches(rules, settled):
            ...  # add resolved referencing columns to settled
    """

    def __init__(self, index: MetadataIndex, exclude_rules: Sequence[ExcludeRule] = ()):
        self.index = index
        self.exclude_rules = list(exclude_rules)

    def match(self, rules: Iterable[ConstraintRule]) -> Tuple[List[Candidate], List[Diagnostic]]:
        """
        Evaluate all rules; the first rule leaving any candidate for a
        referencing column claims it, later rules skip that column
        """
        candidates: List[Candidate] = []
        diagnostics: List[Diagnostic] = []
        settled: Set[ColumnKey] = set()

        for rule_match in self.iter_matches(rules, settled):
            candidates.extend(rule_match.candidates)
            diagnostics.extend(rule_match.diagnostics)
            settled.update(rule_match.groups)

        return candidates, diagnostics

    def iter_matches(
        self,
        rules: Iterable[ConstraintRule],
        settled: AbstractSet[ColumnKey],
    ) -> Iterator[RuleMatch]:
        """
        Yield one RuleMatch per rule in declaration order

        settled is read when each rule starts, so the caller may add
        referencing columns to it between iterations.
        """
        for rule in rules:
            with log_context(rule_index=rule.index):
                rule_match = self.match_rule(rule, settled)
                logger.debug(
                    f"Rule {rule}: {len(rule_match.candidates)} candidate(s) for "
                    f"{len(rule_match.groups)} referencing column(s), "
                    f"{len(rule_match.rejected)} rejected"
                )
            yield rule_match

    def match_rule(
        self,
        rule: ConstraintRule,
        settled: AbstractSet[ColumnKey] = frozenset(),
    ) -> RuleMatch:
        """Evaluate one rule, skipping referencing columns already settled"""
        result = RuleMatch(rule=rule)
        referencing_matches = self.index.columns_matching(rule.referencing.locator)
        if not referencing_matches:
            return result

        targets = self.index.columns_matching(rule.referenced.locator)
        same_schema_only = rule.referenced.locator.schema is None

        for ref in referencing_matches:
            ref_key = ref.column.key
            if ref_key in settled:
                continue

            survivors = []
            for target in targets:
                if not self._in_scope(rule, ref, target, same_schema_only):
                    continue
                if not ref.groups.consistent_with(target.groups):
                    continue

                candidate = Candidate(
                    referencing=ref.column,
                    referenced=target.column,
                    rule=rule,
                    classification=self.index.best_index_classification(
                        target.column.schema, target.column.table, target.column.column
                    ),
                )
                reason = self._rejection_reason(rule, candidate)
                if reason is not None:
                    candidate.rejection_reason = reason
                    result.rejected.append(candidate)
                    if rule.referenced.diagnostics:
                        result.diagnostics.append(self._diagnostic(rule, candidate))
                    continue

                survivors.append(candidate)

            if survivors:
                result.groups[ref_key] = survivors

        return result

    def _in_scope(
        self,
        rule: ConstraintRule,
        ref: ColumnMatch,
        target: ColumnMatch,
        same_schema_only: bool,
    ) -> bool:
        if ref.column.key == target.column.key:
            return False
        if same_schema_only and target.column.schema != ref.column.schema:
            return False
        if ref.column.table_key == target.column.table_key and not rule.explicit_tables:
            return False
        return True

    def _rejection_reason(self, rule: ConstraintRule, candidate: Candidate) -> Optional[DiagnosticCode]:
        if not self.index.satisfies(candidate.referenced, rule.referenced.index_restriction):
            return DiagnosticCode.INDEX_MISMATCH

        type_problem = check_data_types(
            candidate.referencing, candidate.referenced, rule.referenced.type_strictness
        )
        if type_problem is not None:
            return type_problem

        if self.is_excluded(candidate.referencing, candidate.referenced):
            return DiagnosticCode.MATCHED_BUT_EXCLUDED

        if self.index.has_existing_relationship(candidate.referencing.key):
            return DiagnosticCode.MATCHED_BUT_DUPLICATED

        return None

    def is_excluded(self, referencing: ColumnMeta, referenced: ColumnMeta) -> bool:
        return any(
            rule.matches(tuple(referencing.key), tuple(referenced.key))
            for rule in self.exclude_rules
        )

    def _diagnostic(self, rule: ConstraintRule, candidate: Candidate) -> Diagnostic:
        code = candidate.rejection_reason
        detail = ""
        if code is DiagnosticCode.INDEX_MISMATCH:
            detail = (
                f" (requires {rule.referenced.index_restriction.value}, "
                f"found {candidate.classification})"
            )
        elif code in (DiagnosticCode.DATA_TYPE_MISMATCH, DiagnosticCode.DATA_TYPE_SIZE_MISMATCH,
                      DiagnosticCode.UNKNOWN_DATA_TYPE):
            detail = (
                f" ({_describe_type(candidate.referencing)} vs "
                f"{_describe_type(candidate.referenced)})"
            )

        return Diagnostic(
            severity=DiagnosticSeverity.INFO,
            code=code,
            message=f"{candidate.describe()}{detail}",
            rule_index=rule.index,
            context=(candidate.referencing.key, candidate.referenced.key),
        )


def _describe_type(column: ColumnMeta) -> str:
    if column.data_type is None:
        return "unknown"
    if column.size is None:
        return column.data_type
    return f"{column.data_type}({column.size})"
