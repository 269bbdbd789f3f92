"""
Composite-Key Consolidator

Merges resolved simple-key candidates between the same two tables into one
composite-key relationship when their columns line up, position for
position, with a composite index on each table covering the full width of
both indexes.
"""
from __future__ import annotations

from typing import Dict, List, Sequence, Set, Tuple

from .models import Candidate, Diagnostic, DiagnosticCode, DiagnosticSeverity, RelationshipSpec
from ..metadata import IndexClass, IndexMeta, MetadataIndex, TableKey
from ..patterns import IndexRestriction
from ..utils import get_logger

logger = get_logger(__name__)


class CompositeKeyConsolidator:
    """Turns resolved candidates into RelationshipSpecs"""

    def __init__(self, index: MetadataIndex):
        self.index = index

    def index_pairings(self, referencing: TableKey, referenced: TableKey) -> List[Tuple[IndexMeta, IndexMeta]]:
        """Equal-width composite index pairs of two tables, widest first"""
        pairings = [
            (left, right)
            for left in self.index.composite_indexes_for(*referencing)
            for right in self.index.composite_indexes_for(*referenced)
            if left.width == right.width
        ]
        pairings.sort(key=lambda pair: -pair[0].width)
        return pairings

    def consolidate(self, resolved: Sequence[Candidate]) -> Tuple[List[RelationshipSpec], List[Diagnostic]]:
        """
        Build the final relationship list

        Specs keep the order of the resolved candidates; a composite spec
        takes the place of its earliest member.
        """
        # keyed by the ordered (referencing, referenced) pair; a.x -> b.y and
        # b.y -> a.x never merge into one composite
        groups: Dict[Tuple[TableKey, TableKey], List[int]] = {}
        for position, candidate in enumerate(resolved):
            pair = (candidate.referencing.table_key, candidate.referenced.table_key)
            groups.setdefault(pair, []).append(position)

        specs: Dict[int, RelationshipSpec] = {}
        consumed: Set[int] = set()

        for (referencing, referenced), positions in groups.items():
            if len(positions) < 2:
                continue

            for left, right in self.index_pairings(referencing, referenced):
                available = {
                    (resolved[p].referencing.column, resolved[p].referenced.column): p
                    for p in positions if p not in consumed
                }
                needed = tuple(zip(left.ordered_columns, right.ordered_columns))
                if not all(pair in available for pair in needed):
                    continue

                members = [available[pair] for pair in needed]
                consumed.update(members)
                first = min(members)
                specs[first] = RelationshipSpec(
                    referencing=referencing,
                    referenced=referenced,
                    column_pairs=needed,
                    rule_index=resolved[first].rule_index,
                )
                logger.debug(f"Consolidated composite relationship {specs[first]}")

        diagnostics: List[Diagnostic] = []
        for position, candidate in enumerate(resolved):
            if position in consumed:
                continue
            specs[position] = RelationshipSpec(
                referencing=candidate.referencing.table_key,
                referenced=candidate.referenced.table_key,
                column_pairs=((candidate.referencing.column, candidate.referenced.column),),
                rule_index=candidate.rule_index,
            )
            if self._not_leftmost(candidate):
                candidate.rejection_reason = DiagnosticCode.MATCHED_BUT_NOT_LEFTMOST
                if candidate.rule.referenced.diagnostics:
                    diagnostics.append(Diagnostic(
                        severity=DiagnosticSeverity.INFO,
                        code=DiagnosticCode.MATCHED_BUT_NOT_LEFTMOST,
                        message=(
                            f"{candidate.describe()} was not merged "
                            f"({candidate.classification})"
                        ),
                        rule_index=candidate.rule_index,
                        context=(candidate.referencing.key, candidate.referenced.key),
                    ))

        return [specs[p] for p in sorted(specs)], diagnostics

    def _not_leftmost(self, candidate: Candidate) -> bool:
        """Referenced column sits past the first slot of the composite index it was classified by"""
        if candidate.rule.referenced.index_restriction is IndexRestriction.OPTIONAL:
            return False
        classification = candidate.classification
        return classification.kind is IndexClass.COMPOSITE and (classification.position or 0) > 0
