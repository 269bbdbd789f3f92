"""
Priority Resolver

Picks the single best referenced column for a referencing column. Ranking,
best first: primary key, unique key, single-column non-unique index,
composite index (lower leftmost offset first, then wider index), no index.
A tie at the best rank is ambiguous and yields nothing for that rule.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Candidate, Diagnostic, DiagnosticCode, DiagnosticSeverity
from ..metadata import ColumnKey
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class Resolution:
    """Outcome of resolving one referencing column"""
    winner: Optional[Candidate] = None
    tied: List[Candidate] = field(default_factory=list)
    diagnostic: Optional[Diagnostic] = None

    @property
    def is_ambiguous(self) -> bool:
        return self.winner is None and len(self.tied) > 1


class PriorityResolver:
    """Selects one candidate per referencing column"""

    def resolve_one(self, candidates: Sequence[Candidate]) -> Resolution:
        """Resolve the candidates one rule produced for one referencing column"""
        if not candidates:
            return Resolution()

        best_rank = min(c.priority_rank for c in candidates)
        best = [c for c in candidates if c.priority_rank == best_rank]

        if len(best) == 1:
            return Resolution(winner=best[0])

        return Resolution(tied=best, diagnostic=self._ambiguity(best))

    def resolve(
        self,
        grouped: Dict[ColumnKey, Sequence[Candidate]],
    ) -> Tuple[List[Candidate], List[Diagnostic]]:
        """Resolve every group, in the order the groups were produced"""
        winners: List[Candidate] = []
        diagnostics: List[Diagnostic] = []

        for candidates in grouped.values():
            resolution = self.resolve_one(candidates)
            if resolution.winner is not None:
                winners.append(resolution.winner)
            elif resolution.diagnostic is not None:
                diagnostics.append(resolution.diagnostic)

        return winners, diagnostics

    def _ambiguity(self, tied: List[Candidate]) -> Diagnostic:
        referencing = tied[0].referencing
        targets = ", ".join(str(c.referenced.key) for c in tied)
        logger.debug(f"Ambiguous match for {referencing.key}: {targets}")
        return Diagnostic(
            severity=DiagnosticSeverity.WARNING,
            code=DiagnosticCode.AMBIGUOUS_MATCH,
            message=(
                f"{referencing.key}: {len(tied)} referenced columns tie at "
                f"{tied[0].classification}: {targets}"
            ),
            rule_index=tied[0].rule_index,
            context=(referencing.key,) + tuple(c.referenced.key for c in tied),
        )
