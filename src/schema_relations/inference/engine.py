"""
Relationship Inference Engine

Runs the full pipeline for one metadata snapshot and one rule list:

    raw rules -> PatternCompiler -> RelationshipMatcher (MetadataIndex)
              -> PriorityResolver -> CompositeKeyConsolidator

The engine keeps no state between runs. Relationships already known from
foreign key introspection are only consulted for duplicate suppression and
are never part of the output.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional, Set, Union

from .compiler import PatternCompiler
from .consolidator import CompositeKeyConsolidator
from .matcher import RelationshipMatcher
from .models import Candidate, Diagnostic, DiagnosticCode, DiagnosticSeverity, InferenceResult
from .resolver import PriorityResolver
from ..config import InferenceConfig
from ..metadata import BaseMetadataSource, ColumnKey, MetadataIndex, MetadataSnapshot
from ..utils import get_logger, log_context, log_operation, new_run_id

logger = get_logger(__name__)

MetadataInput = Union[MetadataSnapshot, BaseMetadataSource]


class RelationshipInferenceEngine:
    """
    Infers the relationships a rule list authorizes over a metadata snapshot

    Usage:
        engine = RelationshipInferenceEngine(source, InferenceConfig(
            rel_constraint=[("foo_id", "foos.id")],
        ))
        result = engine.run()
        for spec in result.relationships:
            install(spec)
    """

    def __init__(self, metadata: MetadataInput, config: Optional[InferenceConfig] = None):
        self.metadata = metadata
        self.config = config or InferenceConfig()
        self.compiler = PatternCompiler()
        self.resolver = PriorityResolver()

    def _snapshot(self) -> MetadataSnapshot:
        if isinstance(self.metadata, BaseMetadataSource):
            return self.metadata.get_snapshot()
        return self.metadata.validate()

    def run(self) -> InferenceResult:
        """Execute one inference run"""
        run_id = new_run_id()
        if not self.config.rel_constraint:
            return InferenceResult(run_id=run_id)

        constraints = self.compiler.compile_constraints(self.config.rel_constraint)
        excludes = self.compiler.compile_excludes(self.config.rel_exclude)
        if not constraints:
            return InferenceResult(run_id=run_id)

        with log_context(run_id=run_id), log_operation(
            logger, "relationship_inference", rules=len(constraints), excludes=len(excludes)
        ) as operation:
            index = MetadataIndex(self._snapshot())
            diagnostics: List[Diagnostic] = []
            if index.capability_gap:
                diagnostics.append(Diagnostic(
                    severity=DiagnosticSeverity.WARNING,
                    code=DiagnosticCode.NONUNIQUE_INDEXES_UNAVAILABLE,
                    message=(
                        "Metadata source cannot report non-unique indexes; "
                        "only primary and unique indexes are considered"
                    ),
                ))

            matcher = RelationshipMatcher(index, excludes)
            settled: Set[ColumnKey] = set()
            winners: List[Candidate] = []

            for rule_match in matcher.iter_matches(constraints, settled):
                diagnostics.extend(rule_match.diagnostics)
                for referencing_key, candidates in rule_match.groups.items():
                    resolution = self.resolver.resolve_one(candidates)
                    if resolution.winner is not None:
                        settled.add(referencing_key)
                        winners.append(resolution.winner)
                    elif resolution.diagnostic is not None:
                        diagnostics.append(resolution.diagnostic)

            consolidator = CompositeKeyConsolidator(index)
            relationships, consolidation_diagnostics = consolidator.consolidate(winners)
            diagnostics.extend(consolidation_diagnostics)

            if self.config.quiet:
                diagnostics = []
            else:
                self._log_diagnostics(diagnostics)

            operation['relationships'] = len(relationships)
            operation['diagnostics'] = len(diagnostics)

        return InferenceResult(relationships=relationships, diagnostics=diagnostics, run_id=run_id)

    def _log_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            if diagnostic.severity is DiagnosticSeverity.WARNING:
                logger.warning(str(diagnostic))
            else:
                logger.info(str(diagnostic))


def infer_relationships(
    metadata: MetadataInput,
    rel_constraint: Iterable[Any],
    rel_exclude: Optional[Iterable[Any]] = None,
    quiet: bool = False,
) -> InferenceResult:
    """
    Quick helper: run the engine once

    Example:
        result = infer_relationships(snapshot, [("foo_id", "foos.id")])
    """
    config = InferenceConfig(
        rel_constraint=list(rel_constraint),
        rel_exclude=list(rel_exclude or []),
        quiet=quiet,
    )
    return RelationshipInferenceEngine(metadata, config).run()
