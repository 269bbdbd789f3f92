"""
Unit Tests for the Priority Resolver
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_relations import (
    Candidate,
    ColumnKey,
    ColumnMeta,
    DiagnosticCode,
    DiagnosticSeverity,
    IndexClass,
    IndexClassification,
    PriorityResolver,
    compile_rules,
)


RULE = compile_rules([("foo_id", "foos.id")])[0]
REFERENCING = ColumnMeta("public", "bars", "foo_id", "integer")


def candidate(table, kind, position=None, width=None):
    return Candidate(
        referencing=REFERENCING,
        referenced=ColumnMeta("public", table, "id", "integer"),
        rule=RULE,
        classification=IndexClassification(kind, position=position, width=width),
    )


class TestIndexClassificationRank:
    """Tests for the priority order"""

    def test_kind_order(self):
        """Test primary > unique > single > composite > none"""
        ranks = [
            IndexClassification(IndexClass.PRIMARY).rank,
            IndexClassification(IndexClass.UNIQUE).rank,
            IndexClassification(IndexClass.SINGLE_NONUNIQUE).rank,
            IndexClassification(IndexClass.COMPOSITE, position=0, width=2).rank,
            IndexClassification(IndexClass.NONE).rank,
        ]

        assert ranks == sorted(ranks)
        assert len(set(ranks)) == len(ranks)

    def test_composite_order(self):
        """Test lower offset first, then wider index"""
        leftmost_narrow = IndexClassification(IndexClass.COMPOSITE, position=0, width=2)
        leftmost_wide = IndexClassification(IndexClass.COMPOSITE, position=0, width=3)
        second = IndexClassification(IndexClass.COMPOSITE, position=1, width=4)

        assert leftmost_wide.rank < leftmost_narrow.rank < second.rank

    def test_unknown_ranks_with_none(self):
        """Test unknown index information never outranks an index"""
        assert IndexClassification(IndexClass.UNKNOWN).rank == IndexClassification(IndexClass.NONE).rank


class TestPriorityResolver:
    """Tests for picking one referenced column"""

    @pytest.fixture
    def resolver(self):
        return PriorityResolver()

    def test_single_candidate(self, resolver):
        """Test a lone candidate wins"""
        only = candidate("foos", IndexClass.NONE)

        resolution = resolver.resolve_one([only])

        assert resolution.winner is only
        assert not resolution.is_ambiguous
        assert resolution.diagnostic is None

    def test_primary_beats_unique(self, resolver):
        """Test the better index wins"""
        unique = candidate("foos", IndexClass.UNIQUE)
        primary = candidate("bazs", IndexClass.PRIMARY)

        assert resolver.resolve_one([unique, primary]).winner is primary

    def test_single_column_beats_composite(self, resolver):
        """Test a single-column non-unique index outranks any composite index"""
        single = candidate("foos", IndexClass.SINGLE_NONUNIQUE)
        composite = candidate("bazs", IndexClass.COMPOSITE, position=0, width=2)

        assert resolver.resolve_one([composite, single]).winner is single

    def test_composite_leftmost_wins(self, resolver):
        """Test the lower composite offset wins"""
        leftmost = candidate("foos", IndexClass.COMPOSITE, position=0, width=2)
        second = candidate("bazs", IndexClass.COMPOSITE, position=1, width=2)

        assert resolver.resolve_one([second, leftmost]).winner is leftmost

    def test_tie_is_ambiguous(self, resolver):
        """Test equal best ranks yield no winner and a warning"""
        first = candidate("foos", IndexClass.PRIMARY)
        second = candidate("bazs", IndexClass.PRIMARY)
        worse = candidate("quxs", IndexClass.UNIQUE)

        resolution = resolver.resolve_one([first, second, worse])

        assert resolution.winner is None
        assert resolution.is_ambiguous
        assert resolution.tied == [first, second]
        assert resolution.diagnostic.code == DiagnosticCode.AMBIGUOUS_MATCH
        assert resolution.diagnostic.severity == DiagnosticSeverity.WARNING
        assert resolution.diagnostic.context == (
            ColumnKey("public", "bars", "foo_id"),
            ColumnKey("public", "foos", "id"),
            ColumnKey("public", "bazs", "id"),
        )

    def test_empty(self, resolver):
        """Test no candidates resolve to nothing"""
        resolution = resolver.resolve_one([])

        assert resolution.winner is None
        assert not resolution.is_ambiguous

    def test_resolve_groups(self, resolver):
        """Test resolving several referencing columns keeps group order"""
        other_ref = ColumnMeta("public", "bazs", "foo_id", "integer")
        winner = candidate("foos", IndexClass.PRIMARY)
        tied = [
            Candidate(other_ref, ColumnMeta("public", "foos", "id", "integer"), RULE,
                      IndexClassification(IndexClass.NONE)),
            Candidate(other_ref, ColumnMeta("public", "quxs", "id", "integer"), RULE,
                      IndexClassification(IndexClass.NONE)),
        ]

        winners, diagnostics = resolver.resolve({
            REFERENCING.key: [winner],
            other_ref.key: tied,
        })

        assert winners == [winner]
        assert [d.code for d in diagnostics] == [DiagnosticCode.AMBIGUOUS_MATCH]
