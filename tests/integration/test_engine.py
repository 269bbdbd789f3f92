"""
Integration Tests for the Relationship Inference Engine
"""
import json
import logging
import pytest
import re
import sys
import os

import yaml

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_relations import (
    BaseMetadataSource,
    ColumnKey,
    ColumnMeta,
    DiagnosticCode,
    DiagnosticSeverity,
    FileMetadataSource,
    InferenceConfig,
    MalformedPatternError,
    MetadataError,
    MetadataSnapshot,
    RelationshipInferenceEngine,
    RelationshipSpec,
    StaticMetadataSource,
    TableKey,
    UnsupportedModifierError,
    infer_relationships,
)


def foo_bar_source(**kwargs):
    """bars(foo_id int) and foos(id int primary key)"""
    return StaticMetadataSource(
        columns=[
            ("public", "bars", "foo_id", "integer", None),
            ("public", "foos", "id", "integer", None),
        ],
        indexes=[("public", "foos", "primary", ["id"])],
        **kwargs
    )


def shop_source(**kwargs):
    """A small schema with several possible targets per column"""
    return StaticMetadataSource(
        columns=[
            ("public", "foos", "id", "integer", None),
            ("public", "foos", "code", "integer", None),
            ("public", "quxs", "id", "integer", None),
            ("public", "bars", "foo_id", "integer", None),
            ("public", "bars", "qux_id", "integer", None),
            ("public", "baz", "foo_id", "integer", None),
            ("public", "baz", "qux_id", "integer", None),
            ("public", "lines", "order_id", "integer", None),
            ("public", "lines", "line_no", "integer", None),
            ("public", "shipments", "order_id", "integer", None),
            ("public", "shipments", "line_no", "integer", None),
        ],
        indexes=[
            ("public", "foos", "primary", ["id"]),
            ("public", "foos", "nonunique", ["code", "id"]),
            ("public", "quxs", "primary", ["id"]),
            ("public", "lines", "primary", ["order_id", "line_no"]),
            ("public", "shipments", "nonunique", ["order_id", "line_no"]),
        ],
        **kwargs
    )


def spec(referencing, referenced, *pairs, schema="public"):
    return RelationshipSpec(
        referencing=TableKey(schema, referencing),
        referenced=TableKey(schema, referenced),
        column_pairs=tuple(pairs),
    )


def without_rule_index(specs):
    return [(s.referencing, s.referenced, s.column_pairs) for s in specs]


class UntouchableSource(BaseMetadataSource):
    """Fails on any metadata query"""

    @property
    def source_name(self):
        return "untouchable"

    def _fetch_columns(self):
        raise AssertionError("metadata was queried")

    def _fetch_indexes(self):
        raise AssertionError("metadata was queried")


class TestScenarios:
    """End-to-end behaviour on small schemas"""

    def test_literal_rule_requires_matching_column(self):
        """Test 'bar_id' => 'foos.id' does not fire but 'foo_id' => 'foos.id' does"""
        miss = infer_relationships(foo_bar_source(), [("bar_id", "foos.id")])
        hit = infer_relationships(foo_bar_source(), [("foo_id", "foos.id")])

        assert miss.relationships == []
        assert without_rule_index(hit.relationships) == without_rule_index([
            spec("bars", "foos", ("foo_id", "id")),
        ])
        assert str(hit.relationships[0]) == "public.bars(foo_id) -> public.foos(id)"

    def test_capture_group_rule(self):
        """Test the regex rule fires exactly like the literal one"""
        literal = infer_relationships(foo_bar_source(), [("foo_id", "foos.id")])
        regex = infer_relationships(
            foo_bar_source(),
            [(re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"])],
        )

        assert regex.relationships == literal.relationships

    def test_capability_gap_and_optional_index(self):
        """Test hidden non-unique indexes reject 'any' but not 'optional'"""
        source = StaticMetadataSource(
            columns=[
                ("public", "bars", "foo_id", "integer", None),
                ("public", "foos", "code", "integer", None),
                ("public", "foos", "foo_id", "integer", None),
            ],
            indexes=[("public", "foos", "nonunique", ["code", "foo_id"])],
            supports_nonunique_indexes=False,
        )

        rejected = infer_relationships(
            source, [("bars.foo_id", {"table": "foos", "column": "foo_id", "diagnostics": True})],
        )
        accepted = infer_relationships(
            source, [("bars.foo_id", {"table": "foos", "column": "foo_id", "index": "optional"})],
        )

        assert rejected.relationships == []
        assert [d.code for d in rejected.diagnostics] == [
            DiagnosticCode.NONUNIQUE_INDEXES_UNAVAILABLE,
            DiagnosticCode.INDEX_MISMATCH,
        ]
        assert without_rule_index(accepted.relationships) == without_rule_index([
            spec("bars", "foos", ("foo_id", "foo_id")),
        ])

    def test_tie_is_ambiguous(self):
        """Test equally ranked targets yield nothing and one warning"""
        result = infer_relationships(shop_source(), [("bars.foo_id", "id")])

        assert result.relationships == []
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert diagnostic.code == DiagnosticCode.AMBIGUOUS_MATCH
        assert diagnostic.severity == DiagnosticSeverity.WARNING
        assert ColumnKey("public", "foos", "id") in diagnostic.context
        assert ColumnKey("public", "quxs", "id") in diagnostic.context
        assert result.has_warnings

    def test_exclude_table_root(self):
        """Test 'baz.' => '' removes every relationship from baz"""
        rules = [(re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"])]

        included = infer_relationships(shop_source(), rules)
        excluded = infer_relationships(shop_source(), rules, rel_exclude=[("baz.", "")])

        assert "baz" in [s.referencing_table for s in included.relationships]
        assert "baz" not in [s.referencing_table for s in excluded.relationships]
        assert len(excluded.relationships) == len(included.relationships) - 2


class TestProperties:
    """Properties that hold for every run"""

    def test_no_rules_is_a_no_op(self):
        """Test an empty rule list never touches metadata or exclude rules"""
        result = infer_relationships(UntouchableSource(), [], rel_exclude=[("a.b.c.d", 42)])

        assert result.relationships == []
        assert result.diagnostics == []

    def test_directive_only_rules_are_a_no_op(self):
        """Test rules that only set defaults produce nothing"""
        result = infer_relationships(UntouchableSource(), [(None, {"index": "optional"})])

        assert result.relationships == []
        assert result.diagnostics == []

    @pytest.mark.parametrize("excludes", [
        [("baz.", "")],
        [("", "quxs.")],
        [("foo_id", "")],
        [(re.compile(r".+_id"), [re.compile(r"q.+"), "id"])],
    ])
    def test_exclusion_is_monotonic(self, excludes):
        """Test adding exclude rules only ever removes relationships"""
        rules = [
            (re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"]),
            ({"table": "shipments", "column": re.compile(r"(.+)")},
             {"table": "lines", "column": re.compile(r"(.+)")}),
        ]

        base = infer_relationships(shop_source(), rules)
        narrowed = infer_relationships(shop_source(), rules, rel_exclude=excludes)

        assert set(narrowed.relationships) <= set(base.relationships)

    def test_existing_relationships_are_kept(self):
        """Test pre-existing relationships are neither reproduced nor altered"""
        source = shop_source(relationships=[
            (("public", "bars", "foo_id"), ("public", "foos", "id")),
        ])
        before = source.get_snapshot()

        result = infer_relationships(
            source,
            [(re.compile(r"(.+)_id"), {"table": re.compile(r"(.+)s"), "column": "id", "diagnostics": True})],
        )

        assert "foo_id" not in [
            s.column_pairs[0][0] for s in result.relationships if s.referencing_table == "bars"
        ]
        assert DiagnosticCode.MATCHED_BUT_DUPLICATED in result.diagnostics_by_code()
        assert source.get_snapshot().relationships == before.relationships

    def test_runs_are_deterministic(self):
        """Test repeated runs give identical output"""
        rules = [
            (None, {"diagnostics": True}),
            (re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"]),
            ("bars.foo_id", "id"),
            ({"table": "shipments", "column": re.compile(r"(.+)")},
             {"table": "lines", "column": re.compile(r"(.+)")}),
        ]

        first = infer_relationships(shop_source(), rules)
        second = infer_relationships(shop_source(), rules)

        assert first.relationships == second.relationships
        assert first.diagnostics == second.diagnostics
        assert first.run_id != second.run_id

    def test_composite_completeness(self):
        """Test aligned simple candidates become exactly one composite relationship"""
        result = infer_relationships(
            shop_source(),
            [({"table": "shipments", "column": re.compile(r"(.+)")},
              {"table": "lines", "column": re.compile(r"(.+)")})],
        )

        assert without_rule_index(result.relationships) == without_rule_index([
            spec("shipments", "lines", ("order_id", "order_id"), ("line_no", "line_no")),
        ])
        assert result.relationships[0].is_composite
        assert result.relationships[0].name == "fk_shipments_order_id_line_no"


class TestEngineBehaviour:
    """Engine-level behaviour beyond single components"""

    def test_first_rule_wins(self):
        """Test a resolved referencing column is not reconsidered by later rules"""
        result = infer_relationships(shop_source(), [
            ("bars.foo_id", "foos.id"),
            ("bars.foo_id", "quxs.id"),
        ])

        assert [(s.referenced_table, s.rule_index) for s in result.relationships] == [("foos", 0)]

    def test_ambiguity_falls_through_to_later_rule(self):
        """Test a later rule may resolve a column an earlier rule found ambiguous"""
        result = infer_relationships(shop_source(), [
            ("bars.foo_id", "id"),
            ("bars.foo_id", "foos.id"),
        ])

        assert [(s.referenced_table, s.rule_index) for s in result.relationships] == [("foos", 1)]
        assert [d.code for d in result.diagnostics] == [DiagnosticCode.AMBIGUOUS_MATCH]

    def test_primary_key_preferred(self):
        """Test the primary key outranks a composite index member"""
        result = infer_relationships(shop_source(), [
            ("bars.foo_id", {"table": "foos", "column": re.compile(r"id|code"), "index": "optional"}),
        ])

        assert [(s.referenced_table, s.referenced_columns) for s in result.relationships] == [
            ("foos", ["id"]),
        ]
        assert result.diagnostics == []

    def test_quiet_drops_diagnostics(self, caplog):
        """Test quiet suppresses diagnostics but not relationships"""
        source = StaticMetadataSource(
            columns=[
                ("public", "bars", "foo_id", "integer", None),
                ("public", "foos", "id", "integer", None),
                ("public", "quxs", "id", "integer", None),
            ],
            supports_nonunique_indexes=False,
        )
        rules = [
            ("bars.foo_id", {"column": "id", "index": "optional"}),
            ("bars.foo_id", {"table": "foos", "column": "id", "index": "optional"}),
        ]

        with caplog.at_level(logging.WARNING, logger="schema_relations"):
            quiet = infer_relationships(source, rules, quiet=True)
        assert caplog.text == ""

        loud = infer_relationships(source, rules)

        assert quiet.diagnostics == []
        assert quiet.relationships == loud.relationships
        assert [s.referenced_table for s in loud.relationships] == ["foos"]
        assert [d.code for d in loud.diagnostics] == [
            DiagnosticCode.NONUNIQUE_INDEXES_UNAVAILABLE,
            DiagnosticCode.AMBIGUOUS_MATCH,
        ]

    def test_diagnostics_are_logged(self, caplog):
        """Test warnings reach the log"""
        with caplog.at_level(logging.WARNING, logger="schema_relations"):
            infer_relationships(shop_source(), [("bars.foo_id", "id")])

        assert "ambiguous match" in caplog.text

    def test_capability_gap_reported_once(self):
        """Test the capability gap warning appears once per run"""
        result = infer_relationships(
            shop_source(supports_nonunique_indexes=False),
            [("foo_id", "foos.id"), ("qux_id", "quxs.id")],
        )

        codes = [d.code for d in result.diagnostics]
        assert codes.count(DiagnosticCode.NONUNIQUE_INDEXES_UNAVAILABLE) == 1
        assert len(result.relationships) == 4

    def test_malformed_rule_is_fatal(self):
        """Test malformed shorthand raises before metadata is read"""
        with pytest.raises(MalformedPatternError):
            infer_relationships(UntouchableSource(), [("foo_id", "a.b.c.d")])
        with pytest.raises(MalformedPatternError):
            infer_relationships(UntouchableSource(), [("foo_id",)])

    def test_exclude_modifier_is_fatal(self):
        """Test exclude entries may not carry modifiers"""
        with pytest.raises(UnsupportedModifierError):
            infer_relationships(
                UntouchableSource(),
                [("foo_id", "foos.id")],
                rel_exclude=[("foo_id", {"table": "foos", "type": "similar"})],
            )

    def test_engine_with_config_and_file_source(self, tmp_path):
        """Test the engine reads a snapshot file through its source"""
        path = tmp_path / "metadata.yaml"
        path.write_text(yaml.dump(foo_bar_source().get_snapshot().to_dict()))
        config = InferenceConfig(rel_constraint=[("foo_id", "foos.id")])

        result = RelationshipInferenceEngine(FileMetadataSource(str(path)), config).run()

        assert [str(s) for s in result.relationships] == ["public.bars(foo_id) -> public.foos(id)"]

    def test_result_export(self):
        """Test JSON and YAML export"""
        result = infer_relationships(
            shop_source(),
            [(None, {"diagnostics": True}), ("foo_id", "foos.id"), ("bars.qux_id", "id")],
        )

        data = json.loads(result.to_json())
        assert data["run_id"] == result.run_id
        assert data["relationships"][0]["referencing_table"] == "bars"
        assert data["relationships"][0]["column_pairs"] == [["foo_id", "id"]]
        assert yaml.safe_load(result.to_yaml()) == data

    def test_direct_snapshot_is_validated(self):
        """Test a snapshot passed in directly is checked like a source snapshot"""
        snapshot = MetadataSnapshot(columns=[
            ColumnMeta("a", "t", "x", "integer"),
            ColumnMeta("a", "t", "x", "integer"),
        ])

        with pytest.raises(MetadataError):
            infer_relationships(snapshot, [("x", "t.x")])

    def test_leftmost_composite_member_not_reported(self):
        """Test a referenced column at offset 0 of a composite key stays a quiet simple spec"""
        source = StaticMetadataSource(
            columns=[
                ("app", "lines", "order_id", "integer", None),
                ("app", "lines", "line_no", "integer", None),
                ("app", "notes", "order_id", "integer", None),
            ],
            indexes=[("app", "lines", "primary", ["order_id", "line_no"])],
        )

        result = infer_relationships(
            source,
            [("notes.order_id", {"table": "lines", "column": "order_id", "diagnostics": True})],
        )

        assert [str(s) for s in result.relationships] == ["app.notes(order_id) -> app.lines(order_id)"]
        assert result.diagnostics == []
