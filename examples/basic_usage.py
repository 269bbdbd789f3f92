#!/usr/bin/env python3
"""
Basic Usage Example for Schema Relations

This example demonstrates:
1. Describing schema metadata with a StaticMetadataSource
2. Writing constraint and exclusion rules
3. Reading the inferred relationships and diagnostics
"""
import re
import sys
import os

# Add src to path for local development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema_relations import (
    InferenceConfig,
    RelationshipInferenceEngine,
    StaticMetadataSource,
    format_error,
    MalformedPatternError,
)


def build_source():
    """A small shop schema without declared foreign keys"""
    return StaticMetadataSource(
        columns=[
            ("shop", "customers", "id", "integer", None),
            ("shop", "customers", "email", "varchar", 255),
            ("shop", "products", "id", "integer", None),
            ("shop", "orders", "id", "integer", None),
            ("shop", "orders", "customer_id", "integer", None),
            ("shop", "order_lines", "order_id", "integer", None),
            ("shop", "order_lines", "line_no", "integer", None),
            ("shop", "order_lines", "product_id", "integer", None),
            ("shop", "shipments", "order_id", "integer", None),
            ("shop", "shipments", "line_no", "integer", None),
            ("shop", "audit_log", "customer_id", "integer", None),
        ],
        indexes=[
            ("shop", "customers", "primary", ["id"]),
            ("shop", "customers", "unique", ["email"]),
            ("shop", "products", "primary", ["id"]),
            ("shop", "orders", "primary", ["id"]),
            ("shop", "order_lines", "primary", ["order_id", "line_no"]),
            ("shop", "shipments", "nonunique", ["order_id", "line_no"]),
        ],
    )


def main():
    print("=" * 60)
    print("Schema Relations - Basic Usage Example")
    print("=" * 60)

    source = build_source()

    config = InferenceConfig(
        rel_constraint=[
            # report every rejection from here on
            (None, {"diagnostics": True}),
            # shipment lines point at order lines column for column
            ({"table": "shipments", "column": re.compile(r"(.+)")},
             {"table": "order_lines", "column": re.compile(r"(.+)")}),
            # customer_id -> customers.id, order_id -> orders.id, ...
            (re.compile(r"(.+)_id"), [re.compile(r"(.+)s"), "id"]),
        ],
        rel_exclude=[
            ("audit_log.", ""),
        ],
    )

    config.configure_logging()

    print("\n1. Running inference...")
    result = RelationshipInferenceEngine(source, config).run()

    print("\n2. Inferred relationships:")
    for spec in result.relationships:
        kind = "composite" if spec.is_composite else "simple"
        print(f"   [{kind}] {spec}")
        print(f"            JOIN ON {spec.get_join_sql()}")

    print("\n3. Diagnostics:")
    for code, diagnostics in result.diagnostics_by_code().items():
        print(f"   {code.value}: {len(diagnostics)}")
        for diagnostic in diagnostics:
            print(f"      - {diagnostic.message}")

    print("\n4. A malformed rule fails immediately:")
    try:
        RelationshipInferenceEngine(source, InferenceConfig(
            rel_constraint=[("customer_id", "a.b.c.d")],
        )).run()
    except MalformedPatternError as e:
        print(format_error(e))

    print("\n" + "=" * 60)
    print("Example completed!")
    print("=" * 60)


if __name__ == "__main__":
    main()
