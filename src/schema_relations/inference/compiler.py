"""
Pattern Compiler

Normalizes rel_constraint / rel_exclude shorthand into the canonical pattern
model. Accepted forms for each side of an entry:

    "schema.table.column"   split right to left; empty segments are absent,
                            so "bars." names every column of table bars
    re.compile(...)         applied to the column on the left-hand side and
                            to the table on the right-hand side
    [schema, table, column] up to three literal/regex parts, right to left
    {"schema": ..., "table": ..., "column": ...,
     "index": ..., "type": ..., "diagnostics": ...}
    None / ""               nothing at all

A constraint side naming no table and no column is a directive: it updates
the defaults applied to later entries on the same side and is never a match
target itself.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..patterns import (
    ColumnLocator,
    ConstraintRule,
    ExcludeRule,
    IndexRestriction,
    NameMatcher,
    SidePattern,
    TypeStrictness,
)
from ..utils import MalformedPatternError, UnsupportedModifierError, get_logger

logger = get_logger(__name__)

LHS = "lhs"
RHS = "rhs"

_LOCATOR_KEYS = ("schema", "table", "column")
_MODIFIER_KEYS = ("index", "type", "diagnostics")


@dataclass(frozen=True)
class ParsedSide:
    """One side of an entry after shorthand normalization"""
    locator: ColumnLocator
    index_restriction: Optional[IndexRestriction] = None
    type_strictness: Optional[TypeStrictness] = None
    diagnostics: Optional[bool] = None

    @property
    def is_directive(self) -> bool:
        return self.locator.is_directive


@dataclass(frozen=True)
class SideDefaults:
    """Defaults in force for one side, updated by directive entries"""
    schema: Optional[NameMatcher] = None
    index_restriction: IndexRestriction = IndexRestriction.ANY
    type_strictness: TypeStrictness = TypeStrictness.EXACT
    diagnostics: bool = False

    def updated(self, directive: ParsedSide) -> "SideDefaults":
        return SideDefaults(
            schema=directive.locator.schema if directive.locator.schema is not None else self.schema,
            index_restriction=_pick(directive.index_restriction, self.index_restriction),
            type_strictness=_pick(directive.type_strictness, self.type_strictness),
            diagnostics=_pick(directive.diagnostics, self.diagnostics),
        )

    def resolve(self, parsed: ParsedSide) -> SidePattern:
        locator = parsed.locator
        if locator.schema is None and self.schema is not None:
            locator = replace(locator, schema=self.schema)
        return SidePattern(
            locator=locator,
            index_restriction=_pick(parsed.index_restriction, self.index_restriction),
            type_strictness=_pick(parsed.type_strictness, self.type_strictness),
            diagnostics=_pick(parsed.diagnostics, self.diagnostics),
        )


@dataclass(frozen=True)
class CompilerState:
    """Accumulator threaded through the constraint entries"""
    lhs: SideDefaults = field(default_factory=SideDefaults)
    rhs: SideDefaults = field(default_factory=SideDefaults)
    rules: Tuple[ConstraintRule, ...] = ()


def _pick(value, default):
    return default if value is None else value


def _is_regex(value: Any) -> bool:
    return isinstance(value, re.Pattern)


def _to_matcher(part: Any, entry_index: int, side: str) -> Optional[NameMatcher]:
    if part is None or part == "":
        return None
    if isinstance(part, str) or _is_regex(part):
        return NameMatcher(part)
    raise MalformedPatternError(
        f"Pattern part must be a string or compiled regex, got {type(part).__name__}",
        entry_index=entry_index,
        side=side,
        raw_value=part,
    )


def _locator_from_parts(parts: Sequence[Any], entry_index: int, side: str, raw: Any) -> ColumnLocator:
    """Assign up to three parts right to left: column, table, schema"""
    if len(parts) > 3:
        raise MalformedPatternError(
            f"Expected at most three parts (schema, table, column), got {len(parts)}",
            entry_index=entry_index,
            side=side,
            raw_value=raw,
        )
    padded = [None] * (3 - len(parts)) + list(parts)
    schema, table, column = (_to_matcher(p, entry_index, side) for p in padded)
    return ColumnLocator(schema=schema, table=table, column=column)


def _parse_modifiers(
    data: Dict[str, Any],
    entry_index: int,
    side: str,
    allow_modifiers: bool,
) -> Dict[str, Any]:
    modifiers: Dict[str, Any] = {}
    for key in _MODIFIER_KEYS:
        if key not in data:
            continue
        if not allow_modifiers:
            raise UnsupportedModifierError(key, entry_index=entry_index, side=side, raw_value=data)
        value = data[key]

        if key == "index":
            try:
                modifiers["index_restriction"] = IndexRestriction(value)
            except ValueError:
                raise MalformedPatternError(
                    f"index must be one of {[r.value for r in IndexRestriction]}",
                    entry_index=entry_index, side=side, raw_value=value,
                ) from None
        elif key == "type":
            try:
                modifiers["type_strictness"] = TypeStrictness(value)
            except ValueError:
                raise MalformedPatternError(
                    f"type must be one of {[t.value for t in TypeStrictness]}",
                    entry_index=entry_index, side=side, raw_value=value,
                ) from None
        else:
            if side == LHS:
                raise UnsupportedModifierError(
                    key, entry_index=entry_index, side=side, raw_value=data,
                    reason="diagnostics apply to the referenced (right-hand) side only",
                )
            if not isinstance(value, (bool, int)):
                raise MalformedPatternError(
                    "diagnostics must be a boolean",
                    entry_index=entry_index, side=side, raw_value=value,
                )
            modifiers["diagnostics"] = bool(value)
    return modifiers


def parse_side(
    value: Any,
    side: str,
    entry_index: int = 0,
    allow_modifiers: bool = True,
) -> ParsedSide:
    """Normalize one shorthand value into a ParsedSide"""
    if value is None:
        return ParsedSide(ColumnLocator())

    if isinstance(value, str):
        return ParsedSide(_locator_from_parts(value.split("."), entry_index, side, value))

    if _is_regex(value):
        if side == LHS:
            return ParsedSide(ColumnLocator(column=NameMatcher(value)))
        return ParsedSide(ColumnLocator(table=NameMatcher(value)))

    if isinstance(value, (list, tuple)):
        return ParsedSide(_locator_from_parts(value, entry_index, side, value))

    if isinstance(value, dict):
        unknown = [k for k in value if k not in _LOCATOR_KEYS + _MODIFIER_KEYS]
        if unknown:
            if not allow_modifiers:
                raise UnsupportedModifierError(
                    str(unknown[0]), entry_index=entry_index, side=side, raw_value=value,
                )
            raise MalformedPatternError(
                f"Unknown key(s) {unknown}",
                entry_index=entry_index,
                side=side,
                raw_value=value,
            )
        locator = ColumnLocator(
            schema=_to_matcher(value.get("schema"), entry_index, side),
            table=_to_matcher(value.get("table"), entry_index, side),
            column=_to_matcher(value.get("column"), entry_index, side),
        )
        return ParsedSide(locator, **_parse_modifiers(value, entry_index, side, allow_modifiers))

    raise MalformedPatternError(
        f"Unsupported pattern shorthand of type {type(value).__name__}",
        entry_index=entry_index,
        side=side,
        raw_value=value,
    )


def _split_entry(entry: Any, entry_index: int) -> Tuple[Any, Any]:
    if isinstance(entry, (str, dict)) or not isinstance(entry, Sequence) or len(entry) != 2:
        raise MalformedPatternError(
            "Entry must be an (lhs, rhs) pair",
            entry_index=entry_index,
            raw_value=entry,
        )
    return entry[0], entry[1]


def fold_constraint_entry(state: CompilerState, entry: Any, entry_index: int) -> CompilerState:
    """Apply one rel_constraint entry to the accumulator"""
    lhs, rhs = _split_entry(entry, entry_index)
    left = parse_side(lhs, LHS, entry_index)
    right = parse_side(rhs, RHS, entry_index)

    if left.is_directive or right.is_directive:
        if not (left.is_directive and right.is_directive):
            raise MalformedPatternError(
                "A directive-only side (no table or column) cannot be paired with a match target",
                entry_index=entry_index,
                raw_value=entry,
            )
        return replace(state, lhs=state.lhs.updated(left), rhs=state.rhs.updated(right))

    rule = ConstraintRule(
        referencing=state.lhs.resolve(left),
        referenced=state.rhs.resolve(right),
        index=entry_index,
    )
    return replace(state, rules=state.rules + (rule,))


class PatternCompiler:
    """Compiles raw rule entries into ConstraintRule / ExcludeRule sequences"""

    def compile_constraints(self, entries: Iterable[Any]) -> List[ConstraintRule]:
        state = CompilerState()
        for entry_index, entry in enumerate(entries):
            state = fold_constraint_entry(state, entry, entry_index)
        logger.debug(f"Compiled {len(state.rules)} constraint rule(s)")
        return list(state.rules)

    def compile_excludes(self, entries: Iterable[Any]) -> List[ExcludeRule]:
        rules = []
        for entry_index, entry in enumerate(entries):
            lhs, rhs = _split_entry(entry, entry_index)
            left = parse_side(lhs, LHS, entry_index, allow_modifiers=False)
            right = parse_side(rhs, RHS, entry_index, allow_modifiers=False)
            rules.append(ExcludeRule(left.locator, right.locator, index=entry_index))
        logger.debug(f"Compiled {len(rules)} exclude rule(s)")
        return rules


def compile_rules(entries: Iterable[Any], exclude: bool = False) -> List[Any]:
    """Shortcut for PatternCompiler().compile_constraints / compile_excludes"""
    compiler = PatternCompiler()
    if exclude:
        return compiler.compile_excludes(entries)
    return compiler.compile_constraints(entries)
