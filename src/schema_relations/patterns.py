"""
Pattern Model

Canonical value types produced by the pattern compiler. Every shorthand a
user may write in rel_constraint / rel_exclude ends up as a ColumnLocator
(three optional NameMatchers) plus, for constraint rules, the side modifiers
collected in a SidePattern. Nothing downstream looks at the original
shorthand.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class IndexRestriction(str, Enum):
    """Which index membership a matched column must have"""
    PRIMARY = "primary"
    UNIQUE = "unique"
    ANY = "any"
    OPTIONAL = "optional"


class TypeStrictness(str, Enum):
    """How data types of the two columns are compared"""
    EXACT = "exact"
    SIMILAR = "similar"


@dataclass(frozen=True)
class CaptureGroups:
    """
    Text captured by regular expressions on one side of a rule

    positional holds unnamed groups in table-then-column order; named holds
    named groups. None marks a group that did not participate in the match.
    """
    positional: Tuple[Optional[str], ...] = ()
    named: Tuple[Tuple[str, Optional[str]], ...] = ()

    @classmethod
    def from_match(cls, match: "re.Match[str]") -> "CaptureGroups":
        named_indexes = set(match.re.groupindex.values())
        positional = tuple(
            value for number, value in enumerate(match.groups(), start=1)
            if number not in named_indexes
        )
        named = tuple(match.groupdict().items())
        return cls(positional=positional, named=named)

    @property
    def named_dict(self) -> Dict[str, Optional[str]]:
        return dict(self.named)

    def __add__(self, other: "CaptureGroups") -> "CaptureGroups":
        merged = dict(self.named)
        merged.update(other.named)
        return CaptureGroups(
            positional=self.positional + other.positional,
            named=tuple(merged.items()),
        )

    def consistent_with(self, other: "CaptureGroups") -> bool:
        """True when every group present on both sides captured the same text"""
        for mine, theirs in zip(self.positional, other.positional):
            if mine is not None and theirs is not None and mine != theirs:
                return False

        theirs_named = other.named_dict
        for name, mine in self.named:
            theirs = theirs_named.get(name)
            if mine is not None and theirs is not None and mine != theirs:
                return False

        return True


NO_CAPTURES = CaptureGroups()


@dataclass(frozen=True)
class NameMatcher:
    """A literal name or a regular expression tested against the full name"""
    value: Union[str, "re.Pattern[str]"]

    @property
    def is_regex(self) -> bool:
        return not isinstance(self.value, str)

    def match(self, name: Optional[str]) -> Optional[CaptureGroups]:
        """Return captured groups on a match, None otherwise"""
        if name is None:
            return None
        if isinstance(self.value, str):
            return NO_CAPTURES if name == self.value else None
        found = self.value.fullmatch(name)
        if found is None:
            return None
        return CaptureGroups.from_match(found)

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return self.value
        return f"/{self.value.pattern}/"


@dataclass(frozen=True)
class ColumnLocator:
    """schema / table / column matchers; an absent matcher matches anything"""
    schema: Optional[NameMatcher] = None
    table: Optional[NameMatcher] = None
    column: Optional[NameMatcher] = None

    @property
    def is_directive(self) -> bool:
        """A locator naming no table and no column is never a match target"""
        return self.table is None and self.column is None

    def match(
        self,
        schema: Optional[str],
        table: str,
        column: str,
    ) -> Optional[CaptureGroups]:
        """Match a column identity; schema captures are not returned"""
        if self.schema is not None and self.schema.match(schema) is None:
            return None

        groups = NO_CAPTURES
        for matcher, name in ((self.table, table), (self.column, column)):
            if matcher is None:
                continue
            captured = matcher.match(name)
            if captured is None:
                return None
            groups = groups + captured
        return groups

    def __str__(self) -> str:
        parts = [str(m) if m is not None else "*" for m in (self.schema, self.table, self.column)]
        return ".".join(parts)


@dataclass(frozen=True)
class SidePattern:
    """A resolved locator plus the modifiers in force for it"""
    locator: ColumnLocator
    index_restriction: IndexRestriction = IndexRestriction.ANY
    type_strictness: TypeStrictness = TypeStrictness.EXACT
    diagnostics: bool = False

    def __str__(self) -> str:
        return str(self.locator)


@dataclass(frozen=True)
class ConstraintRule:
    """Grants relationships from columns matching referencing to referenced"""
    referencing: SidePattern
    referenced: SidePattern
    index: int = 0

    @property
    def explicit_tables(self) -> bool:
        """Both sides name a table, which permits same-table relationships"""
        return (
            self.referencing.locator.table is not None
            and self.referenced.locator.table is not None
        )

    def __str__(self) -> str:
        return f"{self.referencing} => {self.referenced}"


@dataclass(frozen=True)
class ExcludeRule:
    """Revokes relationships whose two columns match both locators"""
    referencing: ColumnLocator = field(default_factory=ColumnLocator)
    referenced: ColumnLocator = field(default_factory=ColumnLocator)
    index: int = 0

    def matches(
        self,
        referencing: Tuple[Optional[str], str, str],
        referenced: Tuple[Optional[str], str, str],
    ) -> bool:
        left = self.referencing.match(*referencing)
        if left is None:
            return False
        right = self.referenced.match(*referenced)
        if right is None:
            return False
        return left.consistent_with(right)

    def __str__(self) -> str:
        return f"{self.referencing} =/> {self.referenced}"
