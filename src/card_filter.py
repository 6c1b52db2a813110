"""Compile parsed clauses into filters over SearchCards.

A CardFilter is plain data: the field, operator and query value of a clause
plus the comparison family picked at compile time. Every (field value,
query value) pairing is decided in one place, filter_value.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from src.query_parser import (
    ABSENT,
    SENTINEL_MARKER,
    Absent,
    Field,
    Multiple,
    MultiplePartial,
    Numerical,
    Operator,
    QueryError,
    QueryParser,
    RawCardFilter,
    Regex,
    String,
    Value,
)
from src.search_card import UNKNOWN_STAT, SearchCard

logger = logging.getLogger(__name__)


class CompileError(QueryError):
    """A clause parsed fine but has no meaning, e.g. ``name>3``."""


class FilterKind(Enum):
    """Comparison family of a compiled filter."""

    NUMERIC = "numeric"
    SENTINEL = "sentinel"
    SUBSTRING = "substring"
    REGEX = "regex"
    EXACT_SET = "exact set"
    PARTIAL_SET = "partial set"
    ANY_OF = "any of"


# How a string query is matched against each non-numeric field
TEXT_FIELD_KINDS = {
    Field.TYPE: FilterKind.SUBSTRING,
    Field.ATTRIBUTE: FilterKind.SUBSTRING,
    Field.TEXT: FilterKind.SUBSTRING,
    Field.CLASS: FilterKind.SUBSTRING,
    Field.SET: FilterKind.EXACT_SET,
    Field.NAME: FilterKind.PARTIAL_SET,
}

# Fields where "?" means the printed unknown stat
SENTINEL_FIELDS = frozenset({Field.ATK, Field.DEF})


def _number(number: int | None) -> Value:
    return ABSENT if number is None else Numerical(number)


def _text(text: str | None) -> Value:
    return ABSENT if text is None else String(text)


def _exact_set(values: tuple[str, ...]) -> Value:
    return Multiple(tuple(String(v) for v in values))


FIELD_VALUES: dict[Field, Callable[[SearchCard], Value]] = {
    Field.ATK: lambda card: _number(card.atk),
    Field.DEF: lambda card: _number(card.defense),
    Field.LEVEL: lambda card: _number(card.level),
    Field.LINK_RATING: lambda card: _number(card.link_rating),
    Field.YEAR: lambda card: _number(card.year),
    Field.LEGAL: lambda card: Numerical(card.legal_copies),
    Field.GENESYS: lambda card: Numerical(card.genesys_points),
    Field.PRICE: lambda card: _number(card.price),
    Field.ATTRIBUTE: lambda card: _text(card.attribute),
    Field.TYPE: lambda card: _text(card.race),
    Field.CLASS: lambda card: String(card.card_type),
    Field.SET: lambda card: _exact_set(card.set_codes),
    Field.NAME: lambda card: MultiplePartial(card.names),
    Field.TEXT: lambda card: String(card.text),
}


def get_field_value(card: SearchCard, field: Field) -> Value:
    """Value of ``field`` on ``card``, ABSENT if it does not apply."""
    return FIELD_VALUES[field](card)


def _as_text(value: Numerical) -> String:
    return String(value.token or str(value.number))


def _search(text: str, query_value: Value) -> bool:
    if isinstance(query_value, Regex):
        return query_value.pattern.search(text) is not None
    return query_value.text in text


def _text_matches(field_value: Value, query_value: Value) -> bool:
    if isinstance(field_value, String):
        return _search(field_value.text, query_value)
    if isinstance(field_value, MultiplePartial):
        return any(_search(v, query_value) for v in field_value.values)
    if isinstance(field_value, Multiple):
        if isinstance(query_value, Regex):
            return any(_search(v.text, query_value) for v in field_value.values)
        return query_value in field_value.values
    raise TypeError(f"Unsupported field value: {field_value!r}")


def filter_value(operator: Operator, field_value: Value, query_value: Value) -> bool:
    """Decide whether a card's field value satisfies ``operator query_value``.

    Rules:
    - an ABSENT field value never matches, not even with !=
    - a Multiple query value matches if any alternative does
    - numbers compare numerically; "?" is only = or != to UNKNOWN_STAT
    - strings match by substring, regexes by search, exact sets by
      membership, partial sets if any element contains the query
    - ordering operators never match text
    """
    if isinstance(field_value, Absent):
        return False

    if isinstance(query_value, Multiple):
        return any(filter_value(operator, field_value, v) for v in query_value.values)

    if isinstance(field_value, Numerical):
        if isinstance(query_value, Numerical):
            return operator.compare(field_value.number, query_value.number)
        if query_value == String(SENTINEL_MARKER):
            if operator is Operator.EQUAL:
                return field_value.number == UNKNOWN_STAT
            if operator is Operator.NOT_EQUAL:
                return field_value.number != UNKNOWN_STAT
        return False

    if operator.is_ordering:
        return False
    if isinstance(query_value, Numerical):
        query_value = _as_text(query_value)

    matched = _text_matches(field_value, query_value)
    return matched if operator is Operator.EQUAL else not matched


@dataclass(frozen=True)
class CardFilter:
    """A compiled clause, callable on a SearchCard."""

    kind: FilterKind
    field: Field
    operator: Operator
    value: Value

    def __call__(self, card: SearchCard) -> bool:
        return filter_value(self.operator, get_field_value(card, self.field), self.value)


def _resolve(field: Field, operator: Operator, value: Value) -> tuple[FilterKind, Value] | None:
    """Pick the comparison family for one scalar query value."""
    if field.is_numeric:
        if isinstance(value, Numerical):
            return FilterKind.NUMERIC, value
        if field in SENTINEL_FIELDS and value == String(SENTINEL_MARKER):
            return FilterKind.SENTINEL, value
        return None

    if operator.is_ordering:
        return None
    if isinstance(value, Regex):
        return FilterKind.REGEX, value
    if isinstance(value, Numerical):
        # o:007 searches for the text "007"
        return TEXT_FIELD_KINDS[field], _as_text(value)
    if isinstance(value, String):
        return TEXT_FIELD_KINDS[field], value
    return None


def _compile_error(raw_filter: RawCardFilter) -> CompileError:
    if raw_filter.field.is_numeric:
        hint = f"{raw_filter.field.display} takes a number"
        if raw_filter.field in SENTINEL_FIELDS:
            hint += " or ?"
    else:
        hint = f"{raw_filter.field.display} only supports = and !="
    return CompileError(f"Unknown query: {raw_filter}", hint=hint)


def build_filter(raw_filter: RawCardFilter) -> CardFilter:
    """Compile one clause.

    Only looks at the clause itself, so a bad combination is reported
    before any card is scanned.

    Raises:
        CompileError: If the field, operator and value do not fit together
    """
    field, operator, value = raw_filter.field, raw_filter.operator, raw_filter.value

    if isinstance(value, Multiple):
        alternatives = []
        for alternative in value.values:
            resolved = _resolve(field, operator, alternative)
            if resolved is None:
                raise _compile_error(raw_filter)
            alternatives.append(resolved[1])
        return CardFilter(FilterKind.ANY_OF, field, operator, Multiple(tuple(alternatives)))

    resolved = _resolve(field, operator, value)
    if resolved is None:
        raise _compile_error(raw_filter)
    kind, value = resolved
    return CardFilter(kind, field, operator, value)


@dataclass(frozen=True)
class CompiledQuery:
    """Clauses of a query and their filters, in evaluation order."""

    filters: tuple[RawCardFilter, ...]
    predicates: tuple[CardFilter, ...]
    raw_query: str = ""

    @property
    def description(self) -> str:
        """E.g. ``ATK >= 100 and name is "dark magician"``."""
        return " and ".join(str(f) for f in self.filters)

    def matches(self, card: SearchCard) -> bool:
        """True if every filter accepts the card, cheapest checked first."""
        return all(predicate(card) for predicate in self.predicates)


def compile_query(query: str, parser: QueryParser | None = None) -> CompiledQuery:
    """Parse and compile a query.

    Raises:
        ParseError: If the query does not follow the grammar
        CompileError: If a clause has no meaning
    """
    parsed = (parser or QueryParser()).parse(query)
    predicates = tuple(build_filter(f) for f in parsed.filters)
    logger.debug("Compiled %r into %d filters", parsed.raw_query, len(predicates))
    return CompiledQuery(tuple(parsed.filters), predicates, parsed.raw_query)
