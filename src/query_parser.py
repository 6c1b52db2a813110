"""Card search query parser.

Parses queries like ``atk>=2000 l:4|5 c:synchro "dark magician"`` into an
ordered list of field/operator/value clauses.
Clauses are separated by whitespace and implicitly ANDed.
"""

import re
from dataclasses import dataclass, field
from enum import Enum


# Hard cap on clauses per query
MAX_FILTERS = 32

# Characters that can only appear in an operator (or inside a value)
OPERATOR_CHARS = frozenset("=<>:!")

# Query marker for a "?" ATK/DEF
SENTINEL_MARKER = "?"

# Supported syntax for error messages
SUPPORTED_SYNTAX = [
    'name search: dark magician (all words, in order) or "dark magician"',
    "attack / defense: atk>=2000, def<1000, def:? (unknown DEF)",
    "level / rank: l:4, level>=7, rank=4",
    "link rating: link:3, lr>=2",
    "type: t:dragon, t:\"winged beast\"",
    "attribute: a:dark, attr:light",
    "card type: c:synchro, c:spell, c:\"tuner monster\"",
    "set code: set:ap03, s:lob",
    "rules text: o:draw, o:\"special summon\", o:/(banish|exile) it/",
    "first release year: year<2005, y=2002",
    "copies legal: legal:3, legal<3",
    "genesys points: genesys>0, g:100",
    "price in cents: p<100, price>=2000",
    "alternatives: l=4|5|6, t:dragon|warrior",
    "negation: t!=dragon, a!=dark",
]

SYNTAX_SUMMARY = (
    "Clauses are field, operator, value (e.g. atk>=2000, c:synchro, o:\"draw 2\") "
    "and are ANDed; bare words search card names; values may be alternated with | "
    "or written as /regex/."
)

_INTEGER_RE = re.compile(r"-?[0-9]+")


class QueryError(Exception):
    """Error in a query with a helpful hint."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint or "Check the query syntax"
        self.supported_syntax = SUPPORTED_SYNTAX

    def __str__(self) -> str:
        return f"{self.message}. Hint: {self.hint}"


class ParseError(QueryError):
    """The query string does not follow the query grammar."""


class Field(Enum):
    """Searchable card fields.

    Each member is ``(display name, aliases, cost rank)``. Cheap numeric
    fields have the lowest cost rank, free text the highest.
    """

    ATK = ("ATK", ("atk",), 0)
    DEF = ("DEF", ("def",), 0)
    LEVEL = ("level", ("level", "l", "rank"), 0)
    LINK_RATING = ("link rating", ("linkrating", "link", "lr"), 0)
    YEAR = ("year", ("year", "y"), 1)
    LEGAL = ("copies legal", ("legal", "copies"), 1)
    GENESYS = ("genesys points", ("genesys", "gen", "g"), 1)
    PRICE = ("price", ("price", "p"), 1)
    ATTRIBUTE = ("attribute", ("attribute", "attr", "a"), 2)
    TYPE = ("type", ("type", "t", "race"), 2)
    CLASS = ("card type", ("class", "c"), 3)
    SET = ("set", ("set", "s"), 3)
    NAME = ("name", ("name", "n"), 4)
    TEXT = ("text", ("text", "o", "eff", "effect", "e", "desc"), 5)

    def __init__(self, display: str, aliases: tuple[str, ...], cost: int):
        self.display = display
        self.aliases = aliases
        self.cost = cost

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_FIELDS

    @classmethod
    def from_name(cls, name: str) -> "Field | None":
        """Resolve a field name or alias, ignoring case."""
        return _FIELDS_BY_ALIAS.get(name.lower())


NUMERIC_FIELDS = frozenset({
    Field.ATK, Field.DEF, Field.LEVEL, Field.LINK_RATING,
    Field.YEAR, Field.LEGAL, Field.GENESYS, Field.PRICE,
})

_FIELDS_BY_ALIAS = {alias: f for f in Field for alias in f.aliases}


class Operator(Enum):
    """Comparison operators."""

    EQUAL = "="
    NOT_EQUAL = "!="
    LESS = "<"
    LESS_EQUAL = "<="
    GREATER = ">"
    GREATER_EQUAL = ">="

    @property
    def is_ordering(self) -> bool:
        return self not in (Operator.EQUAL, Operator.NOT_EQUAL)

    def compare(self, a: int, b: int) -> bool:
        """Compare a field value ``a`` against a query value ``b``."""
        if self is Operator.EQUAL:
            return a == b
        if self is Operator.NOT_EQUAL:
            return a != b
        if self is Operator.LESS:
            return a < b
        if self is Operator.LESS_EQUAL:
            return a <= b
        if self is Operator.GREATER:
            return a > b
        return a >= b


# Surface tokens, including the reversed and doubled spellings
OPERATOR_TOKENS = {
    "=": Operator.EQUAL,
    "==": Operator.EQUAL,
    ":": Operator.EQUAL,
    "!=": Operator.NOT_EQUAL,
    "<": Operator.LESS,
    "<=": Operator.LESS_EQUAL,
    "=<": Operator.LESS_EQUAL,
    ">": Operator.GREATER,
    ">=": Operator.GREATER_EQUAL,
    "=>": Operator.GREATER_EQUAL,
}


@dataclass(frozen=True)
class String:
    """Lowercased text."""

    text: str

    def __str__(self) -> str:
        return f'"{self.text}"'


@dataclass(frozen=True)
class Numerical:
    """An integer, with the digits as typed (``007`` keeps its zeros)."""

    number: int
    token: str = field(default="", compare=False)

    def __str__(self) -> str:
        return str(self.number)


@dataclass(frozen=True)
class Regex:
    """Case-insensitive pattern from a ``/.../`` literal."""

    pattern: re.Pattern

    def __str__(self) -> str:
        return f"/{self.pattern.pattern}/"


@dataclass(frozen=True)
class Multiple:
    """Alternatives, each matched exactly."""

    values: tuple

    def __str__(self) -> str:
        return " or ".join(str(v) for v in self.values)


@dataclass(frozen=True)
class MultiplePartial:
    """Strings matched by substring."""

    values: tuple[str, ...]

    def __str__(self) -> str:
        return " or ".join(f'"{v}"' for v in self.values)


@dataclass(frozen=True)
class Absent:
    """No value for this field on this card."""

    def __str__(self) -> str:
        return "nothing"


ABSENT = Absent()

Value = String | Numerical | Regex | Multiple | MultiplePartial | Absent


@dataclass(frozen=True)
class RawCardFilter:
    """One parsed ``field operator value`` clause."""

    field: Field
    operator: Operator
    value: Value

    def __str__(self) -> str:
        """Human-readable form, e.g. ``ATK >= 100`` or ``name is "bolt"``."""
        value = self.value
        if value == String(SENTINEL_MARKER):
            value_text = SENTINEL_MARKER
        else:
            value_text = str(value)
        return f"{self.field.display} {self._operator_text()} {value_text}"

    def _operator_text(self) -> str:
        if self.field.is_numeric or self.operator.is_ordering:
            return self.operator.value
        if isinstance(self.value, Regex):
            return "matches" if self.operator is Operator.EQUAL else "does not match"
        return "is" if self.operator is Operator.EQUAL else "is not"


@dataclass
class ParsedQuery:
    """Clauses of a query, cost-ordered and coalesced."""

    filters: list[RawCardFilter] = field(default_factory=list)
    raw_query: str = ""

    @property
    def filter_count(self) -> int:
        return len(self.filters)

    def __str__(self) -> str:
        return " and ".join(str(f) for f in self.filters)


def _skip_whitespace(query: str, pos: int) -> int:
    while pos < len(query) and query[pos].isspace():
        pos += 1
    return pos


def _token_end(query: str, pos: int) -> int:
    while pos < len(query) and not query[pos].isspace():
        pos += 1
    return pos


def _parse_scalar(text: str) -> Numerical | String:
    if _INTEGER_RE.fullmatch(text):
        return Numerical(int(text), text)
    return String(text.lower())


def _parse_delimited(query: str, pos: int, delimiter: str, kind: str) -> tuple[str, int]:
    """Return the span between ``delimiter`` at ``pos`` and its closing twin."""
    close = query.find(delimiter, pos + 1)
    if close == -1:
        raise ParseError(
            f"Unterminated {kind}: {query[pos:]}",
            hint=f"Close the {kind} with {delimiter}",
        )
    content = query[pos + 1:close]
    if not content:
        raise ParseError(
            f"Empty {kind} at position {pos}",
            hint=f"Put something between the {delimiter} characters",
        )
    return content, close + 1


def _parse_value(query: str, pos: int) -> tuple[Value, int]:
    """Parse a value starting at ``pos``.

    Quoted spans come first, then regex literals, then ``|``-separated
    alternatives, so a ``|`` between quotes or slashes is never split.
    """
    if pos >= len(query) or query[pos].isspace():
        raise ParseError(
            f"Empty filter argument at position {pos}",
            hint="Give every field a value, e.g. t:dragon",
        )

    if query[pos] == '"':
        text, end = _parse_delimited(query, pos, '"', "quote")
        return String(text.lower()), end

    if query[pos] == "/":
        source, end = _parse_delimited(query, pos, "/", "regex")
        try:
            pattern = re.compile(source, re.IGNORECASE)
        except re.error as e:
            raise ParseError(
                f"Invalid regex /{source}/: {e}",
                hint="Check the regular expression syntax",
            ) from e
        return Regex(pattern), end

    end = _token_end(query, pos)
    pieces = [piece for piece in query[pos:end].split("|") if piece]
    if not pieces:
        raise ParseError(
            f"Empty filter argument: {query[pos:end]}",
            hint="Separate alternatives with |, e.g. l=4|5",
        )
    values = tuple(_parse_scalar(piece) for piece in pieces)
    if len(values) == 1:
        return values[0], end
    return Multiple(values), end


def _parse_structured(query: str, pos: int) -> tuple[RawCardFilter, int] | None:
    """Parse ``field operator value``, or None if there is no such prefix."""
    field_end = pos
    while field_end < len(query) and query[field_end].isalpha():
        field_end += 1
    card_field = Field.from_name(query[pos:field_end])
    if card_field is None:
        return None

    # Longest match: the whole run of operator characters must be one token
    operator_end = field_end
    while operator_end < len(query) and query[operator_end] in OPERATOR_CHARS:
        operator_end += 1
    operator = OPERATOR_TOKENS.get(query[field_end:operator_end])
    if operator is None:
        return None

    value, end = _parse_value(query, operator_end)
    return RawCardFilter(card_field, operator, value), end


def _parse_fallback(query: str, pos: int) -> tuple[RawCardFilter, int]:
    """Treat a token that is not a clause as part of the card name."""
    if query[pos] == '"':
        text, end = _parse_delimited(query, pos, '"', "quote")
        return RawCardFilter(Field.NAME, Operator.EQUAL, String(text.lower())), end

    end = _token_end(query, pos)
    word = query[pos:end]
    if any(c in OPERATOR_CHARS for c in word):
        raise ParseError(
            f"Invalid query: {word}",
            hint="Use field, operator, value, e.g. atk>=1000 (operators: = == : != < <= > >=)",
        )
    return RawCardFilter(Field.NAME, Operator.EQUAL, String(word.lower())), end


def parse_raw_filters(query: str) -> list[RawCardFilter]:
    """Split a query into clauses, in input order.

    Raises:
        ParseError: If the query does not follow the grammar
    """
    filters: list[RawCardFilter] = []
    pos = _skip_whitespace(query, 0)
    if pos == len(query):
        raise ParseError("Empty query", hint="Enter a card name or a filter like l:4")

    while pos < len(query):
        if len(filters) == MAX_FILTERS:
            raise ParseError(
                f"Too many filters (at most {MAX_FILTERS})",
                hint="Combine values with |, e.g. l=4|5|6",
            )

        parsed = _parse_structured(query, pos)
        if parsed is None:
            parsed = _parse_fallback(query, pos)
        raw_filter, pos = parsed

        if pos < len(query) and not query[pos].isspace():
            raise ParseError(
                f'Input was not fully parsed. Left over: "{query[pos:]}"',
                hint="Separate filters with spaces",
            )
        filters.append(raw_filter)
        pos = _skip_whitespace(query, pos)

    return filters


def _is_name_word(raw_filter: RawCardFilter) -> bool:
    return (
        raw_filter.field is Field.NAME
        and raw_filter.operator is Operator.EQUAL
        and isinstance(raw_filter.value, String)
    )


def normalize_filters(filters: list[RawCardFilter]) -> list[RawCardFilter]:
    """Order clauses cheapest first and merge adjacent name words.

    ``ally of justice`` becomes a single ``name is "ally of justice"`` clause
    instead of three separate substring checks.
    """
    ordered = sorted(filters, key=lambda f: f.field.cost)

    merged: list[RawCardFilter] = []
    for raw_filter in ordered:
        if merged and _is_name_word(merged[-1]) and _is_name_word(raw_filter):
            previous = merged.pop()
            raw_filter = RawCardFilter(
                Field.NAME,
                Operator.EQUAL,
                String(f"{previous.value.text} {raw_filter.value.text}"),
            )
        merged.append(raw_filter)
    return merged


class QueryParser:
    """Parser for card search queries."""

    def parse(self, query: str) -> ParsedQuery:
        """Parse a query string into a ParsedQuery object.

        Raises:
            ParseError: If the query does not follow the grammar
        """
        query = query.strip()
        filters = normalize_filters(parse_raw_filters(query))
        return ParsedQuery(filters=filters, raw_query=query)
