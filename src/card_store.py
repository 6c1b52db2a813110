"""In-memory card store.

Holds the card records, their SearchCard projections and the set release
catalog. Everything is built once when the store is created and never
changes afterwards, so concurrent searches need no locking.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable

from src.card_filter import CompiledQuery, compile_query
from src.import_utils import load_cards, load_sets
from src.query_parser import QueryParser
from src.search_card import SearchCard, build_release_catalog

logger = logging.getLogger(__name__)

CARDS_FILE = "cards.json"
SETS_FILE = "sets.json"

# Yearly tins have ~250 cards; a page should still work as a set list
RESULT_LIMIT = 300


@dataclass(frozen=True)
class SearchResult:
    """Matching card ids, in corpus order, for one compiled query."""

    query: CompiledQuery
    ids: tuple[int, ...]
    query_time_ms: int

    @property
    def total_count(self) -> int:
        return len(self.ids)

    @property
    def description(self) -> str:
        """E.g. ``Showing 2 results where ATK >= 100 and level = 4``."""
        return f"Showing {len(self.ids)} results where {self.query.description}"


class CardStore:
    """Read-only card corpus with query evaluation."""

    def __init__(self, cards: Iterable[dict[str, Any]], sets: Iterable[dict[str, Any]] = ()):
        """Build projections for every card.

        Args:
            cards: Card dictionaries in YGOPRODeck cardinfo format
            sets: Set dictionaries in YGOPRODeck cardsets format
        """
        start_time = time.time()

        cards = list(cards)
        self._parser = QueryParser()
        self._release_dates = MappingProxyType(build_release_catalog(sets))
        self._cards_by_id = MappingProxyType({int(card["id"]): card for card in cards})
        self._ids_by_name = MappingProxyType(
            {card["name"].lower(): int(card["id"]) for card in cards if card.get("name")}
        )
        self._search_cards = tuple(
            SearchCard.from_card(card, self._release_dates) for card in cards
        )

        logger.info(
            "Loaded %d cards and %d dated sets in %.2fs",
            len(self._search_cards),
            len(self._release_dates),
            time.time() - start_time,
        )

    @classmethod
    def load(
        cls,
        data_dir: Path,
        progress_callback: Callable[[int], None] | None = None,
    ) -> "CardStore":
        """Load cards.json and sets.json from a data directory.

        A missing sets.json is not an error; cards then have no release year.

        Raises:
            FileNotFoundError: If cards.json does not exist
        """
        cards = load_cards(data_dir / CARDS_FILE, progress_callback)

        sets_path = data_dir / SETS_FILE
        if sets_path.exists():
            sets = load_sets(sets_path)
        else:
            logger.warning("No set catalog at %s, release years are unavailable", sets_path)
            sets = []

        return cls(cards, sets)

    @property
    def search_cards(self) -> tuple[SearchCard, ...]:
        return self._search_cards

    def get_card_count(self) -> int:
        """Get total number of cards in the store."""
        return len(self._search_cards)

    def get_card_by_id(self, card_id: int) -> dict[str, Any] | None:
        """Get card by its passcode/id."""
        return self._cards_by_id.get(int(card_id))

    def get_card_by_name(self, name: str) -> dict[str, Any] | None:
        """Get card by exact name (case-insensitive)."""
        card_id = self._ids_by_name.get(name.lower())
        if card_id is None:
            return None
        return self._cards_by_id[card_id]

    def search(self, query: str) -> SearchResult:
        """Run a query over every card.

        Raises:
            ParseError: If the query does not follow the grammar
            CompileError: If a clause has no meaning
        """
        compiled = compile_query(query, self._parser)

        start_time = time.time()
        ids = tuple(card.id for card in self._search_cards if compiled.matches(card))
        elapsed_ms = int((time.time() - start_time) * 1000)

        logger.debug("%r matched %d cards in %dms", compiled.raw_query, len(ids), elapsed_ms)
        return SearchResult(query=compiled, ids=ids, query_time_ms=elapsed_ms)

    def cards_for(self, ids: Iterable[int]) -> list[dict[str, Any]]:
        """Resolve ids from a SearchResult back to card records."""
        return [self._cards_by_id[card_id] for card_id in ids]

    def execute_query(self, query: str, limit: int = 20, offset: int = 0) -> list[dict[str, Any]]:
        """Run a query and return one page of card records."""
        result = self.search(query)
        return self.cards_for(result.ids[offset:offset + limit])

    def count_matches(self, query: str) -> int:
        """Count all cards matching a query."""
        return self.search(query).total_count
