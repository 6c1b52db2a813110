"""Search-ready projection of a card record.

Cards come from the YGOPRODeck card database. Each one is projected once
into a SearchCard with lowercased text and resolved stats, so filters never
deal with the raw JSON shape.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

logger = logging.getLogger(__name__)

# Stored ATK/DEF for a monster whose stat is printed as "?"
UNKNOWN_STAT = -1

# Copies allowed when a card is not on the banlist
UNLIMITED_COPIES = 3

BANLIST_COPIES = {
    "banned": 0,
    "limited": 1,
    "semi-limited": 2,
}

# Price fields tracked in every card_prices entry
PRICE_KEYS = (
    "cardmarket_price",
    "tcgplayer_price",
    "ebay_price",
    "amazon_price",
    "coolstuffinc_price",
)


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicates and empty strings, keeping first-seen order."""
    return tuple(dict.fromkeys(v for v in values if v))


def build_release_catalog(sets: Iterable[dict[str, Any]]) -> dict[str, date]:
    """Map lowercased set name to its TCG release date.

    Sets without a usable ``tcg_date`` are left out. If a name appears more
    than once the earliest date wins.
    """
    catalog: dict[str, date] = {}
    for card_set in sets:
        name = card_set.get("set_name")
        tcg_date = card_set.get("tcg_date")
        if not name or not tcg_date:
            continue
        try:
            released = date.fromisoformat(str(tcg_date))
        except ValueError:
            logger.warning("Skipping set %r with bad release date %r", name, tcg_date)
            continue
        key = name.lower()
        if key not in catalog or released < catalog[key]:
            catalog[key] = released
    return catalog


def _card_type(card: dict[str, Any]) -> str:
    """Lowercased type phrase, e.g. "synchro tuner effect monster".

    Uses the descriptive ``type`` phrase when present. A record with only a
    structured ``typeline`` (["Warrior", "Synchro", "Tuner", "Effect"]) gets
    the same phrase built from every entry but the race.
    """
    kind = card.get("type")
    if kind:
        return " ".join(kind.lower().split())

    typeline = card.get("typeline")
    if not typeline:
        return ""
    race = (card.get("race") or "").lower()
    words = [entry.lower() for entry in typeline if entry.lower() != race]
    # typeline only exists for monsters
    return " ".join(words + ["monster"])


def _stat(card: dict[str, Any], key: str) -> int:
    value = card.get(key)
    if value is None:
        return UNKNOWN_STAT
    try:
        return int(value)
    except (TypeError, ValueError):
        return UNKNOWN_STAT


def _optional_int(card: dict[str, Any], key: str) -> int | None:
    value = card.get(key)
    if value is None:
        return None
    return int(value)


def _names(card: dict[str, Any]) -> tuple[str, ...]:
    names = [card.get("name") or ""]
    for misc in card.get("misc_info") or []:
        for key in ("beta_name", "treated_as"):
            if misc.get(key):
                names.append(misc[key])
    return _dedupe(name.lower() for name in names)


def _set_codes(card: dict[str, Any]) -> tuple[str, ...]:
    """Set code prefixes: "AP03-EN018" -> "ap03"."""
    return _dedupe(
        printing.get("set_code", "").split("-")[0].lower()
        for printing in card.get("card_sets") or []
    )


def _first_release_year(card: dict[str, Any], release_dates: dict[str, date]) -> int | None:
    years = []
    for printing in card.get("card_sets") or []:
        released = release_dates.get((printing.get("set_name") or "").lower())
        if released is not None:
            years.append(released.year)
    return min(years, default=None)


def _legal_copies(card: dict[str, Any]) -> int:
    banlist_info = card.get("banlist_info") or {}
    status = (banlist_info.get("ban_tcg") or "").lower()
    return BANLIST_COPIES.get(status, UNLIMITED_COPIES)


def _genesys_points(card: dict[str, Any]) -> int:
    points = [
        int(misc["genesys_points"])
        for misc in card.get("misc_info") or []
        if misc.get("genesys_points") is not None
    ]
    return max(points, default=0)


def price_in_cents(price: Any) -> int | None:
    """Parse a price string like "1.24" into cents.

    Returns None for unparsable and zero prices (zero means no listing).
    """
    try:
        cents = int(Decimal(str(price)) * 100)
    except (InvalidOperation, ValueError, OverflowError):
        return None
    if cents <= 0:
        return None
    return cents


def _min_price(card: dict[str, Any]) -> int | None:
    prices = []
    for entry in card.get("card_prices") or []:
        for key in PRICE_KEYS:
            cents = price_in_cents(entry.get(key))
            if cents is not None:
                prices.append(cents)
    return min(prices, default=None)


@dataclass(frozen=True)
class SearchCard:
    """Lowercased, query-ready view of one card.

    Numeric attributes are None when they do not apply to the card
    (ATK on a spell, DEF or level on a link monster). A monster with a "?"
    stat stores UNKNOWN_STAT instead.
    """

    id: int
    names: tuple[str, ...]
    card_type: str
    race: str | None
    text: str
    atk: int | None
    defense: int | None
    level: int | None
    link_rating: int | None
    attribute: str | None
    set_codes: tuple[str, ...]
    year: int | None
    legal_copies: int
    genesys_points: int
    price: int | None

    @classmethod
    def from_card(cls, card: dict[str, Any], release_dates: dict[str, date]) -> "SearchCard":
        """Project a raw card record.

        Args:
            card: Card dictionary in YGOPRODeck cardinfo format
            release_dates: Release catalog from build_release_catalog

        Returns:
            The card's SearchCard
        """
        card_type = _card_type(card)
        kind_words = card_type.split()
        is_monster = "monster" in kind_words
        is_link = is_monster and "link" in kind_words

        attribute = card.get("attribute")
        race = card.get("race")

        return cls(
            id=int(card["id"]),
            names=_names(card),
            card_type=card_type,
            race=race.lower() if race else None,
            text=(card.get("desc") or "").replace("\r", "").lower(),
            atk=_stat(card, "atk") if is_monster else None,
            defense=_stat(card, "def") if is_monster and not is_link else None,
            level=_optional_int(card, "level") if is_monster and not is_link else None,
            link_rating=_optional_int(card, "linkval") if is_link else None,
            attribute=attribute.lower() if attribute else None,
            set_codes=_set_codes(card),
            year=_first_release_year(card, release_dates),
            legal_copies=_legal_copies(card),
            genesys_points=_genesys_points(card),
            price=_min_price(card),
        )
