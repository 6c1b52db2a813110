"""Shared utilities for loading card data."""

from pathlib import Path
from typing import Any, Callable

import ijson

# ijson prefixes of the records in each document
CARDS_PREFIX = "data.item"
SETS_PREFIX = "item"


def load_json_items(
    json_file: Path,
    prefix: str = "item",
    batch_size: int = 1000,
    progress_callback: Callable[[int], None] | None = None,
) -> list[dict[str, Any]]:
    """Load the items of a JSON array using a streaming parser.

    Uses ijson to parse the file incrementally so the raw document is never
    held in memory next to the parsed records.

    Args:
        json_file: Path to the JSON file
        prefix: ijson prefix of the array items ("item" for a top-level array)
        batch_size: Number of items between progress updates
        progress_callback: Optional callback(item_count) for progress updates

    Returns:
        List of item dictionaries in document order

    Raises:
        FileNotFoundError: If json_file does not exist
        ijson.JSONError: If the document is not valid JSON
    """
    items: list[dict[str, Any]] = []

    with open(json_file, "rb") as f:
        for item in ijson.items(f, prefix):
            items.append(item)
            if progress_callback and len(items) % batch_size == 0:
                progress_callback(len(items))

    # Report the final partial batch
    if progress_callback and len(items) % batch_size:
        progress_callback(len(items))

    return items


def load_cards(
    json_file: Path,
    progress_callback: Callable[[int], None] | None = None,
) -> list[dict[str, Any]]:
    """Load cards from a YGOPRODeck cardinfo document ({"data": [...]})."""
    return load_json_items(json_file, CARDS_PREFIX, progress_callback=progress_callback)


def load_sets(json_file: Path) -> list[dict[str, Any]]:
    """Load the set catalog from a YGOPRODeck cardsets document ([...])."""
    return load_json_items(json_file, SETS_PREFIX)
