"""CLI for downloading card data and searching it."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from src.card_store import CARDS_FILE, RESULT_LIMIT, CardStore
from src.data_manager import DataManager
from src.import_utils import load_cards
from src.query_parser import QueryError


def format_size(bytes_size: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_size < 1024:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024
    return f"{bytes_size:.1f} TB"


def print_progress_bar(downloaded: int, total: int) -> None:
    """Print a progress bar to stdout.

    YGOPRODeck does not always send Content-Length; without a total only the
    downloaded size is shown.
    """
    if total == 0:
        sys.stdout.write(f"\r  {format_size(downloaded)}")
        sys.stdout.flush()
        return

    bar_length = 40
    percent = downloaded / total
    filled = int(bar_length * percent)
    bar = "█" * filled + "░" * (bar_length - filled)

    sys.stdout.write(
        f"\r  [{bar}] {percent*100:.1f}% ({format_size(downloaded)} / {format_size(total)})"
    )
    sys.stdout.flush()


def format_card_line(card: dict[str, Any]) -> str:
    """One-line summary of a card, e.g. ``2326738  Des Lacooda  (Effect Monster)``."""
    return f"{card['id']}  {card.get('name', '?')}  ({card.get('type', 'Unknown')})"


async def download_data(data_dir: Path, force: bool = False) -> None:
    """Download card data with progress bar."""
    manager = DataManager(data_dir)

    print("Checking for updates...")

    try:
        if not force:
            is_stale = await manager.is_cache_stale()

            if not is_stale:
                status = await manager.get_status()
                print("Data is already up to date!")
                print(f"  Last updated: {status.last_updated}")
                print(f"  Cards: {status.card_count:,}")
                print("  Use --force to re-download anyway.")
                return

        print("Downloading card database and set catalog...")
        paths = await manager.download_all(progress_callback=print_progress_bar)
        print()
        for path in paths:
            print(f"Downloaded to: {path}")

        print()
        print("Counting cards...")

        def load_progress(loaded: int) -> None:
            sys.stdout.write(f"\r  Loading... {loaded:,} cards")
            sys.stdout.flush()

        total_cards = len(load_cards(data_dir / CARDS_FILE, load_progress))
        print()
        print(f"Done! {total_cards:,} cards available.")

        manager.update_card_count(total_cards)

    finally:
        await manager.close()


async def show_status(data_dir: Path) -> None:
    """Show current data status."""
    manager = DataManager(data_dir)

    try:
        status = await manager.get_status()

        print("YGO Card Search Data Status")
        print("-" * 40)

        if status.last_updated:
            print(f"  Last updated: {status.last_updated}")
        else:
            print("  Last updated: Never")

        print(f"  Card count:   {status.card_count:,}")
        print(f"  Version:      {status.version or 'Unknown'}")
        print(f"  Stale:        {'Yes' if status.is_stale else 'No'}")

        if status.is_stale:
            print()
            print("Run 'python -m src.cli download' to update.")

    finally:
        await manager.close()


def run_search(data_dir: Path, query: str, limit: int = RESULT_LIMIT, offset: int = 0) -> int:
    """Search the local card data and print one page of results.

    Returns:
        Process exit code
    """
    if not (data_dir / CARDS_FILE).exists():
        print(f"Error: No card data in {data_dir}.")
        print("Run 'python -m src.cli download' first.")
        return 1

    store = CardStore.load(data_dir)

    try:
        result = store.search(query)
    except QueryError as e:
        print(f"Could not parse query: {e}")
        return 1

    print(f"{result.description} (took {result.query_time_ms}ms)")
    for card in store.cards_for(result.ids[offset:offset + limit]):
        print(format_card_line(card))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="YGO Card Search - Download and search Yu-Gi-Oh! card data",
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("./data"),
        help="Directory for storing data (default: ./data)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    download_parser = subparsers.add_parser(
        "download",
        help="Download or update card data",
    )
    download_parser.add_argument(
        "--force",
        action="store_true",
        help="Force re-download even if data is current",
    )

    subparsers.add_parser(
        "status",
        help="Show current data status",
    )

    search_parser = subparsers.add_parser(
        "search",
        help="Search cards, e.g. search 'c:synchro atk>=2500'",
    )
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "--limit",
        type=int,
        default=RESULT_LIMIT,
        help=f"Maximum results to print (default: {RESULT_LIMIT})",
    )
    search_parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Number of results to skip (default: 0)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    args.data_dir.mkdir(parents=True, exist_ok=True)

    if args.command == "download":
        asyncio.run(download_data(args.data_dir, args.force))
    elif args.command == "status":
        asyncio.run(show_status(args.data_dir))
    elif args.command == "search":
        sys.exit(run_search(args.data_dir, args.query, args.limit, args.offset))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
