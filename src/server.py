"""MCP Server for local Yu-Gi-Oh! card data.

Provides tools for searching Yu-Gi-Oh! cards from a locally cached copy of
the YGOPRODeck database. Uses the low-level MCP Server class.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server, NotificationOptions
from mcp.server.models import InitializationOptions
import mcp.server.stdio

from src import __version__
from src.card_store import CARDS_FILE, CardStore
from src.data_manager import DataManager
from src.query_parser import QueryError, SYNTAX_SUMMARY

# Server name constant - used in multiple places
SERVER_NAME = "ygo-card-search"


@dataclass
class Tool:
    """Tool definition for MCP."""

    name: str
    description: str
    inputSchema: dict[str, Any]


class YgoSearchServer:
    """YGO Card Search MCP Server.

    The CardStore is the server's application state: it is loaded on first
    use and then shared, read-only, by every tool call.
    """

    name = SERVER_NAME
    version = __version__

    def __init__(self, data_dir: Path, store: CardStore | None = None):
        """Initialize server.

        Args:
            data_dir: Directory holding cards.json and sets.json
            store: Already loaded store (skips loading from data_dir)
        """
        self.data_dir = data_dir
        self._store = store
        self._data_manager = DataManager(data_dir)

    def _get_store(self) -> CardStore:
        """Get the card store, loading it on first use."""
        if self._store is None:
            self._store = CardStore.load(self.data_dir)
        return self._store

    async def cleanup(self) -> None:
        """Release the data manager's HTTP client."""
        await self._data_manager.close()

    async def __aenter__(self) -> "YgoSearchServer":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and clean up resources."""
        await self.cleanup()

    def list_tools(self) -> list[Tool]:
        """List available tools.

        Returns:
            List of tool definitions
        """
        return [
            Tool(
                name="search_cards",
                description=f"Search for Yu-Gi-Oh! cards. {SYNTAX_SUMMARY}",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Search query (e.g., 'c:synchro atk>=2500 a:dark')",
                        },
                        "limit": {
                            "type": "integer",
                            "description": "Maximum results to return (default 20, max 100)",
                            "default": 20,
                            "minimum": 1,
                            "maximum": 100,
                        },
                        "offset": {
                            "type": "integer",
                            "description": "Number of results to skip for pagination (default 0)",
                            "default": 0,
                            "minimum": 0,
                        },
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="get_card",
                description="Get a single Yu-Gi-Oh! card by exact name or card id (passcode).",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "name": {
                            "type": "string",
                            "description": "Exact card name (e.g., 'Dark Magician')",
                        },
                        "id": {
                            "type": "integer",
                            "description": "Card id / passcode (e.g., 46986414)",
                        },
                    },
                },
            ),
            Tool(
                name="data_status",
                description="Check the status of the local card data. "
                "Returns card count, last updated time, and whether data is stale.",
                inputSchema={
                    "type": "object",
                    "properties": {},
                },
            ),
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Execute a tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Tool result dictionary
        """
        try:
            if name == "search_cards":
                return await self._search_cards(arguments)
            elif name == "get_card":
                return await self._get_card(arguments)
            elif name == "data_status":
                return await self._data_status(arguments)
            else:
                return {"error": f"Unknown tool: {name}"}
        except FileNotFoundError:
            return {
                "error": "No card data available",
                "hint": "Run 'ygo-card-search download' first",
            }

    async def _search_cards(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Search for cards.

        Args:
            arguments: {"query": str, "limit": int, "offset": int}

        Returns:
            {"cards": [...], "total_count": int, "description": str,
             "query_time_ms": int, "offset": int}
        """
        query = arguments.get("query", "")
        limit = max(1, min(arguments.get("limit", 20), 100))
        offset = max(0, arguments.get("offset", 0))

        start_time = time.time()
        store = self._get_store()

        try:
            result = store.search(query)
        except QueryError as e:
            return {
                "error": e.message,
                "hint": e.hint,
                "supported_syntax": e.supported_syntax,
            }

        elapsed_ms = int((time.time() - start_time) * 1000)

        return {
            "cards": store.cards_for(result.ids[offset:offset + limit]),
            "total_count": result.total_count,
            "description": result.description,
            "query_time_ms": elapsed_ms,
            "offset": offset,
        }

    async def _get_card(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Get a single card.

        Args:
            arguments: {"name": str} or {"id": int} (not both)

        Returns:
            Card dictionary or error
        """
        name = arguments.get("name")
        card_id = arguments.get("id")

        if name and card_id:
            return {"error": "Provide either 'name' or 'id', not both"}
        elif not name and not card_id:
            return {"error": "Either 'name' or 'id' must be provided"}

        store = self._get_store()
        if name:
            card = store.get_card_by_name(name)
        else:
            try:
                card = store.get_card_by_id(int(card_id))
            except (TypeError, ValueError):
                return {"error": f"Invalid card id: {card_id}"}

        if card:
            return card
        else:
            return {
                "error": "Card not found",
                "hint": f"Try searching with: search_cards query=\"{name or card_id}\"",
            }

    async def _data_status(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Get data cache status.

        Returns:
            {"last_updated": str, "card_count": int, "version": str, "stale": bool}
        """
        status = await self._data_manager.get_status()

        result = status.to_dict()
        if self._store is not None or (self.data_dir / CARDS_FILE).exists():
            result["card_count"] = self._get_store().get_card_count()
        return result


def create_server(data_dir: Path) -> tuple[Server, YgoSearchServer]:
    """Create MCP server instance.

    Args:
        data_dir: Directory holding the card data

    Returns:
        Tuple of (MCP Server, YgoSearchServer instance for cleanup)
    """
    ygo = YgoSearchServer(data_dir)

    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """Return available tools."""
        tools = ygo.list_tools()
        return [
            types.Tool(
                name=t.name,
                description=t.description,
                inputSchema=t.inputSchema,
            )
            for t in tools
        ]

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict[str, Any]
    ) -> list[types.TextContent]:
        """Handle tool execution."""
        result = await ygo.call_tool(name, arguments or {})
        return [
            types.TextContent(
                type="text",
                text=json.dumps(result, default=str),
            )
        ]

    return server, ygo


async def run_server(data_dir: Path | None = None) -> None:
    """Run the MCP server.

    Args:
        data_dir: Optional data directory (defaults to ./data relative to project root)
    """
    if data_dir is None:
        project_root = Path(__file__).parent.parent
        data_dir = project_root / "data"

    data_dir.mkdir(parents=True, exist_ok=True)

    server, ygo = create_server(data_dir)

    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
    finally:
        await ygo.cleanup()


def main() -> None:
    """Console entry point."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
