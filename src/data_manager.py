"""Data manager for downloading and caching YGOPRODeck card data.

Handles downloading the card database and set catalog, and checking whether
the local copy is current. Only downloads from the YGOPRODeck API host.
"""

import asyncio
import json
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlparse

import httpx

from src.card_store import CARDS_FILE, SETS_FILE

logger = logging.getLogger(__name__)


# Allowed domains for downloading card data
ALLOWED_DOMAINS = [
    "db.ygoprodeck.com",
]

# API endpoints
API_BASE = "https://db.ygoprodeck.com/api/v7"
CARDINFO_ENDPOINT = f"{API_BASE}/cardinfo.php?misc=yes"
CARDSETS_ENDPOINT = f"{API_BASE}/cardsets.php"
DB_VERSION_ENDPOINT = f"{API_BASE}/checkDBVer.php"

# Local file name -> download URL
DOWNLOADS = {
    CARDS_FILE: CARDINFO_ENDPOINT,
    SETS_FILE: CARDSETS_ENDPOINT,
}


@dataclass
class DataStatus:
    """Status of the local data cache."""

    last_updated: datetime | None
    card_count: int
    version: str | None
    is_stale: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "card_count": self.card_count,
            "version": self.version,
            "stale": self.is_stale,
        }


class DataManager:
    """Manages downloading and caching of YGOPRODeck data."""

    def __init__(self, data_dir: Path):
        """Initialize data manager.

        Args:
            data_dir: Directory for storing downloaded data
        """
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._metadata_path = data_dir / "metadata.json"
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, read=300.0),
                # Redirects are followed by hand so their targets can be validated
                follow_redirects=False,
            )
        return self._http_client

    async def _validated_get(
        self, url: str, stream: bool = False
    ) -> httpx.Response:
        """Perform GET request with redirect URL validation.

        Args:
            url: URL to fetch
            stream: Whether to stream the response

        Returns:
            Response object

        Raises:
            ValueError: If redirect goes to non-allowed domain
        """
        client = await self._get_client()
        max_redirects = 5

        for _ in range(max_redirects):
            if stream:
                response = await client.send(
                    client.build_request("GET", url),
                    stream=True,
                )
            else:
                response = await client.get(url)

            if response.is_redirect:
                redirect_url = response.headers.get("location")
                if not redirect_url:
                    raise ValueError("Redirect response missing location header")

                if redirect_url.startswith("/"):
                    parsed = urlparse(url)
                    redirect_url = f"{parsed.scheme}://{parsed.netloc}{redirect_url}"

                if not self.is_valid_download_url(redirect_url):
                    raise ValueError(
                        f"Redirect to non-allowed domain: {redirect_url}"
                    )

                url = redirect_url
                if stream:
                    await response.aclose()
                continue

            return response

        raise ValueError(f"Too many redirects (max {max_redirects})")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> "DataManager":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and close HTTP client."""
        await self.close()

    def is_valid_download_url(self, url: str) -> bool:
        """Validate that URL is HTTPS on an allowed YGOPRODeck domain."""
        if not url:
            return False

        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if parsed.scheme != "https":
            return False

        return parsed.netloc in ALLOWED_DOMAINS

    async def fetch_db_version(self) -> dict[str, Any]:
        """Fetch the current database version from YGOPRODeck.

        Returns:
            {"database_version": str, "last_update": str}

        Raises:
            ValueError: If the response has no version entry
        """
        response = await self._validated_get(DB_VERSION_ENDPOINT)
        response.raise_for_status()
        payload = response.json()
        if not payload:
            raise ValueError("Empty database version response")
        return payload[0]

    async def download_file(
        self,
        filename: str,
        progress_callback: Callable[[int, int], None] | None = None,
        max_retries: int = 3,
    ) -> Path:
        """Download one data file with retry support.

        Args:
            filename: Local file name, a key of DOWNLOADS
            progress_callback: Optional callback for progress updates (downloaded, total)
            max_retries: Maximum number of retry attempts (default 3)

        Returns:
            Path to downloaded file

        Raises:
            ValueError: If the file name is unknown or the URL is invalid
            httpx.HTTPError: If download fails after all retries
        """
        download_url = DOWNLOADS.get(filename)
        if not download_url:
            raise ValueError(f"Unknown data file: {filename}")
        if not self.is_valid_download_url(download_url):
            raise ValueError(f"Invalid download URL: {download_url}")

        output_path = self.data_dir / filename

        last_error: Exception | None = None
        attempts_made = 0
        for attempt in range(max_retries + 1):
            attempts_made = attempt + 1
            if attempt > 0:
                # Exponential backoff: 1s, 2s, 4s, etc.
                delay = 2 ** (attempt - 1)
                logger.warning(
                    "Download attempt %d/%d for %s failed: %s. Retrying in %ds...",
                    attempt, max_retries + 1, filename, last_error, delay
                )
                await asyncio.sleep(delay)

            try:
                response = await self._validated_get(download_url, stream=True)
                try:
                    response.raise_for_status()

                    total_size = int(response.headers.get("Content-Length", 0))
                    downloaded = 0

                    with open(output_path, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size=8192):
                            f.write(chunk)
                            downloaded += len(chunk)

                            if progress_callback:
                                progress_callback(downloaded, total_size)

                    if attempt > 0:
                        logger.info("Download succeeded on attempt %d/%d", attempt + 1, max_retries + 1)
                    return output_path

                finally:
                    await response.aclose()

            except (httpx.HTTPError, OSError) as e:
                last_error = e
                # Remove partial download on error
                output_path.unlink(missing_ok=True)
                continue

        error_msg = f"Download of {filename} failed after {attempts_made} attempts"
        if isinstance(last_error, httpx.HTTPError):
            raise httpx.HTTPError(f"{error_msg}: {last_error}") from last_error
        if last_error:
            raise OSError(f"{error_msg}: {last_error}") from last_error
        raise RuntimeError(error_msg)

    async def download_all(
        self,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[Path]:
        """Download the card database and set catalog, then record the version.

        Returns:
            Paths of the downloaded files
        """
        version = await self.fetch_db_version()

        paths = []
        for filename in DOWNLOADS:
            paths.append(await self.download_file(filename, progress_callback))

        self._write_metadata_atomic({
            "database_version": version.get("database_version"),
            "last_update": version.get("last_update"),
            "downloaded_at": datetime.now(timezone.utc).isoformat(),
            "card_count": 0,  # Updated after loading
        })
        logger.info("Downloaded database version %s", version.get("database_version"))
        return paths

    def _load_metadata(self) -> dict[str, Any] | None:
        """Load metadata from file."""
        if not self._metadata_path.exists():
            return None

        try:
            with open(self._metadata_path) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            return None

    def _write_metadata_atomic(self, metadata: dict[str, Any]) -> None:
        """Write metadata file atomically using write-to-temp-then-rename."""
        # Temp file in the same directory keeps the rename on one filesystem
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir,
            prefix=".metadata_",
            suffix=".tmp"
        )
        try:
            with open(temp_fd, "w") as f:
                json.dump(metadata, f)
            Path(temp_path).replace(self._metadata_path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    async def is_cache_stale(self) -> bool:
        """Check if the local copy is older than the server's database.

        Returns:
            True if the cache is stale, missing, or the server can't be reached
        """
        metadata = self._load_metadata()
        if not metadata:
            return True

        local_version = metadata.get("database_version")
        if not local_version:
            return True

        for filename in DOWNLOADS:
            if not (self.data_dir / filename).exists():
                return True

        try:
            server_version = (await self.fetch_db_version()).get("database_version")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not check database version: %s", e)
            return True

        return local_version != server_version

    async def get_status(self) -> DataStatus:
        """Get status of local data cache."""
        metadata = self._load_metadata()

        if not metadata:
            return DataStatus(
                last_updated=None,
                card_count=0,
                version=None,
                is_stale=True,
            )

        last_updated = None
        downloaded_at = metadata.get("downloaded_at")
        if downloaded_at:
            try:
                last_updated = datetime.fromisoformat(downloaded_at)
            except ValueError:
                pass

        return DataStatus(
            last_updated=last_updated,
            card_count=metadata.get("card_count", 0),
            version=metadata.get("database_version"),
            is_stale=await self.is_cache_stale(),
        )

    def update_card_count(self, count: int) -> None:
        """Update card count in metadata.

        Args:
            count: Number of cards loaded
        """
        metadata = self._load_metadata() or {}
        metadata["card_count"] = count
        self._write_metadata_atomic(metadata)
