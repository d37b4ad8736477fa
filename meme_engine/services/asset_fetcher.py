"""Downloads remote assets into a job's working directory."""

import logging
from pathlib import Path

import httpx

from meme_engine.config import Settings, get_settings
from meme_engine.exceptions import FetchError

logger = logging.getLogger(__name__)


class AssetFetcher:
    """Streams HTTP response bodies straight to disk.

    There is no retry: one failed fetch fails the whole job. A partially
    written destination is left for the job's workspace cleanup.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.fetch_timeout_seconds),
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch(self, url: str, dest_path: str | Path) -> Path:
        """Download ``url`` to ``dest_path`` chunk by chunk.

        Raises:
            FetchError: On transport errors, timeouts or non-2xx responses.
        """
        dest = Path(dest_path)
        written = 0

        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"Failed to fetch {url}: HTTP {response.status_code}",
                            url=url,
                        )
                    with dest.open("wb") as f:
                        async for chunk in response.aiter_bytes(self.settings.fetch_chunk_size):
                            f.write(chunk)
                            written += len(chunk)
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out after {self.settings.fetch_timeout_seconds:g}s fetching {url}",
                url=url,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e
        except OSError as e:
            raise FetchError(f"Failed to write {url} to {dest}: {e}", url=url) from e

        logger.info("Fetched %s -> %s (%d bytes)", url, dest, written)
        return dest
