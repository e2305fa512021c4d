"""
Web identity token refresh for DynamoDB access.

The AWS SDK authenticates by reading a web identity token from the file
named by AWS_WEB_IDENTITY_TOKEN_FILE. Tokens issued by the GCP metadata
server expire, so a background task periodically fetches a new one and
swaps it into place.

The file is replaced with an atomic rename of a sibling temp file. A
reader always sees either the old complete token or the new complete
token, never a partial write and never a missing file.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Required by the GCP metadata server for identity requests.
METADATA_HEADERS = {"Metadata-Flavor": "Google"}


class IdentityFetcherError(Exception):
    """Raised when the identity token cannot be put in place at startup."""
    pass


@dataclass
class IdentityFetcherConfig:
    """
    Where to fetch the token from and where to write it.

    A missing identity_token_url disables fetching, which is what local
    and test deployments want.
    """
    identity_token_path: Path
    identity_token_url: Optional[str] = None
    fetch_interval_seconds: float = 600.0


class IdentityFetcher:
    """
    Periodically refreshes the identity token file.

    Two states only: running inside run(), and stopped once run() returns.
    There is no pause or restart; the host process owns that decision.
    """

    def __init__(
        self,
        config: IdentityFetcherConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._client = http_client or httpx.AsyncClient()

    @property
    def identity_token_path(self) -> Path:
        return self._config.identity_token_path

    @property
    def temp_path(self) -> Path:
        """Sibling of the token file, so the rename stays on one filesystem."""
        path = self._config.identity_token_path
        return path.with_name(path.name + ".bak")

    async def fetch_token(self) -> None:
        """
        Fetch one token and atomically replace the token file with it.

        Does nothing when no URL is configured. Errors propagate; the
        existing token file is only touched by the final rename.
        """
        url = self._config.identity_token_url
        if url is None:
            return

        logger.debug("Fetching identity token", extra={"url": url})

        response = await self._client.get(url, headers=METADATA_HEADERS)
        response.raise_for_status()

        await asyncio.to_thread(self._replace_token_file, response.content)

        logger.debug(
            "Successfully wrote identity token",
            extra={"path": str(self._config.identity_token_path)}
        )

    def _replace_token_file(self, body: bytes) -> None:
        temp_path = self.temp_path
        with open(temp_path, "wb") as temp_file:
            temp_file.write(body)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, self._config.identity_token_path)

    async def _fetch_forever(self) -> None:
        while True:
            # Sleep after each cycle rather than on a fixed schedule, so we
            # never wait less than one interval before the next fetch.
            await asyncio.sleep(self._config.fetch_interval_seconds)

            started = time.perf_counter()
            try:
                await self.fetch_token()
            except Exception as e:
                logger.error(
                    "Failed to fetch identity token",
                    extra={"event": "identity_fetcher.error", "error": str(e)},
                    exc_info=e,
                )

            logger.debug(
                "Identity fetch cycle finished",
                extra={
                    "event": "identity_fetcher.timed",
                    "duration_us": int((time.perf_counter() - started) * 1_000_000),
                }
            )

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Refresh the token until stop_event is set.

        The fetch loop and the stop signal race; whichever finishes first
        wins and the other is cancelled without waiting for it. Cancelling
        run() itself stops the loop the same way. An in-flight request is
        abandoned; a file write already handed to a worker thread still
        completes its atomic rename.
        """
        fetcher_task = asyncio.create_task(self._fetch_forever(), name="identity-fetcher")
        stop_task = asyncio.create_task(stop_event.wait(), name="identity-fetcher-stop")

        logger.info("Identity fetcher ready")

        try:
            done, _ = await asyncio.wait(
                {fetcher_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Also reached when run() itself is cancelled; no loop may outlive it.
            fetcher_task.cancel()
            stop_task.cancel()

        if fetcher_task in done and not fetcher_task.cancelled() and fetcher_task.exception():
            logger.error(
                "Identity fetcher loop ended unexpectedly",
                extra={"error": str(fetcher_task.exception())}
            )

        logger.info("Identity fetcher shutdown")

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
