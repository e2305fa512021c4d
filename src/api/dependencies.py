"""
FastAPI dependency injection and storage bootstrap.

The call record store and the identity fetcher are built together
because the production DynamoDB client reads the token the fetcher
writes: the first token must be on disk before the client is created.

Both live for the whole process, so they are created once in the app
lifespan and handed to routes from app.state.
"""

import logging
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..infrastructure.dynamodb.client import (
    CallRecordStore,
    DynamoDBConfig,
    create_call_record_store,
)
from ..infrastructure.identity.fetcher import (
    IdentityFetcher,
    IdentityFetcherConfig,
    IdentityFetcherError,
)

logger = logging.getLogger(__name__)

# Placeholder for deployments that never fetch a token.
UNUSED_TOKEN_PATH = Path("/tmp/token")


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

async def build_storage(settings: Settings) -> tuple[CallRecordStore, IdentityFetcher]:
    """
    Create the call record store and its identity fetcher.

    Mock mode and local endpoints don't authenticate with a web identity,
    so their fetcher has no URL and never touches the filesystem. For
    production DynamoDB one token is fetched eagerly before the client
    is created.

    Raises:
        IdentityFetcherError: token path missing or initial fetch failed
    """
    interval = settings.identity_fetcher_interval_seconds

    if settings.storage_mock_mode or settings.storage_endpoint:
        fetcher = IdentityFetcher(IdentityFetcherConfig(
            identity_token_path=UNUSED_TOKEN_PATH,
            identity_token_url=None,
            fetch_interval_seconds=interval,
        ))

        if settings.storage_mock_mode:
            return create_call_record_store(mock_mode=True), fetcher

        config = DynamoDBConfig(
            table_name=settings.storage_table,
            region=settings.storage_region,
            region_index=settings.storage_region_index,
            endpoint_url=settings.storage_endpoint,
            max_attempts=settings.storage_max_attempts,
        )
        return create_call_record_store(config=config), fetcher

    # The same location the AWS SDK reads credentials from.
    if not settings.aws_web_identity_token_file:
        raise IdentityFetcherError("AWS_WEB_IDENTITY_TOKEN_FILE is not set")

    fetcher = IdentityFetcher(IdentityFetcherConfig(
        identity_token_path=Path(settings.aws_web_identity_token_file),
        identity_token_url=settings.identity_token_url,
        fetch_interval_seconds=interval,
    ))

    try:
        await fetcher.fetch_token()
    except Exception as e:
        await fetcher.close()
        raise IdentityFetcherError(f"Initial identity token fetch failed: {e}") from e

    config = DynamoDBConfig(
        table_name=settings.storage_table,
        region=settings.storage_region,
        region_index=settings.storage_region_index,
        max_attempts=settings.storage_max_attempts,
    )
    return create_call_record_store(config=config), fetcher


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_call_record_store(request: Request) -> CallRecordStore:
    """Provide the process-wide call record store created at startup."""
    return request.app.state.call_record_store


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

CallRecordStoreDep = Annotated[CallRecordStore, Depends(get_call_record_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
