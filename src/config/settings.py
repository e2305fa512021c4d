"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a DynamoDB table.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # API Configuration
    api_title: str = "Group Call Registry"
    api_version: str = "v1"

    # DynamoDB Configuration
    storage_table: str = Field(
        default="Conferences",
        description="DynamoDB table holding one call record per group"
    )
    storage_region_index: str = Field(
        default="region-index",
        description="Global secondary index keyed by backend region"
    )
    storage_region: str = Field(
        default="us-west-1",
        description="AWS region of the DynamoDB table"
    )
    storage_endpoint: Optional[str] = Field(
        default=None,
        description="Endpoint of a local DynamoDB for testing. Uses dummy keys and skips identity fetching."
    )
    storage_max_attempts: int = Field(
        default=4,
        description="Total attempts the AWS SDK makes per request, including the first."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory store instead of DynamoDB. Enables local dev without AWS."
    )

    # Identity Token Configuration
    identity_fetcher_interval_ms: int = Field(
        default=600_000,
        gt=0,
        description="Interval between identity token refreshes, in milliseconds."
    )
    identity_token_url: Optional[str] = Field(
        default=None,
        description="URL to fetch the web identity token from. Refresh is disabled when unset."
    )
    aws_web_identity_token_file: Optional[str] = Field(
        default=None,
        description="Token file read by the AWS SDK. The fetcher keeps it up to date."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def identity_fetcher_interval_seconds(self) -> float:
        """Fetch interval in the unit asyncio.sleep expects."""
        return self.identity_fetcher_interval_ms / 1000

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the configured mode.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode or talking to a local endpoint.
        """
        missing = []

        if not self.storage_table:
            missing.append("STORAGE_TABLE")

        # Production DynamoDB authenticates with the web identity token file
        if not self.storage_mock_mode and not self.storage_endpoint:
            if not self.aws_web_identity_token_file:
                missing.append("AWS_WEB_IDENTITY_TOKEN_FILE")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
