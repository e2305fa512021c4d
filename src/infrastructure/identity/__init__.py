"""Identity token refresh for AWS web identity federation."""

from .fetcher import IdentityFetcher, IdentityFetcherConfig, IdentityFetcherError

__all__ = ["IdentityFetcher", "IdentityFetcherConfig", "IdentityFetcherError"]
