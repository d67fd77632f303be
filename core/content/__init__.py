"""
Remote content access for verse-collections.
"""

from .client import ContentSource, QuranContentClient, ContentFetchError, RetryConfig, DEFAULT_BASE_URL

__all__ = [
    "ContentSource",
    "QuranContentClient",
    "ContentFetchError",
    "RetryConfig",
    "DEFAULT_BASE_URL"
]
