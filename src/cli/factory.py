"""Factories for the record store client and rate-limited executor.

The CLI, API and MCP server all build their Notion client and executor
here, so config handling stays in one place.
"""

from src.cli.config import CRMForgeConfig
from src.errors.formatter import CRMForgeError
from src.services.notion_client import NotionClient
from src.services.rate_limiter import RateLimitedExecutor


def get_client(config: CRMForgeConfig, api_key: str | None = None) -> NotionClient:
    """Create a NotionClient from config.

    Args:
        config: Loaded config.
        api_key: Token overriding the configured one.

    Returns:
        A NotionClient; close it with ``aclose()`` or ``async with``.

    Raises:
        CRMForgeError: E-5001 if no token is available.
    """
    key = api_key or config.resolved_api_key()
    if not key:
        raise CRMForgeError.from_code("E-5001")
    store = config.record_store
    return NotionClient(
        api_key=key,
        base_url=store.base_url,
        notion_version=store.notion_version,
        timeout=store.timeout_seconds,
    )


def get_executor(config: CRMForgeConfig) -> RateLimitedExecutor:
    """Create a RateLimitedExecutor from the rate_limit section."""
    return RateLimitedExecutor(
        min_interval=config.rate_limit.min_interval_seconds,
        max_retries=config.rate_limit.max_retries,
    )
