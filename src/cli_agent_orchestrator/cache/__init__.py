"""Response cache package initialization."""

from cli_agent_orchestrator.cache.response_cache import CacheEntry, ResponseCache, make_key

__all__ = [
    "CacheEntry",
    "ResponseCache",
    "make_key",
]
