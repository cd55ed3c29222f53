"""
RediSearch engine connector.

Provides the RediSearchClient for creating, evolving and querying an index.
"""

from searchgate.connectors.redisearch.client import (
    EngineDocument,
    EngineResult,
    RediSearchClient,
    create_client,
    field_names_from_info,
    is_index_exists_error,
    is_unknown_index_error,
)

__all__ = [
    "EngineDocument",
    "EngineResult",
    "RediSearchClient",
    "create_client",
    "field_names_from_info",
    "is_index_exists_error",
    "is_unknown_index_error",
]
