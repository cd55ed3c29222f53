"""
HTTP gateway in front of the search index.

Components:
- schemas.py - Pydantic models for documents, searches and batches
- codec.py   - Wire document <-> engine document mapping
- auth.py    - Shared-secret token check for mutating endpoints
- api.py     - Route handlers for status, search and indexing
"""

from searchgate.gateway.schemas import (
    AddBatchRequest,
    Document,
    SearchRequest,
    SearchResults,
)
from searchgate.gateway.auth import TokenAuth
from searchgate.gateway.api import SearchGateway

__all__ = [
    # Schemas
    "AddBatchRequest",
    "Document",
    "SearchRequest",
    "SearchResults",
    # Auth
    "TokenAuth",
    # Routes
    "SearchGateway",
]
