"""
Pydantic schemas for the gateway HTTP API.

Defines the wire shapes of documents, search requests/responses and batch
submissions. Unknown properties in incoming JSON are ignored.
"""

from typing import Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)

from searchgate.json_mapper import Base64Payload

# A document field holds a single scalar; nested structures are rejected.
FieldValue = Optional[Union[StrictBool, StrictInt, StrictFloat, StrictStr]]

DEFAULT_SCORE = 1.0
DEFAULT_OFFSET = 0
DEFAULT_LIMIT = 10


class Document(BaseModel):
    """One indexable document."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Document identifier")
    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    score: float = Field(DEFAULT_SCORE, description="Relevance score")
    payload: Base64Payload = Field(None, description="Opaque binary payload (base64)")

    @field_validator("fields", mode="before")
    @classmethod
    def default_fields(cls, v):
        return {} if v is None else v

    @field_validator("score", mode="before")
    @classmethod
    def default_score(cls, v):
        return DEFAULT_SCORE if v is None else v


class AddBatchRequest(BaseModel):
    """Batch submission envelope."""

    model_config = ConfigDict(extra="ignore")

    docs: List[Document] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """Search parameters, as parsed from the query string."""

    model_config = ConfigDict(extra="ignore")

    q: str = ""
    offset: int = Field(DEFAULT_OFFSET, ge=0)
    limit: int = Field(DEFAULT_LIMIT, ge=0, description="0 returns the hit count only")


class SearchResults(BaseModel):
    """
    One page of search results.

    ``offset`` and ``limit`` echo the request so that clients can rebuild
    their pagination state from the response alone.
    """

    model_config = ConfigDict(populate_by_name=True)

    docs: List[Document]
    total_results: int = Field(..., alias="totalResults")
    offset: int
    limit: int
