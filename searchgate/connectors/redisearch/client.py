"""
RediSearch engine client.

Wraps a redis.Redis connection (which pools connections internally and is
safe to share between worker threads) and exposes the handful of engine
operations the gateway needs: index create/alter/introspect, document
writes and queries.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import redis
from redis.commands.search.field import GeoField, NumericField, TagField, TextField
from redis.commands.search.query import Query

try:
    from redis.commands.search.index_definition import IndexDefinition, IndexType
except ImportError:  # redis-py < 6 names the module in camelCase
    from redis.commands.search.indexDefinition import IndexDefinition, IndexType

from searchgate.config import FieldDeclaration, FieldType
from searchgate.exceptions import EngineError, IndexExistsError
from searchgate.logging_config import get_logger

logger = get_logger(__name__)

# Hash fields the engine reads a document's score and payload from
SCORE_FIELD = "__score"
PAYLOAD_FIELD = "__payload"

MATCH_ALL = "*"


@dataclass
class EngineDocument:
    """A document as returned by the engine, before wire mapping."""
    id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    score: Optional[float] = None
    payload: Optional[bytes] = None


@dataclass
class EngineResult:
    """Engine query result: documents in engine order and total hit count."""
    docs: List[EngineDocument]
    total: int


def is_index_exists_error(error: Exception) -> bool:
    """Whether an engine error means "index already exists".

    The engine only signals this condition through its message text, so the
    check is kept here and nowhere else.
    """
    return (
        isinstance(error, redis.exceptions.ResponseError)
        and "already exists" in str(error).lower()
    )


def is_unknown_index_error(error: Exception) -> bool:
    """Whether an engine error means the index is not defined."""
    if not isinstance(error, redis.exceptions.ResponseError):
        return False
    message = str(error).lower()
    return "unknown index name" in message or "no such index" in message


def to_engine_field(declaration: FieldDeclaration):
    """Build the redis-py field definition for a declared field."""
    if declaration.type is FieldType.TEXT:
        return TextField(
            declaration.name,
            weight=declaration.weight,
            no_stem=declaration.no_stem,
            sortable=declaration.sortable,
            no_index=declaration.no_index,
        )
    if declaration.type is FieldType.TAG:
        return TagField(
            declaration.name,
            separator=declaration.separator or ",",
            sortable=declaration.sortable,
            no_index=declaration.no_index,
        )
    if declaration.type is FieldType.NUMERIC:
        return NumericField(
            declaration.name, sortable=declaration.sortable, no_index=declaration.no_index
        )
    return GeoField(
        declaration.name, sortable=declaration.sortable, no_index=declaration.no_index
    )


def _text(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def field_names_from_info(info: Dict[str, Any]) -> set[str]:
    """Extract the live field names from an FT.INFO reply.

    RediSearch 2.x reports ``attributes`` as flat key/value lists
    (``identifier``, ``attribute``, ``type``, ...); older servers report
    ``fields`` as lists whose first element is the field name.
    """
    names = set()
    attributes = info.get("attributes")
    if attributes is not None:
        for entry in attributes:
            if isinstance(entry, dict):
                pairs = {_text(k): _text(v) for k, v in entry.items()}
            else:
                items = [_text(item) for item in entry]
                pairs = dict(zip(items[::2], items[1::2]))
            name = pairs.get("attribute") or pairs.get("identifier")
            if name:
                names.add(name)
        return names

    for entry in info.get("fields") or []:
        if entry:
            names.add(_text(entry[0]))
    return names


class RediSearchClient:
    """
    Handle on one RediSearch index.

    One instance is created per process and shared by every worker thread.
    All redis failures are re-raised as EngineError, except on document
    writes where a data error only marks that document as failed.
    """

    def __init__(
        self,
        index_name: str,
        prefix: str,
        host: str = "localhost",
        port: int = 6379,
        timeout_seconds: float = 5.0,
        connection: Optional[redis.Redis] = None,
    ):
        self.index_name = index_name
        self.prefix = prefix
        self._redis = connection or redis.Redis(
            host=host,
            port=port,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        self._search = self._redis.ft(index_name)

    # =========================================================================
    # Schema
    # =========================================================================

    def create_index(self, fields: Sequence[FieldDeclaration]) -> None:
        """Create the index over hashes under the key prefix.

        Raises:
            IndexExistsError: if the index is already defined
            EngineError: on any other engine failure
        """
        definition = IndexDefinition(
            prefix=[self.prefix],
            index_type=IndexType.HASH,
            score_field=SCORE_FIELD,
            payload_field=PAYLOAD_FIELD,
        )
        try:
            self._search.create_index(
                [to_engine_field(f) for f in fields], definition=definition
            )
        except redis.exceptions.RedisError as e:
            if is_index_exists_error(e):
                raise IndexExistsError(str(e)) from e
            raise EngineError(f"Failed to create index {self.index_name}: {e}") from e

    def alter_index(self, fields: Sequence[FieldDeclaration]) -> None:
        """Add fields to the existing index, in the given order."""
        try:
            self._search.alter_schema_add([to_engine_field(f) for f in fields])
        except redis.exceptions.RedisError as e:
            raise EngineError(f"Failed to alter index {self.index_name}: {e}") from e

    def field_names(self) -> set[str]:
        """Names of the fields currently defined on the live index."""
        try:
            info = self._search.info()
        except redis.exceptions.RedisError as e:
            raise EngineError(f"Failed to read index info for {self.index_name}: {e}") from e
        return field_names_from_info(info)

    def index_exists(self) -> bool:
        try:
            self._search.info()
        except redis.exceptions.RedisError as e:
            if is_unknown_index_error(e):
                return False
            raise EngineError(f"Failed to read index info for {self.index_name}: {e}") from e
        return True

    # =========================================================================
    # Documents
    # =========================================================================

    def document_key(self, doc_id: str) -> str:
        return f"{self.prefix}{doc_id}"

    def add_document(
        self,
        doc_id: str,
        fields: Dict[str, str],
        score: float = 1.0,
        payload: Optional[bytes] = None,
    ) -> bool:
        """Write one document as a hash, replacing the given fields only.

        Returns:
            True if the engine accepted the write, False if it rejected it

        Raises:
            EngineError: on connection or timeout failures
        """
        mapping: Dict[str, Any] = dict(fields)
        mapping[SCORE_FIELD] = repr(float(score))
        if payload is not None:
            mapping[PAYLOAD_FIELD] = payload

        try:
            self._redis.hset(self.document_key(doc_id), mapping=mapping)
        except redis.exceptions.ResponseError as e:
            logger.warning(f"Engine rejected document {doc_id}: {e}")
            return False
        except redis.exceptions.RedisError as e:
            raise EngineError(f"Failed to add document {doc_id}: {e}") from e
        return True

    def search(self, query: str, offset: int, limit: int) -> EngineResult:
        """Run a query, returning one page of documents in engine order.

        Payloads are read back with HGET rather than from the search reply,
        which redis-py decodes as UTF-8 text.
        """
        q = Query(query or MATCH_ALL).paging(offset, limit).with_scores()
        try:
            result = self._search.search(q)
            payloads = self._fetch_payloads([_text(doc.id) for doc in result.docs])
        except redis.exceptions.RedisError as e:
            raise EngineError(f"Search failed for query '{query}': {e}") from e

        return EngineResult(
            docs=[
                self._to_engine_document(doc, payload)
                for doc, payload in zip(result.docs, payloads)
            ],
            total=int(result.total),
        )

    def _fetch_payloads(self, keys: List[str]) -> List[Optional[bytes]]:
        if not keys:
            return []
        pipe = self._redis.pipeline(transaction=False)
        for key in keys:
            pipe.hget(key, PAYLOAD_FIELD)
        return pipe.execute()

    def _to_engine_document(self, doc, payload: Optional[bytes]) -> EngineDocument:
        properties = dict(vars(doc))
        doc_id = _text(properties.pop("id"))
        properties.pop("payload", None)
        score = properties.pop("score", None)
        properties.pop(SCORE_FIELD, None)
        properties.pop(PAYLOAD_FIELD, None)

        if doc_id.startswith(self.prefix):
            doc_id = doc_id[len(self.prefix):]

        return EngineDocument(
            id=doc_id,
            properties={k: _text(v) for k, v in properties.items()},
            score=float(score) if score is not None else None,
            payload=payload,
        )

    # =========================================================================
    # Connection
    # =========================================================================

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.exceptions.RedisError as e:
            raise EngineError(f"Engine ping failed: {e}") from e

    def close(self) -> None:
        self._redis.close()

    def __repr__(self) -> str:
        return f"RediSearchClient(index={self.index_name!r}, prefix={self.prefix!r})"


def create_client(
    index_name: str, prefix: str, host: str, port: int, timeout_seconds: float
) -> RediSearchClient:
    logger.info(f"Connecting to engine at {host}:{port} (index {index_name})")
    return RediSearchClient(
        index_name, prefix, host=host, port=port, timeout_seconds=timeout_seconds
    )

