"""
Mapping between wire documents and the engine's document model.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from searchgate.connectors.redisearch import EngineDocument, EngineResult
from searchgate.gateway.schemas import DEFAULT_SCORE, Document, SearchResults


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _format_float(value: float) -> str:
    return repr(float(value))


# Checked in order: bool before int
_STRINGIFY_RULES: List[Tuple[Type, Callable[[Any], str]]] = [
    (str, str),
    (bool, _format_bool),
    (int, str),
    (float, _format_float),
]


def stringify(value: Any) -> Optional[str]:
    """String form of a field value, or None for null (field omitted)."""
    if value is None:
        return None
    for value_type, formatter in _STRINGIFY_RULES:
        if isinstance(value, value_type):
            return formatter(value)
    raise TypeError(f"Unsupported field value type: {type(value).__name__}")


def to_engine_fields(doc: Document) -> Dict[str, str]:
    """Field map of a document with every value stringified, nulls dropped."""
    result = {}
    for name, value in doc.fields.items():
        text = stringify(value)
        if text is not None:
            result[name] = text
    return result


def from_engine_document(doc: EngineDocument) -> Document:
    """Rebuild a wire document from whatever properties the engine returned."""
    return Document(
        id=doc.id,
        fields={name: value for name, value in doc.properties.items()},
        score=doc.score if doc.score is not None else DEFAULT_SCORE,
        payload=doc.payload,
    )


def to_search_results(result: EngineResult, offset: int, limit: int) -> SearchResults:
    """Wire response for one page; docs keep the engine's order."""
    return SearchResults(
        docs=[from_engine_document(doc) for doc in result.docs],
        total_results=result.total,
        offset=offset,
        limit=limit,
    )
