"""
Gateway API route handlers.

Provides:
- Status check (GET /status)
- Search (GET /search, OPTIONS /search for CORS preflight)
- Single document add (POST /index/add)
- Batch document add (POST /index/addBatch)

All paths are mounted under the configured root path. Blocking work (JSON
decoding, engine calls) runs on the gateway's bounded worker pool so the
event loop keeps accepting connections while the engine is slow.
"""

import asyncio
import contextvars
import functools
import json
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List

from pydantic import ValidationError
from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from searchgate.exceptions import EngineError, RequestError
from searchgate.gateway.auth import TokenAuth
from searchgate.gateway.codec import to_engine_fields, to_search_results
from searchgate.gateway.schemas import AddBatchRequest, Document, SearchRequest
from searchgate.json_mapper import SortedJSONResponse, from_json, to_json
from searchgate.logging_config import get_logger

logger = get_logger(__name__)

HTTP_STATUS = "/status"
HTTP_SEARCH = "/search"
HTTP_ADD = "/index/add"
HTTP_ADD_BATCH = "/index/addBatch"

SEARCH_METHODS = "GET, OPTIONS"
SEARCH_PARAMS = ("q", "offset", "limit")

JSON_MEDIA_TYPE = "application/json"


def parse_json_body(body: bytes) -> Any:
    try:
        return from_json(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestError(f"Malformed JSON body: {e}") from e


def parse_document(body: bytes) -> Document:
    try:
        return Document.model_validate(parse_json_body(body))
    except ValidationError as e:
        raise RequestError(f"Invalid document: {e}") from e


def parse_batch(body: bytes) -> List[Document]:
    data = parse_json_body(body)
    if isinstance(data, list):
        data = {"docs": data}
    try:
        return AddBatchRequest.model_validate(data).docs
    except ValidationError as e:
        raise RequestError(f"Invalid document batch: {e}") from e


class SearchGateway:
    """
    HTTP front for one search index.

    The engine client is shared by all requests; it must be safe to call
    from several worker threads at once.
    """

    def __init__(
        self,
        engine,
        auth: TokenAuth,
        executor: Executor,
        cors_allow_origins: str = "*",
    ):
        self.engine = engine
        self.auth = auth
        self.executor = executor
        self.cors_allow_origins = cors_allow_origins

    async def _dispatch(self, func: Callable, *args) -> Any:
        """Run blocking work on the worker pool, in the request's context."""
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(self.executor, functools.partial(ctx.run, func, *args))

    def _cors_headers(self, methods: str) -> Dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.cors_allow_origins,
            "Access-Control-Allow-Methods": methods,
        }

    # =========================================================================
    # Status
    # =========================================================================

    async def status(self, request: Request) -> Response:
        return PlainTextResponse("ok")

    # =========================================================================
    # Search
    # =========================================================================

    async def search_options(self, request: Request) -> Response:
        """CORS preflight for the search endpoint."""
        return Response(headers=self._cors_headers(SEARCH_METHODS))

    async def search(self, request: Request) -> Response:
        """
        Query the index.

        GET /search?q=&offset=&limit=
        """
        headers = self._cors_headers(SEARCH_METHODS)

        raw = {
            name: request.query_params.getlist(name)[0]
            for name in SEARCH_PARAMS
            if name in request.query_params
        }
        try:
            params = SearchRequest.model_validate(raw)
        except ValidationError as e:
            logger.info(f"Rejected search parameters {raw}: {e.error_count()} error(s)")
            return Response(status_code=400, headers=headers)

        logger.info(f"Searching for query {params.q!r}")
        try:
            body = await self._dispatch(self._run_search, params)
        except EngineError:
            logger.error("Search failure", exc_info=True)
            return Response(status_code=500, headers=headers)
        except (TypeError, ValueError):
            logger.error("Failed to serialize search results", exc_info=True)
            return Response(status_code=500, headers=headers)
        except Exception:
            # Answered here so the 500 still carries the CORS headers
            logger.exception("Unexpected search failure")
            return Response(status_code=500, headers=headers)

        return Response(body, media_type=JSON_MEDIA_TYPE, headers=headers)

    def _run_search(self, params: SearchRequest) -> bytes:
        result = self.engine.search(params.q, params.offset, params.limit)
        results = to_search_results(result, params.offset, params.limit)
        return to_json(results.model_dump(mode="json", by_alias=True)).encode("utf-8")

    # =========================================================================
    # Indexing
    # =========================================================================

    def _submit(self, doc: Document) -> bool:
        return self.engine.add_document(
            doc.id, to_engine_fields(doc), score=doc.score, payload=doc.payload
        )

    def _add_one(self, body: bytes) -> bool:
        return self._submit(parse_document(body))

    def _add_batch(self, body: bytes) -> int:
        docs = parse_batch(body)
        ok = 0
        for doc in docs:
            if self._submit(doc):
                ok += 1
        logger.info(f"Indexed {ok} of {len(docs)} documents")
        return ok

    async def _index(self, request: Request, func: Callable) -> Response:
        """Shared request flow of the indexing endpoints (auth already passed)."""
        try:
            body = await request.body()
            result = await self._dispatch(func, body)
        except RequestError as e:
            logger.warning(f"Bad request to {request.url.path}: {e}")
            return Response(status_code=400)
        except EngineError:
            logger.error("Failed to index documents", exc_info=True)
            return Response(status_code=500)
        except ClientDisconnect:
            logger.warning(f"Client disconnected while sending {request.url.path}")
            return Response(status_code=500)

        return SortedJSONResponse(result)

    async def add(self, request: Request) -> Response:
        """
        Index one document.

        POST /index/add  ->  true | false
        """
        error = self.auth.validate_request(request)
        if error:
            return error

        logger.info("Adding document to the index")
        return await self._index(request, self._add_one)

    async def add_batch(self, request: Request) -> Response:
        """
        Index a batch of documents, one at a time.

        POST /index/addBatch  ->  number of documents indexed
        """
        error = self.auth.validate_request(request)
        if error:
            return error

        logger.info("Adding document batch to the index")
        return await self._index(request, self._add_batch)

    # =========================================================================
    # Route definitions
    # =========================================================================

    def routes(self, root_path: str = "") -> List[Route]:
        return [
            Route(f"{root_path}{HTTP_STATUS}", self.status, methods=["GET"]),
            Route(f"{root_path}{HTTP_SEARCH}", self.search, methods=["GET"]),
            Route(f"{root_path}{HTTP_SEARCH}", self.search_options, methods=["OPTIONS"]),
            Route(f"{root_path}{HTTP_ADD}", self.add, methods=["POST"]),
            Route(f"{root_path}{HTTP_ADD_BATCH}", self.add_batch, methods=["POST"]),
        ]
