"""Unit tests for the gateway HTTP routes."""

import base64
import json
from unittest.mock import call

import pytest
from starlette.testclient import TestClient

from searchgate.connectors.redisearch import EngineResult
from searchgate.exceptions import EngineError
from searchgate.logging_config import get_correlation_id
from searchgate.service import create_app

ORIGIN = "https://shop.example.com"


def auth(value: str) -> dict:
    return {"Authorization": value}


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def test_status_returns_ok(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["content-type"].startswith("text/plain")


def test_responses_carry_correlation_id(client):
    response = client.get("/status", headers={"x-correlation-id": "abc-123"})
    assert response.headers["x-correlation-id"] == "abc-123"


def test_correlation_id_generated_when_absent(client):
    response = client.get("/status")
    assert response.headers["x-correlation-id"]


# ---------------------------------------------------------------------------
# Auth gate
# ---------------------------------------------------------------------------

class TestAuthGate:
    """The submission token guards both indexing endpoints."""

    def test_bare_token_accepted(self, client, mock_engine, token):
        response = client.post("/index/add", json={"id": "a"}, headers=auth(token))
        assert response.status_code == 200
        mock_engine.add_document.assert_called_once()

    def test_bearer_token_accepted(self, client, mock_engine, token):
        response = client.post("/index/add", json={"id": "a"}, headers=auth(f"bearer {token}"))
        assert response.status_code == 200
        mock_engine.add_document.assert_called_once()

    @pytest.mark.parametrize("value", [
        "wrong",
        "Bearer {token}",
        "bearer  {token}",
        "{token}x",
        "",
    ])
    def test_other_values_rejected(self, client, mock_engine, token, value):
        response = client.post("/index/add", json={"id": "a"}, headers=auth(value.format(token=token)))
        assert response.status_code == 403
        mock_engine.add_document.assert_not_called()

    def test_missing_header_rejected(self, client, mock_engine):
        response = client.post("/index/add", json={"id": "a"})
        assert response.status_code == 403
        mock_engine.add_document.assert_not_called()

    def test_batch_requires_token(self, client, mock_engine):
        response = client.post("/index/addBatch", json={"docs": [{"id": "a"}]})
        assert response.status_code == 403
        mock_engine.add_document.assert_not_called()

    def test_rejected_before_body_is_parsed(self, client, mock_engine):
        response = client.post("/index/add", content=b"{not json", headers=auth("nope"))
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Single add
# ---------------------------------------------------------------------------

class TestAdd:

    def test_add_returns_true_on_success(self, client, mock_engine, token):
        doc = {"id": "a", "fields": {"title": "x"}, "score": 1, "payload": None}
        response = client.post("/index/add", json=doc, headers=auth(token))

        assert response.status_code == 200
        assert response.json() is True
        mock_engine.add_document.assert_called_once_with(
            "a", {"title": "x"}, score=1.0, payload=None
        )

    def test_add_returns_false_when_engine_rejects(self, client, mock_engine, token):
        mock_engine.add_document.return_value = False
        response = client.post("/index/add", json={"id": "a", "fields": {"title": "x"}}, headers=auth(token))

        assert response.status_code == 200
        assert response.json() is False

    def test_fields_are_stringified(self, client, mock_engine, token):
        doc = {"id": "a", "fields": {"count": 5, "ratio": 0.5, "on": True, "gone": None}}
        client.post("/index/add", json=doc, headers=auth(token))

        args, kwargs = mock_engine.add_document.call_args
        assert args[1] == {"count": "5", "ratio": "0.5", "on": "true"}

    def test_score_defaults_to_one(self, client, mock_engine, token):
        client.post("/index/add", json={"id": "a"}, headers=auth(token))
        assert mock_engine.add_document.call_args.kwargs["score"] == 1.0

    def test_payload_is_decoded_from_base64(self, client, mock_engine, token):
        payload = base64.b64encode(b"\x00raw").decode()
        client.post("/index/add", json={"id": "a", "payload": payload}, headers=auth(token))
        assert mock_engine.add_document.call_args.kwargs["payload"] == b"\x00raw"

    def test_unknown_properties_ignored(self, client, mock_engine, token):
        response = client.post("/index/add", json={"id": "a", "colour": "red"}, headers=auth(token))
        assert response.status_code == 200

    def test_malformed_json_is_bad_request(self, client, mock_engine, token):
        response = client.post("/index/add", content=b"{\"id\": ", headers=auth(token))
        assert response.status_code == 400
        mock_engine.add_document.assert_not_called()

    def test_invalid_document_is_bad_request(self, client, mock_engine, token):
        response = client.post("/index/add", json={"fields": {"title": "no id"}}, headers=auth(token))
        assert response.status_code == 400
        mock_engine.add_document.assert_not_called()

    def test_nested_field_value_is_bad_request(self, client, mock_engine, token):
        response = client.post(
            "/index/add", json={"id": "a", "fields": {"nested": {"x": 1}}}, headers=auth(token)
        )
        assert response.status_code == 400
        mock_engine.add_document.assert_not_called()

    def test_engine_failure_is_server_error(self, client, mock_engine, token):
        mock_engine.add_document.side_effect = EngineError("connection refused")
        response = client.post("/index/add", json={"id": "a"}, headers=auth(token))
        assert response.status_code == 500
        assert response.content == b""

    def test_engine_call_runs_with_request_correlation_id(self, client, mock_engine, token):
        seen = []
        mock_engine.add_document.side_effect = lambda *a, **kw: seen.append(get_correlation_id()) or True

        response = client.post(
            "/index/add", json={"id": "a"}, headers={**auth(token), "x-correlation-id": "cid-42"}
        )

        assert response.headers["x-correlation-id"] == "cid-42"
        assert seen == ["cid-42"]


# ---------------------------------------------------------------------------
# Batch add
# ---------------------------------------------------------------------------

class TestAddBatch:

    def test_counts_successful_documents(self, client, mock_engine, token):
        mock_engine.add_document.side_effect = [True, False, True]
        docs = [{"id": "a"}, {"id": "b"}, {"id": "c"}]

        response = client.post("/index/addBatch", json={"docs": docs}, headers=auth(token))

        assert response.status_code == 200
        assert response.json() == 2
        assert mock_engine.add_document.call_args_list == [
            call("a", {}, score=1.0, payload=None),
            call("b", {}, score=1.0, payload=None),
            call("c", {}, score=1.0, payload=None),
        ]

    def test_bare_list_accepted(self, client, mock_engine, token):
        response = client.post("/index/addBatch", json=[{"id": "a"}, {"id": "b"}], headers=auth(token))
        assert response.json() == 2

    def test_batch_stringifies_like_single_add(self, client, mock_engine, token):
        client.post(
            "/index/addBatch",
            json={"docs": [{"id": "a", "fields": {"price": 5}}]},
            headers=auth(f"bearer {token}"),
        )
        mock_engine.add_document.assert_called_once_with(
            "a", {"price": "5"}, score=1.0, payload=None
        )

    def test_empty_batch(self, client, mock_engine, token):
        response = client.post("/index/addBatch", json={"docs": []}, headers=auth(token))
        assert response.json() == 0

    def test_malformed_envelope_submits_nothing(self, client, mock_engine, token):
        response = client.post("/index/addBatch", content=b"[{\"id\": \"a\"},", headers=auth(token))
        assert response.status_code == 400
        mock_engine.add_document.assert_not_called()

    def test_one_invalid_document_rejects_whole_batch(self, client, mock_engine, token):
        docs = [{"id": "a"}, {"fields": {}}]
        response = client.post("/index/addBatch", json={"docs": docs}, headers=auth(token))
        assert response.status_code == 400
        mock_engine.add_document.assert_not_called()


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:

    def test_pagination_is_echoed(self, client, mock_engine, engine_docs):
        mock_engine.search.return_value = EngineResult(docs=engine_docs, total=42)

        response = client.get("/search", params={"q": "foo", "offset": 5, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["offset"] == 5
        assert body["limit"] == 2
        assert body["totalResults"] == 42
        mock_engine.search.assert_called_once_with("foo", 5, 2)

    def test_docs_keep_engine_order(self, client, mock_engine, engine_docs):
        mock_engine.search.return_value = EngineResult(docs=engine_docs, total=3)

        body = client.get("/search", params={"q": "foo"}).json()

        assert [d["id"] for d in body["docs"]] == ["b", "a", "c"]
        assert body["docs"][0]["score"] == 2.5
        assert body["docs"][2]["score"] == 1.0
        assert body["docs"][2]["payload"] == base64.b64encode(b"\x00\x01").decode()

    def test_defaults(self, client, mock_engine):
        body = client.get("/search").json()
        mock_engine.search.assert_called_once_with("", 0, 10)
        assert body == {"docs": [], "limit": 10, "offset": 0, "totalResults": 0}

    def test_keys_are_sorted(self, client, mock_engine, engine_docs):
        mock_engine.search.return_value = EngineResult(docs=engine_docs[:1], total=1)
        text = client.get("/search").text
        assert text.index('"docs"') < text.index('"limit"') < text.index('"offset"') < text.index('"totalResults"')
        assert list(json.loads(text)["docs"][0]) == ["fields", "id", "payload", "score"]

    def test_cors_headers(self, client):
        response = client.get("/search")
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.parametrize("params", [
        {"offset": "abc"},
        {"limit": "ten"},
        {"offset": "-1"},
        {"limit": "-5"},
    ])
    def test_invalid_paging_is_bad_request(self, client, mock_engine, params):
        response = client.get("/search", params=params)
        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == ORIGIN
        mock_engine.search.assert_not_called()

    def test_zero_limit_allowed(self, client, mock_engine):
        response = client.get("/search", params={"limit": 0})
        assert response.status_code == 200
        mock_engine.search.assert_called_once_with("", 0, 0)

    def test_engine_error_is_server_error(self, client, mock_engine):
        mock_engine.search.side_effect = EngineError("Syntax error at offset 3")

        response = client.get("/search", params={"q": "(("})

        assert response.status_code == 500
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == ORIGIN

    def test_unexpected_error_keeps_cors_headers(self, client, mock_engine):
        mock_engine.search.side_effect = RuntimeError("boom")

        response = client.get("/search", params={"q": "foo"})

        assert response.status_code == 500
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"

    def test_search_runs_with_request_correlation_id(self, client, mock_engine):
        seen = []
        mock_engine.search.side_effect = lambda *a: seen.append(get_correlation_id()) or EngineResult([], 0)

        client.get("/search", headers={"x-correlation-id": "cid-search"})

        assert seen == ["cid-search"]

    def test_preflight(self, client, mock_engine):
        response = client.options("/search")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
        assert response.headers["access-control-allow-origin"] == ORIGIN
        mock_engine.search.assert_not_called()


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def test_routes_mounted_under_root_path(gateway_config, mock_engine, executor):
    config = gateway_config.model_copy(update={"root_path": "/api"})
    with TestClient(create_app(config, mock_engine, executor)) as c:
        assert c.get("/api/status").text == "ok"
        assert c.get("/status").status_code == 404


def test_wrong_method_not_allowed(client):
    assert client.post("/status").status_code == 405
    assert client.get("/index/add").status_code == 405
