"""
Shared test fixtures for the searchgate test suite.
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from searchgate.config import FieldDeclaration, FieldType, GatewayConfig, SchemaConfig
from searchgate.connectors.redisearch import EngineDocument, EngineResult
from searchgate.service import create_app

TOKEN = "s3cr3t-submission-token"


@pytest.fixture
def declared_fields() -> list[FieldDeclaration]:
    """Sample declared schema fields."""
    return [
        FieldDeclaration(type=FieldType.TEXT, name="title", sortable=True, weight=5.0),
        FieldDeclaration(type=FieldType.TEXT, name="body"),
        FieldDeclaration(type=FieldType.NUMERIC, name="price", sortable=True),
        FieldDeclaration(type=FieldType.TAG, name="tags", separator=","),
    ]


@pytest.fixture
def gateway_config(declared_fields) -> GatewayConfig:
    return GatewayConfig(
        index="products",
        prefix="products:",
        redis_host="localhost:6379",
        bind_address="127.0.0.1:8080",
        cors_allow_origins="https://shop.example.com",
        submission_token=TOKEN,
        keepalive_seconds=0,
        index_schema=SchemaConfig(fields=declared_fields),
    )


@pytest.fixture
def mock_engine() -> MagicMock:
    """Create a mock engine client."""
    mock = MagicMock()
    mock.index_name = "products"
    mock.prefix = "products:"
    mock.add_document = MagicMock(return_value=True)
    mock.search = MagicMock(return_value=EngineResult(docs=[], total=0))
    mock.field_names = MagicMock(return_value=set())
    mock.ping = MagicMock(return_value=True)
    return mock


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor, None, None]:
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="test-worker")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def client(gateway_config, mock_engine, executor) -> Generator[TestClient, None, None]:
    """HTTP client for the gateway app wired to the mock engine."""
    app = create_app(gateway_config, mock_engine, executor)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def engine_docs() -> list[EngineDocument]:
    return [
        EngineDocument(id="b", properties={"title": "second"}, score=2.5),
        EngineDocument(id="a", properties={"title": "first", "price": "10"}, score=1.0),
        EngineDocument(id="c", properties={}, score=None, payload=b"\x00\x01"),
    ]


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal valid config file."""
    path = tmp_path / "gateway.yml"
    path.write_text(
        "index: products\n"
        "prefix: 'products:'\n"
        "redisHost: redis.internal:6380\n"
        "redisTimeoutMillis: 2500\n"
        "bindAddress: 0.0.0.0:9000\n"
        "rootPath: /api\n"
        "corsAllowOrigins: '*'\n"
        f"submissionToken: {TOKEN}\n"
        "schema:\n"
        "  fields:\n"
        "    - type: TEXT\n"
        "      name: title\n"
        "      weight: 2.0\n"
        "    - type: TAG\n"
        "      name: tags\n"
        "      separator: ';'\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def token() -> str:
    """The submission token configured on the test gateway."""
    return TOKEN
