"""
Configuration loader.

The gateway is configured by a single YAML file passed on the command line
(index name, engine address, HTTP binding, shared secret and the declared
index schema). Process-level settings such as log level and environment come
from .env / os.environ.
"""

import os
import uuid
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from searchgate.exceptions import ConfigError
from searchgate.json_mapper import from_yaml, to_yaml

load_dotenv()

DEFAULT_REDIS_PORT = 6379


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get an optional environment variable."""
    return os.environ.get(name, default)


def parse_address(value: str, default_port: Optional[int] = None) -> Tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises ValueError when the port is missing (and no default applies) or
    is not a number.
    """
    host, sep, port = value.rpartition(":")
    if not sep:
        host, port = value, ""
    if not host:
        raise ValueError(f"Missing host in address '{value}'")
    if not port:
        if default_port is None:
            raise ValueError(f"Missing port in address '{value}'")
        return host, default_port
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address '{value}'") from None


# =============================================================================
# Schema declaration
# =============================================================================

class FieldType(str, Enum):
    """Index field types understood by the engine."""
    TEXT = "TEXT"
    TAG = "TAG"
    NUMERIC = "NUMERIC"
    GEO = "GEO"


# Older configuration files spell the types the way the Java client did
_LEGACY_TYPE_NAMES = {"FULLTEXT": "TEXT"}


class FieldDeclaration(BaseModel):
    """One typed, named field of the declared index schema."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    type: FieldType
    name: str = Field(..., min_length=1)
    sortable: bool = False
    no_index: bool = Field(False, alias="noIndex")
    weight: float = Field(1.0, description="TEXT fields only")
    no_stem: bool = Field(False, alias="noStem", description="TEXT fields only")
    separator: Optional[str] = Field(
        None, min_length=1, max_length=1, description="TAG fields only"
    )

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            name = v.strip().upper()
            return _LEGACY_TYPE_NAMES.get(name, name)
        return v

    @field_validator("weight", mode="before")
    @classmethod
    def default_weight(cls, v):
        return 1.0 if v is None else v

    @model_validator(mode="after")
    def check_separator(self) -> "FieldDeclaration":
        if self.separator is not None and self.type is not FieldType.TAG:
            raise ValueError(
                f"Field '{self.name}': separator is only valid on TAG fields"
            )
        return self


class SchemaConfig(BaseModel):
    """Declared index schema: field names are unique."""

    model_config = ConfigDict(extra="ignore")

    fields: List[FieldDeclaration] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_names(self) -> "SchemaConfig":
        seen = set()
        duplicates = []
        for f in self.fields:
            if f.name in seen:
                duplicates.append(f.name)
            seen.add(f.name)
        if duplicates:
            raise ValueError(f"Duplicate field names in schema: {sorted(set(duplicates))}")
        return self

    def field_set(self) -> frozenset:
        return frozenset(self.fields)


# =============================================================================
# Gateway configuration
# =============================================================================

class GatewayConfig(BaseModel):
    """Top-level gateway configuration, as read from YAML."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    index: str = Field(..., min_length=1)
    prefix: str = Field(..., description="Key prefix namespacing indexed documents")
    redis_host: str = Field("localhost:6379", alias="redisHost")
    redis_timeout_millis: int = Field(5000, alias="redisTimeoutMillis", gt=0)
    bind_address: str = Field(..., alias="bindAddress")
    root_path: str = Field("", alias="rootPath")
    cors_allow_origins: str = Field("*", alias="corsAllowOrigins")
    submission_token: str = Field(..., alias="submissionToken", min_length=1)
    worker_threads: int = Field(5, alias="workerThreads", ge=1)
    keepalive_seconds: int = Field(30, alias="keepaliveSeconds", ge=0)
    index_schema: SchemaConfig = Field(default_factory=SchemaConfig, alias="schema")

    @field_validator("root_path")
    @classmethod
    def normalize_root_path(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("redis_host")
    @classmethod
    def validate_redis_host(cls, v: str) -> str:
        parse_address(v, DEFAULT_REDIS_PORT)
        return v

    @field_validator("bind_address")
    @classmethod
    def validate_bind_address(cls, v: str) -> str:
        parse_address(v)
        return v

    @property
    def redis_address(self) -> Tuple[str, int]:
        return parse_address(self.redis_host, DEFAULT_REDIS_PORT)

    @property
    def bind(self) -> Tuple[str, int]:
        return parse_address(self.bind_address)

    @property
    def redis_timeout_seconds(self) -> float:
        return self.redis_timeout_millis / 1000.0


def load_config(path: Path) -> GatewayConfig:
    """Read and validate a YAML configuration file.

    Raises ConfigError when the file cannot be read, is not valid YAML, or
    does not describe a valid configuration.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = from_yaml(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def dump_config(config: GatewayConfig) -> str:
    """Render a configuration as YAML, using the file's key names."""
    return to_yaml(config.model_dump(mode="json", by_alias=True, exclude_none=True))


def sample_config() -> GatewayConfig:
    """An example configuration to get started with."""
    return GatewayConfig(
        index="example",
        prefix="example:",
        redis_host="localhost:6379",
        redis_timeout_millis=5000,
        bind_address="0.0.0.0:8080",
        root_path="",
        cors_allow_origins="*",
        submission_token=str(uuid.uuid4()),
        index_schema=SchemaConfig(fields=[
            FieldDeclaration(type=FieldType.TEXT, name="title", sortable=True, weight=5.0),
            FieldDeclaration(type=FieldType.TEXT, name="body"),
            FieldDeclaration(type=FieldType.NUMERIC, name="price", sortable=True, no_index=True),
            FieldDeclaration(type=FieldType.TAG, name="tags", separator=","),
        ]),
    )
