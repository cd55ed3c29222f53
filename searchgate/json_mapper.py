"""
JSON and YAML mapping rules shared by the HTTP API and configuration.

- Object keys and map entries are always written in sorted order.
- Date/time values use fixed text formats rather than ISO-8601.
- Binary values travel as standard (unwrapped) base64 text.
- Unknown properties are ignored on input (see the pydantic models).
"""

import base64
import json
from datetime import date, datetime, time
from typing import Annotated, Any, Optional

import yaml
from pydantic import BeforeValidator, PlainSerializer
from starlette.responses import JSONResponse

DATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


# =============================================================================
# Date/time formats
# =============================================================================

def format_datetime(value: datetime) -> str:
    """Format as ``yyyy-MM-dd HH:mm:ss.SSS`` (millisecond precision)."""
    return f"{value.strftime(DATE_TIME_FORMAT)}.{value.microsecond // 1000:03d}"


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def json_default(value: Any) -> Any:
    """Fallback encoder for values the json module cannot write natively."""
    # datetime must be checked before date (it is a subclass)
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, time):
        return format_time(value)
    if isinstance(value, (bytes, bytearray)):
        return encode_base64(bytes(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# =============================================================================
# Binary payloads
# =============================================================================

def encode_base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _decode_base64(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    return value


Base64Payload = Annotated[
    Optional[bytes],
    BeforeValidator(_decode_base64),
    PlainSerializer(
        lambda v: encode_base64(v) if v is not None else None,
        return_type=Optional[str],
        when_used="json",
    ),
]


# =============================================================================
# JSON
# =============================================================================

def to_json(value: Any, pretty: bool = False) -> str:
    """Serialize to JSON with sorted keys."""
    return json.dumps(
        value,
        sort_keys=True,
        default=json_default,
        ensure_ascii=False,
        indent=2 if pretty else None,
        separators=None if pretty else (",", ":"),
    )


def from_json(data: str | bytes) -> Any:
    """Parse JSON text; raises ``json.JSONDecodeError`` on malformed input."""
    return json.loads(data)


class SortedJSONResponse(JSONResponse):
    """JSONResponse rendered through the gateway's JSON rules."""

    def render(self, content: Any) -> bytes:
        return to_json(content).encode("utf-8")


# =============================================================================
# YAML
# =============================================================================

def to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=True, default_flow_style=False, allow_unicode=True)


def from_yaml(text: str) -> Any:
    """Parse YAML text; raises ``yaml.YAMLError`` on malformed input."""
    return yaml.safe_load(text)
