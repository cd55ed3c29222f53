"""
Shared-secret authentication for mutating gateway endpoints.

Clients send the configured submission token in the Authorization header,
either bare or as ``bearer <token>``.
"""

import hmac
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from searchgate.logging_config import get_logger, register_secret

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "


class TokenAuth:
    """Checks the Authorization header against one shared secret."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("Submission token must not be empty")
        self._accepted = (token, f"{BEARER_PREFIX}{token}")
        register_secret(token)

    def is_authorized(self, header_value: Optional[str]) -> bool:
        value = (header_value or "").encode("utf-8")
        # Always compares both accepted forms
        matches = [hmac.compare_digest(value, a.encode("utf-8")) for a in self._accepted]
        return any(matches)

    def validate_request(self, request: Request) -> Optional[Response]:
        """
        Validate a request's credentials.

        Returns:
            None when authorized, otherwise the 403 response to send as-is
        """
        if self.is_authorized(request.headers.get("Authorization")):
            return None

        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected unauthorized request to {request.url.path} from {client}")
        return Response(status_code=403)
