"""
Exception classes for the search gateway.
"""


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    pass


class ConfigError(GatewayError):
    """Configuration file missing, unreadable or invalid."""

    pass


class RequestError(GatewayError):
    """Request body or parameters could not be parsed."""

    pass


class EngineError(GatewayError):
    """Search engine call failed (transport, timeout or data error)."""

    pass


class IndexExistsError(EngineError):
    """Index creation refused because the index already exists."""

    pass


class SchemaSyncError(GatewayError):
    """Declared schema could not be reconciled with the live index."""

    pass
