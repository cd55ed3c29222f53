"""
REST gateway in front of a RediSearch full-text index.

Layout:
- config.py         - YAML configuration and the declared index schema
- logging_config.py - Centralized logging (console, JSON, retention file)
- middleware.py     - Correlation ID and error boundary ASGI middleware
- json_mapper.py    - Deterministic JSON/YAML rules
- connectors/       - Engine client (RediSearch over redis-py)
- schema_sync.py    - Additive reconciliation of the declared schema
- gateway/          - HTTP routes, auth gate and wire schemas
- service.py        - Process composition and lifecycle
- cli.py            - Command line entry point
"""

__version__ = "1.0.0"
