"""
External service connectors.

This module provides clients for:
- RediSearch full-text engine (redisearch/)
"""
