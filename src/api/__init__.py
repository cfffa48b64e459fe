"""
Python and HTTP API for the Provider Registry Validator

Provides one action-selected entry point (search, validate, save, lookup,
cached, history) guarded by a bearer credential.

Usage:
    from src.api import RegistryAPI

    api = RegistryAPI.from_env()
    status, payload = api.handle_sync("search", "Bearer <token>", params={"country": "US", "npi": "1234567893"})
"""

from src.api.registry_api import RegistryAPI

__all__ = ["RegistryAPI"]
