"""Persistence for synced providers and the audit log"""

from .provider_store import ProviderStore

__all__ = ["ProviderStore"]
