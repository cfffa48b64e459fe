"""
Provider Registry Validator - correctness scoring against national registries

This solution enables operators to:
1. Look up healthcare providers in the US NPI registry or India's HPR
2. Normalize every registry payload into one canonical provider record
3. Score a user-entered record against the registry, field by field
4. Save synced records to a per-user directory with an audit trail

Built around:
- Async registry clients using httpx
- A deterministic, explainable 0-100 correctness score
- SQLite-backed provider cache and sync history
"""

__version__ = "1.0.0"

from src.core.lookup_service import LookupService, ServiceConfig
from src.core.scoring import CorrectnessScorer, FieldScorer
from src.api.registry_api import RegistryAPI

__all__ = ["LookupService", "ServiceConfig", "CorrectnessScorer", "FieldScorer", "RegistryAPI"]
