"""Core modules for the Provider Registry Validator"""

from .lookup_service import LookupService, ServiceConfig
from .normalizer import normalize_address, normalize_phone
from .scoring import CorrectnessScorer, FieldScorer

__all__ = [
    "LookupService",
    "ServiceConfig",
    "CorrectnessScorer",
    "FieldScorer",
    "normalize_phone",
    "normalize_address",
]
