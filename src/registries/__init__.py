"""National provider registry adapters"""

from .base import RegistryClient, RegistryConfig, first_non_empty
from .india_hpr import EnvelopeShape, IndiaHprRegistry, resolve_envelope
from .us_npi import UsNpiRegistry

__all__ = [
    "RegistryClient",
    "RegistryConfig",
    "UsNpiRegistry",
    "IndiaHprRegistry",
    "EnvelopeShape",
    "resolve_envelope",
    "first_non_empty",
]
