"""
India Health Professional Registry (HPR) adapter

The HPR API is loosely shaped: the same concept arrives under different
keys, and responses come wrapped in several envelopes. Both are resolved
explicitly here: an ordered alias table per canonical field, and an
EnvelopeShape resolved once per response.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.core.errors import RecordParseError
from src.core.models import NormalizedProvider, RegistrySource, SearchParams
from src.registries.base import RegistryClient, as_dict, as_list, first_non_empty

logger = logging.getLogger(__name__)

IN_HPR_BASE_URL = "https://hpr.abdm.gov.in/api/v1"


class EnvelopeShape(Enum):
    """Known HPR response envelopes"""
    BARE_LIST = "bare_list"           # [ {...}, {...} ]
    PROFESSIONALS = "professionals"   # {"professionals": [...]}
    RESULTS = "results"               # {"results": [...]}
    SINGLE = "single"                 # one bare professional object
    UNRECOGNISED = "unrecognised"


def resolve_envelope(data: Any) -> Tuple[EnvelopeShape, List[Any]]:
    """Detect the envelope shape and unwrap it into a list of entries"""
    if isinstance(data, list):
        return EnvelopeShape.BARE_LIST, data
    if isinstance(data, dict):
        if as_list(data.get("professionals")):
            return EnvelopeShape.PROFESSIONALS, as_list(data["professionals"])
        if as_list(data.get("results")):
            return EnvelopeShape.RESULTS, as_list(data["results"])
        if data.get("hprId") or data.get("registrationNumber"):
            return EnvelopeShape.SINGLE, [data]
    return EnvelopeShape.UNRECOGNISED, []


# Canonical field -> upstream keys in priority order
PROFESSIONAL_ALIASES = {
    "provider_id": ("hprId", "registrationNumber", "id"),
    "name": ("name", "professionalName"),
    "first_name": ("firstName",),
    "last_name": ("lastName",),
    "phone": ("mobile", "phone", "contactNumber"),
    "specialty": ("specialty", "specialization"),
    "organization_name": ("organization", "hospitalName"),
    "enumeration_type": ("professionalType", "category"),
}

ADDRESS_ALIASES = {
    "address_line1": ("line1", "addressLine1", "address"),
    "address_line2": ("line2", "addressLine2"),
    "city": ("city", "district"),
    "state": ("state", "stateName"),
    "postal_code": ("pincode", "postalCode"),
}

QUALIFICATION_ALIASES = {
    "specialty": ("specialty",),
    "taxonomy_code": ("qualificationCode",),
    "taxonomy_description": ("qualificationName", "degree"),
}


def _probe(source: Dict[str, Any], aliases: Tuple[str, ...]) -> str:
    return first_non_empty(*(source.get(key) for key in aliases))


class IndiaHprRegistry(RegistryClient):
    """Adapter for the India Health Professional Registry"""

    registry_name = "India HPR"
    not_found_is_empty = True

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    @staticmethod
    def parse(result: Dict[str, Any]) -> NormalizedProvider:
        address = as_dict(result.get("address"))
        qualifications = as_list(result.get("qualifications"))
        qualification = as_dict(qualifications[0]) if qualifications else {}

        first_name = _probe(result, PROFESSIONAL_ALIASES["first_name"])
        last_name = _probe(result, PROFESSIONAL_ALIASES["last_name"])
        name = _probe(result, PROFESSIONAL_ALIASES["name"]) or f"{first_name} {last_name}".strip()
        if not name:
            raise RecordParseError(f"HPR entry {result.get('hprId') or result.get('id')!r} has no name")

        specialty = first_non_empty(
            _probe(qualification, QUALIFICATION_ALIASES["specialty"]),
            _probe(result, PROFESSIONAL_ALIASES["specialty"]),
        )

        return NormalizedProvider(
            provider_id=_probe(result, PROFESSIONAL_ALIASES["provider_id"]),
            name=name,
            first_name=first_name or None,
            last_name=last_name or None,
            phone=_probe(result, PROFESSIONAL_ALIASES["phone"]),
            address_line1=_probe(address, ADDRESS_ALIASES["address_line1"]),
            address_line2=_probe(address, ADDRESS_ALIASES["address_line2"]) or None,
            city=_probe(address, ADDRESS_ALIASES["city"]),
            state=_probe(address, ADDRESS_ALIASES["state"]),
            postal_code=_probe(address, ADDRESS_ALIASES["postal_code"]),
            specialty=specialty,
            organization_name=_probe(result, PROFESSIONAL_ALIASES["organization_name"]) or None,
            taxonomy_code=_probe(qualification, QUALIFICATION_ALIASES["taxonomy_code"]) or None,
            taxonomy_description=_probe(qualification, QUALIFICATION_ALIASES["taxonomy_description"]) or None,
            enumeration_type=_probe(result, PROFESSIONAL_ALIASES["enumeration_type"]) or "Individual",
            raw_api_payload=result,
            source=RegistrySource.IN_REGISTRY,
        )

    async def search(self, params: SearchParams, timeout: Optional[float] = None) -> List[NormalizedProvider]:
        base_url = self.config.base_url.rstrip("/")

        if params.provider_id:
            url = f"{base_url}/search/professionalByRegistrationNumber"
            query = {"registrationNumber": params.provider_id}
        elif params.has_name:
            url = f"{base_url}/search/professionalByName"
            query = {"name": params.search_name}
        else:
            logger.debug("HPR search skipped: no registration number or name given")
            return []

        data = await self._get_json(url, params=query, timeout=timeout)
        if data is None:
            return []

        shape, entries = resolve_envelope(data)
        logger.debug(f"HPR response envelope: {shape.value} ({len(entries)} entries)")

        providers = self._parse_all(entries)
        if params.limit:
            providers = providers[:params.limit]

        logger.info(f"HPR search returned {len(providers)} providers")
        return providers
