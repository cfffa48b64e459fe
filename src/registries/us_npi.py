"""
US NPI Registry adapter (CMS NPPES API v2.1)

Picks the practice-location address and the primary taxonomy out of the
NPPES result shape and trims ZIP+4 postal codes down to ZIP5.
"""

import logging
from typing import Any, Dict, List, Optional

from src.core.errors import RecordParseError
from src.core.models import NormalizedProvider, RegistrySource, SearchParams
from src.registries.base import RegistryClient, as_dict, as_list, first_non_empty

logger = logging.getLogger(__name__)

US_NPI_API_BASE_URL = "https://npiregistry.cms.hhs.gov/api"
US_NPI_API_VERSION = "2.1"


class UsNpiRegistry(RegistryClient):
    """Adapter for the US National Provider Identifier registry"""

    registry_name = "NPI"

    @staticmethod
    def _select_address(addresses: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Practice location if present, else the first address"""
        for address in addresses:
            if isinstance(address, dict) and address.get("address_purpose") == "LOCATION":
                return address
        return as_dict(addresses[0]) if addresses else {}

    @staticmethod
    def _select_taxonomy(taxonomies: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Primary taxonomy if flagged, else the first"""
        for taxonomy in taxonomies:
            if isinstance(taxonomy, dict) and taxonomy.get("primary"):
                return taxonomy
        return as_dict(taxonomies[0]) if taxonomies else {}

    @staticmethod
    def parse(result: Dict[str, Any]) -> NormalizedProvider:
        basic = as_dict(result.get("basic"))
        address = UsNpiRegistry._select_address(as_list(result.get("addresses")))
        taxonomy = UsNpiRegistry._select_taxonomy(as_list(result.get("taxonomies")))

        first_name = first_non_empty(basic.get("first_name"))
        last_name = first_non_empty(basic.get("last_name"))
        org_name = first_non_empty(basic.get("organization_name"))

        name = org_name or f"{first_name} {last_name}".strip()
        if not name:
            raise RecordParseError(f"NPI {result.get('number')!r} has no organization or individual name")

        taxonomy_desc = first_non_empty(taxonomy.get("desc"))

        return NormalizedProvider(
            npi_number=first_non_empty(result.get("number")),
            name=name,
            first_name=first_name or None,
            last_name=last_name or None,
            phone=first_non_empty(address.get("telephone_number")),
            address_line1=first_non_empty(address.get("address_1")),
            address_line2=first_non_empty(address.get("address_2")) or None,
            city=first_non_empty(address.get("city")),
            state=first_non_empty(address.get("state")),
            postal_code=first_non_empty(address.get("postal_code"))[:5],
            specialty=taxonomy_desc,
            organization_name=org_name or None,
            taxonomy_code=first_non_empty(taxonomy.get("code")) or None,
            taxonomy_description=taxonomy_desc or None,
            enumeration_type=first_non_empty(result.get("enumeration_type")),
            raw_api_payload=result,
            source=RegistrySource.US_NPI,
        )

    def _build_query(self, params: SearchParams) -> Dict[str, Any]:
        query: Dict[str, Any] = {"version": US_NPI_API_VERSION}

        if params.npi:
            query["number"] = params.npi
        else:
            optional = {
                "first_name": params.first_name,
                "last_name": params.last_name,
                "organization_name": params.name,
                "city": params.city,
                "state": params.state,
                "postal_code": params.postal_code,
            }
            query.update({k: v for k, v in optional.items() if v})

        query["limit"] = params.limit or 10
        return query

    async def search(self, params: SearchParams, timeout: Optional[float] = None) -> List[NormalizedProvider]:
        if not params.npi and not params.has_name:
            logger.debug("NPI search skipped: no identifier or name given")
            return []

        url = f"{self.config.base_url.rstrip('/')}/"
        data = await self._get_json(url, params=self._build_query(params), timeout=timeout)

        results = as_list(data.get("results")) if isinstance(data, dict) else []
        if not results:
            return []

        providers = self._parse_all(results)
        logger.info(f"NPI search returned {len(providers)} providers")
        return providers
