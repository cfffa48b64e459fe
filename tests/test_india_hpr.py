"""Tests for the India HPR registry adapter (mocked transport, no network)."""

import asyncio

import pytest
from conftest import IN_BASE_URL, json_transport
from src.core.errors import RateLimitedError, UpstreamError
from src.core.models import RegistrySource, SearchParams
from src.registries.base import RegistryConfig
from src.registries.india_hpr import EnvelopeShape, IndiaHprRegistry, resolve_envelope


def _search(transport, params, api_key="hpr-key"):
    async def run():
        config = RegistryConfig(base_url=IN_BASE_URL, api_key=api_key)
        async with IndiaHprRegistry(config, transport=transport) as registry:
            return await registry.search(params)

    return asyncio.run(run())


class TestResolveEnvelope:
    """Tests for response envelope detection."""

    def test_bare_list(self, hpr_professional):
        shape, entries = resolve_envelope([hpr_professional])
        assert shape == EnvelopeShape.BARE_LIST
        assert entries == [hpr_professional]

    def test_professionals_key(self, hpr_professional):
        shape, entries = resolve_envelope({"professionals": [hpr_professional]})
        assert shape == EnvelopeShape.PROFESSIONALS
        assert len(entries) == 1

    def test_results_key(self, hpr_professional):
        shape, entries = resolve_envelope({"results": [hpr_professional]})
        assert shape == EnvelopeShape.RESULTS
        assert len(entries) == 1

    def test_single_object(self):
        shape, entries = resolve_envelope({"registrationNumber": "KMC-1", "name": "Dr. X"})
        assert shape == EnvelopeShape.SINGLE
        assert entries == [{"registrationNumber": "KMC-1", "name": "Dr. X"}]

    @pytest.mark.parametrize("data", [
        {},
        {"status": "ok"},
        None,
        "text",
        {"professionals": []},
        {"professionals": 5},
        {"results": {"hpr": "x"}},
    ])
    def test_unrecognised(self, data):
        assert resolve_envelope(data) == (EnvelopeShape.UNRECOGNISED, [])


class TestParse:
    """Tests for alias resolution."""

    def test_primary_aliases(self, hpr_professional):
        provider = IndiaHprRegistry.parse(hpr_professional)

        assert provider.provider_id == "71-1234-5678-9012"
        assert provider.npi_number is None
        assert provider.name == "Dr. Asha Rao"
        assert provider.phone == "+91 98450 12345"
        assert provider.address_line1 == "12 MG Road"
        assert provider.city == "Bengaluru"
        assert provider.state == "Karnataka"
        assert provider.postal_code == "560001"
        assert provider.specialty == "Cardiology"
        assert provider.taxonomy_code == "MD-CARD"
        assert provider.taxonomy_description == "MD Cardiology"
        assert provider.enumeration_type == "Doctor"
        assert provider.source == RegistrySource.IN_REGISTRY

    def test_secondary_aliases(self):
        provider = IndiaHprRegistry.parse({
            "registrationNumber": "KMC-42",
            "firstName": "Ravi",
            "lastName": "Kumar",
            "contactNumber": "080-2222-3333",
            "specialization": "Orthopaedics",
            "hospitalName": "City Hospital",
            "address": {"addressLine1": "4 Park St", "district": "Mysuru", "stateName": "Karnataka",
                        "postalCode": "570001"},
        })

        assert provider.provider_id == "KMC-42"
        assert provider.name == "Ravi Kumar"
        assert provider.phone == "080-2222-3333"
        assert provider.specialty == "Orthopaedics"
        assert provider.organization_name == "City Hospital"
        assert provider.address_line1 == "4 Park St"
        assert provider.city == "Mysuru"
        assert provider.state == "Karnataka"
        assert provider.postal_code == "570001"

    def test_alias_priority(self):
        provider = IndiaHprRegistry.parse({
            "hprId": "HPR-1",
            "registrationNumber": "REG-1",
            "name": "Primary Name",
            "professionalName": "Secondary Name",
            "mobile": "",
            "phone": "12345",
        })

        assert provider.provider_id == "HPR-1"
        assert provider.name == "Primary Name"
        # empty strings fall through to the next alias
        assert provider.phone == "12345"

    def test_defaults_to_individual(self):
        provider = IndiaHprRegistry.parse({"hprId": "HPR-1", "professionalName": "Dr. Meera Iyer"})
        assert provider.enumeration_type == "Individual"
        assert provider.address_line1 == ""
        assert provider.specialty == ""

    @pytest.mark.parametrize("section,value", [
        ("qualifications", {"degree": "MD"}),
        ("qualifications", "MD"),
        ("qualifications", ["MD"]),
        ("address", ["12 MG Road"]),
    ])
    def test_wrongly_shaped_sections_treated_as_absent(self, section, value):
        provider = IndiaHprRegistry.parse({"hprId": "1", "name": "A", section: value})

        assert provider.provider_id == "1"
        assert provider.taxonomy_description is None
        assert provider.address_line1 == ""


class TestSearch:
    """Tests for HPR queries and response handling."""

    def test_registration_number_search(self, hpr_professional):
        transport = json_transport({"professionals": [hpr_professional]})
        providers = _search(transport, SearchParams(provider_id="71-1234-5678-9012", name="ignored"))

        request = transport.requests[0]
        assert request.url.path.endswith("/search/professionalByRegistrationNumber")
        assert request.url.params["registrationNumber"] == "71-1234-5678-9012"
        assert request.headers["Authorization"] == "Bearer hpr-key"
        assert [p.provider_id for p in providers] == ["71-1234-5678-9012"]

    def test_name_search_joins_first_and_last(self, hpr_professional):
        transport = json_transport([hpr_professional])
        _search(transport, SearchParams(first_name="Asha", last_name="Rao"))

        request = transport.requests[0]
        assert request.url.path.endswith("/search/professionalByName")
        assert request.url.params["name"] == "Asha Rao"

    def test_bare_object_response(self):
        transport = json_transport({"hprId": "HPR-9", "professionalName": "Dr. Meera Iyer"})
        providers = _search(transport, SearchParams(provider_id="HPR-9"))

        assert len(providers) == 1
        assert providers[0].provider_id == "HPR-9"
        assert providers[0].name == "Dr. Meera Iyer"

    def test_no_api_key_sends_no_authorization(self, hpr_professional):
        transport = json_transport([hpr_professional])
        _search(transport, SearchParams(provider_id="X"), api_key=None)
        assert "Authorization" not in transport.requests[0].headers

    def test_truncates_to_limit(self, hpr_professional):
        entries = [dict(hpr_professional, hprId=f"HPR-{i}") for i in range(5)]
        providers = _search(json_transport({"results": entries}), SearchParams(name="Rao", limit=2))
        assert [p.provider_id for p in providers] == ["HPR-0", "HPR-1"]

    def test_not_found_is_empty(self):
        assert _search(json_transport({"message": "not found"}, status_code=404), SearchParams(provider_id="X")) == []

    def test_object_shaped_qualifications_still_parse(self):
        transport = json_transport([{"hprId": "1", "name": "A", "qualifications": {"degree": "MD"}}])
        providers = _search(transport, SearchParams(provider_id="1"))

        assert [p.provider_id for p in providers] == ["1"]

    def test_unrecognised_envelope_is_empty(self):
        assert _search(json_transport({"status": "ok"}), SearchParams(name="Rao")) == []

    def test_no_identifier_or_name_skips_upstream(self):
        transport = json_transport([])
        assert _search(transport, SearchParams(city="Pune")) == []
        assert transport.requests == []


class TestErrors:
    """Tests for upstream error mapping."""

    def test_rate_limited(self):
        with pytest.raises(RateLimitedError):
            _search(json_transport({}, status_code=429), SearchParams(provider_id="X"))

    def test_server_error(self):
        with pytest.raises(UpstreamError) as exc_info:
            _search(json_transport({}, status_code=500), SearchParams(provider_id="X"))
        assert exc_info.value.to_dict()["upstreamStatus"] == 500
