"""Shared fixtures for Provider Registry Validator tests."""

import sys
from pathlib import Path

import httpx
import pytest

# Ensure src is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.lookup_service import LookupService, ServiceConfig  # noqa: E402
from src.core.models import CallerIdentity  # noqa: E402
from src.store.provider_store import ProviderStore  # noqa: E402

US_BASE_URL = "https://npi.test/api"
IN_BASE_URL = "https://hpr.test/api/v1"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


def json_transport(payload=None, status_code=200):
    """Transport answering every request with one JSON response."""
    return RecordingTransport(lambda request: httpx.Response(status_code, json=payload))


@pytest.fixture
def npi_result():
    """One NPPES result: mailing address first, practice location second."""
    return {
        "number": "1234567893",
        "enumeration_type": "NPI-1",
        "basic": {
            "first_name": "JOHN",
            "last_name": "SMITH",
        },
        "addresses": [
            {
                "address_purpose": "MAILING",
                "address_1": "PO BOX 100",
                "city": "CAMBRIDGE",
                "state": "MA",
                "postal_code": "021390001",
                "telephone_number": "617-555-0199",
            },
            {
                "address_purpose": "LOCATION",
                "address_1": "123 Main Street",
                "address_2": "Suite 4",
                "city": "Boston",
                "state": "MA",
                "postal_code": "021011234",
                "telephone_number": "555-123-4567",
            },
        ],
        "taxonomies": [
            {"code": "207Q00000X", "desc": "Family Medicine", "primary": False},
            {"code": "207RC0000X", "desc": "Cardiovascular Disease", "primary": True},
        ],
    }


@pytest.fixture
def npi_org_result():
    """An organization (NPI-2) result with no practice-location flag."""
    return {
        "number": "1992345678",
        "enumeration_type": "NPI-2",
        "basic": {"organization_name": "BOSTON HEART CLINIC"},
        "addresses": [
            {
                "address_purpose": "MAILING",
                "address_1": "9 Elm Ave",
                "city": "Boston",
                "state": "MA",
                "postal_code": "02110",
                "telephone_number": "6175550100",
            },
        ],
        "taxonomies": [{"code": "261QM1300X", "desc": "Multi-Specialty Clinic"}],
    }


@pytest.fixture
def hpr_professional():
    """One HPR professional using the primary alias keys."""
    return {
        "hprId": "71-1234-5678-9012",
        "name": "Dr. Asha Rao",
        "mobile": "+91 98450 12345",
        "address": {
            "line1": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
        },
        "qualifications": [
            {"qualificationCode": "MD-CARD", "qualificationName": "MD Cardiology", "specialty": "Cardiology"},
        ],
        "professionalType": "Doctor",
    }


@pytest.fixture
def user_id():
    return "user-123"


@pytest.fixture
def caller(user_id):
    return CallerIdentity(user_id=user_id, email="clinic@example.com")


@pytest.fixture
def store(tmp_path):
    return ProviderStore(str(tmp_path / "providers.db"))


@pytest.fixture
def service_config(tmp_path):
    return ServiceConfig(
        us_npi_base_url=US_BASE_URL,
        in_hpr_base_url=IN_BASE_URL,
        in_hpr_api_key="hpr-key",
        db_path=str(tmp_path / "providers.db"),
        api_tokens={"good-token": "user-123"},
    )


@pytest.fixture
def make_service(service_config, store):
    """Factory: LookupService over the shared store and a given transport."""

    def _make(transport=None):
        return LookupService(service_config, store=store, transport=transport)

    return _make
