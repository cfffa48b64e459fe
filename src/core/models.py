"""
Canonical data model shared by adapters, scoring and persistence

Registry payloads of every shape end up as a NormalizedProvider; what the
user typed arrives as UserProviderData. Scoring produces FieldScores that
roll up into a ValidationResult, and every validate/save leaves an AuditEntry.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from src.core.errors import InvalidRequestError


class Country(Enum):
    """Supported registry countries"""
    US = "US"
    IN = "IN"

    @classmethod
    def parse(cls, value: Any) -> "Country":
        if isinstance(value, Country):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise InvalidRequestError(f"Unsupported country: {value!r}") from None

    @property
    def identifier_field(self) -> str:
        """Column that keys a stored provider for this country"""
        return "npi_number" if self is Country.US else "provider_id"

    @property
    def source(self) -> "RegistrySource":
        return RegistrySource.US_NPI if self is Country.US else RegistrySource.IN_REGISTRY

    @property
    def registry_label(self) -> str:
        return "NPI Registry" if self is Country.US else "India Registry"


class RegistrySource(Enum):
    """Which registry produced a canonical record"""
    US_NPI = "US_NPI"
    IN_REGISTRY = "IN_REGISTRY"


class FieldStatus(Enum):
    """Three-way classification of a field score"""
    MATCH = "match"
    PARTIAL = "partial"
    MISMATCH = "mismatch"

    @classmethod
    def from_score(cls, score: float) -> "FieldStatus":
        if score == 1:
            return cls.MATCH
        if score == 0.5:
            return cls.PARTIAL
        return cls.MISMATCH


class AuditAction(Enum):
    VALIDATE = "VALIDATE"
    SYNC = "SYNC"


def _clean(value: Any) -> Optional[str]:
    # JSON true/false is never a provider field value
    if value is None or isinstance(value, bool):
        return None
    value = str(value)
    return value or None


@dataclass(frozen=True)
class NormalizedProvider:
    """A registry record in canonical shape, independent of upstream payload"""
    name: str
    source: RegistrySource
    npi_number: Optional[str] = None
    provider_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: str = ""
    address_line1: str = ""
    address_line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    specialty: str = ""
    organization_name: Optional[str] = None
    taxonomy_code: Optional[str] = None
    taxonomy_description: Optional[str] = None
    enumeration_type: str = ""
    raw_api_payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def identifier(self) -> Optional[str]:
        return self.npi_number or self.provider_id

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], country: Optional[Country] = None) -> "NormalizedProvider":
        """Rebuild a record from its wire form (e.g. a save request body)"""
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Provider must be an object")

        name = _clean(data.get("name"))
        if not name:
            raise InvalidRequestError("Provider record has no name")

        source_value = data.get("source")
        try:
            source = RegistrySource(source_value) if source_value else None
        except ValueError:
            raise InvalidRequestError(f"Unknown provider source: {source_value!r}") from None
        if source is None:
            source = (country or Country.US).source

        raw = data.get("raw_api_payload")
        return cls(
            name=name,
            source=source,
            npi_number=_clean(data.get("npi_number")),
            provider_id=_clean(data.get("provider_id")),
            first_name=_clean(data.get("first_name")),
            last_name=_clean(data.get("last_name")),
            phone=_clean(data.get("phone")) or "",
            address_line1=_clean(data.get("address_line1")) or "",
            address_line2=_clean(data.get("address_line2")),
            city=_clean(data.get("city")) or "",
            state=_clean(data.get("state")) or "",
            postal_code=_clean(data.get("postal_code")) or "",
            specialty=_clean(data.get("specialty")) or "",
            organization_name=_clean(data.get("organization_name")),
            taxonomy_code=_clean(data.get("taxonomy_code")),
            taxonomy_description=_clean(data.get("taxonomy_description")),
            enumeration_type=_clean(data.get("enumeration_type")) or "",
            raw_api_payload=dict(raw) if isinstance(raw, Mapping) else {},
        )


@dataclass
class UserProviderData:
    """What the user believes is true about a provider; every field optional"""
    npi_number: Optional[str] = None
    provider_id: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    specialty: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "UserProviderData":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise InvalidRequestError("userData must be an object")
        known = {f.name for f in fields(cls)}
        return cls(**{k: _clean(v) for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @property
    def identifier(self) -> Optional[str]:
        return self.npi_number or self.provider_id


@dataclass
class SearchParams:
    """Registry search filters"""
    country: Country = Country.US
    npi: Optional[str] = None
    provider_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    limit: int = 10

    @property
    def has_name(self) -> bool:
        return bool(self.name or self.first_name or self.last_name)

    @property
    def search_name(self) -> str:
        """Free-text name: explicit name, else "first last" """
        if self.name:
            return self.name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @classmethod
    def for_user_data(cls, country: Country, user_data: UserProviderData) -> "SearchParams":
        return cls(
            country=country,
            npi=user_data.npi_number,
            provider_id=user_data.provider_id,
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            name=user_data.name,
            city=user_data.city,
            state=user_data.state,
        )

    @classmethod
    def for_identifier(cls, country: Country, identifier: str) -> "SearchParams":
        if country is Country.US:
            return cls(country=country, npi=identifier)
        return cls(country=country, provider_id=identifier)


@dataclass(frozen=True)
class FieldScore:
    """One scored field comparison"""
    user_value: str
    registry_value: str
    score: float

    @property
    def status(self) -> FieldStatus:
        return FieldStatus.from_score(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "userValue": self.user_value,
            "registryValue": self.registry_value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating user data against a registry"""
    success: bool
    found: bool
    user_data: UserProviderData
    registry_data: Optional[NormalizedProvider] = None
    correctness_score: int = 0
    field_scores: Dict[str, FieldScore] = field(default_factory=dict)
    message: Optional[str] = None
    audit_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.found:
            return {
                "success": self.success,
                "found": False,
                "message": self.message,
            }

        payload = {
            "success": self.success,
            "found": True,
            "registryData": self.registry_data.to_dict() if self.registry_data else None,
            "userData": self.user_data.to_dict(),
            "correctnessScore": self.correctness_score,
            "fieldScores": {name: fs.to_dict() for name, fs in self.field_scores.items()},
        }
        if self.audit_error:
            payload["auditError"] = self.audit_error
        return payload


@dataclass(frozen=True)
class AuditEntry:
    """Append-only record of a validate or save action"""
    user_id: str
    action: AuditAction
    country: Country
    identifier: Optional[str]
    correctness_score: Optional[float] = None
    field_scores: Optional[Dict[str, Dict[str, Any]]] = None
    notes: str = ""
    provider_record_id: Optional[int] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller, as resolved from a bearer credential"""
    user_id: str
    email: Optional[str] = None


@dataclass
class SaveResult:
    """Persisted provider row plus any audit failure that followed the save"""
    provider: Dict[str, Any]
    audit_error: Optional[str] = None


@dataclass
class CachedLookup:
    """Stored provider row, served from the cache or freshly synced from the registry"""
    provider: Optional[Dict[str, Any]]
    from_cache: bool = False
    audit_error: Optional[str] = None
