"""
Provider Lookup Service - request orchestration

Ties the pieces together for one request at a time:
- Picks the registry adapter for the request's country
- Runs the upstream search
- Scores user data against the first registry match (validate)
- Upserts synced providers and serves them from cache while fresh
- Appends VALIDATE / SYNC entries to the audit log

Each call is an independent sequential pipeline; the only shared
collaborator is the store, which opens its own connection per call.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from src.core.errors import InvalidRequestError, PersistenceError, UnauthorizedError
from src.core.models import (
    AuditAction,
    AuditEntry,
    CachedLookup,
    CallerIdentity,
    Country,
    NormalizedProvider,
    SaveResult,
    SearchParams,
    UserProviderData,
    ValidationResult,
)
from src.core.scoring import CorrectnessScorer
from src.registries.base import RegistryClient, RegistryConfig
from src.registries.india_hpr import IN_HPR_BASE_URL, IndiaHprRegistry
from src.registries.us_npi import US_NPI_API_BASE_URL, UsNpiRegistry
from src.store.provider_store import ProviderStore

logger = logging.getLogger(__name__)


def _parse_tokens(raw: str) -> Dict[str, str]:
    """Parse ``token:user_id,token:user_id`` into a mapping"""
    tokens = {}
    for pair in raw.split(","):
        token, sep, user_id = pair.strip().partition(":")
        if sep and token and user_id:
            tokens[token] = user_id
    return tokens


@dataclass
class ServiceConfig:
    """Configuration for the lookup service and its API surface"""
    # Registries
    us_npi_base_url: str = US_NPI_API_BASE_URL
    in_hpr_base_url: str = IN_HPR_BASE_URL
    in_hpr_api_key: Optional[str] = None
    request_timeout: float = 10.0

    # Persistence
    db_path: str = "data/providers.db"
    cache_max_age_days: int = 7

    # Scoring / search
    review_threshold: float = 80.0
    default_search_limit: int = 10

    # Caller authentication
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    api_tokens: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Create config from environment variables"""
        return cls(
            us_npi_base_url=os.getenv("US_NPI_API_BASE_URL", US_NPI_API_BASE_URL),
            in_hpr_base_url=os.getenv("IN_HPR_BASE_URL", IN_HPR_BASE_URL),
            in_hpr_api_key=os.getenv("IN_HPR_API_KEY") or None,
            request_timeout=float(os.getenv("REGISTRY_REQUEST_TIMEOUT", "10")),
            db_path=os.getenv("PROVIDER_DB_PATH", "data/providers.db"),
            cache_max_age_days=int(os.getenv("CACHE_MAX_AGE_DAYS", "7")),
            review_threshold=float(os.getenv("REVIEW_THRESHOLD", "80")),
            default_search_limit=int(os.getenv("DEFAULT_SEARCH_LIMIT", "10")),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            api_tokens=_parse_tokens(os.getenv("REGISTRY_API_TOKENS", "")),
        )


class LookupService:
    """
    Main lookup orchestrator

    Provides:
    1. Registry search (US NPI or India HPR)
    2. Validation of user data with a weighted correctness score
    3. Saving registry records to the caller's provider directory
    4. Cache-first provider lookup with a freshness window
    5. Access to the caller's cached providers and audit history
    """

    def __init__(
        self,
        config: ServiceConfig,
        store: Optional[ProviderStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the lookup service

        Args:
            config: Service configuration
            store: Provider store (defaults to SQLite at config.db_path)
            transport: Optional httpx transport for the registry clients
        """
        self.config = config
        self.store = store or ProviderStore(config.db_path)
        self.scorer = CorrectnessScorer()
        self._transport = transport

    def _registry_for(self, country: Country) -> RegistryClient:
        """Fresh adapter for one request; countries never fall back to each other"""
        if country is Country.US:
            return UsNpiRegistry(
                RegistryConfig(
                    base_url=self.config.us_npi_base_url,
                    request_timeout=self.config.request_timeout,
                ),
                transport=self._transport,
            )
        return IndiaHprRegistry(
            RegistryConfig(
                base_url=self.config.in_hpr_base_url,
                api_key=self.config.in_hpr_api_key,
                request_timeout=self.config.request_timeout,
            ),
            transport=self._transport,
        )

    @staticmethod
    def _require_caller(caller: Optional[CallerIdentity]) -> CallerIdentity:
        if caller is None or not caller.user_id:
            raise UnauthorizedError()
        return caller

    async def _search_registry(
        self,
        params: SearchParams,
        timeout: Optional[float] = None
    ) -> List[NormalizedProvider]:
        async with self._registry_for(params.country) as registry:
            return await registry.search(params, timeout=timeout)

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(
        self,
        caller: Optional[CallerIdentity],
        params: SearchParams,
        timeout: Optional[float] = None
    ) -> List[NormalizedProvider]:
        """
        Search the country's registry

        Returns:
            Canonical records, possibly empty

        Raises:
            UnauthorizedError, RateLimitedError, UpstreamError
        """
        self._require_caller(caller)
        if not params.limit:
            params = replace(params, limit=self.config.default_search_limit)

        providers = await self._search_registry(params, timeout)
        logger.info(f"Search {params.country.value}: {len(providers)} results")
        return providers

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def validate(
        self,
        caller: Optional[CallerIdentity],
        country: Country,
        user_data: UserProviderData,
        timeout: Optional[float] = None
    ) -> ValidationResult:
        """
        Validate user data against the registry

        The first registry result is taken as the match; no ranking between
        candidates is attempted. Upstream failures propagate and leave no
        audit entry; an empty result is reported as ``found=False``.
        """
        caller = self._require_caller(caller)

        params = replace(
            SearchParams.for_user_data(country, user_data), limit=self.config.default_search_limit
        )
        providers = await self._search_registry(params, timeout)

        if not providers:
            logger.info(f"Validate {country.value}: no registry match for {user_data.identifier or params.search_name!r}")
            return ValidationResult(
                success=True,
                found=False,
                user_data=user_data,
                message="No matching provider found in registry",
            )

        registry_provider = providers[0]
        overall, field_scores = self.scorer.score(user_data, registry_provider)

        entry = AuditEntry(
            user_id=caller.user_id,
            action=AuditAction.VALIDATE,
            country=country,
            identifier=user_data.identifier,
            correctness_score=overall,
            field_scores={name: fs.to_dict() for name, fs in field_scores.items()},
            notes=f"Validated against {country.registry_label}",
        )

        audit_error = None
        try:
            await asyncio.to_thread(self.store.append_audit, entry)
        except PersistenceError as e:
            audit_error = e.message

        logger.info(
            f"Validated {country.value} provider {registry_provider.identifier}: {overall}% correct"
        )

        return ValidationResult(
            success=True,
            found=True,
            user_data=user_data,
            registry_data=registry_provider,
            correctness_score=overall,
            field_scores=field_scores,
            audit_error=audit_error,
        )

    # =========================================================================
    # SAVE
    # =========================================================================

    def needs_review(self, correctness_score: Optional[float]) -> bool:
        return correctness_score is not None and correctness_score < self.config.review_threshold

    async def save(
        self,
        caller: Optional[CallerIdentity],
        provider: NormalizedProvider,
        country: Country,
        correctness_score: Optional[float] = None
    ) -> SaveResult:
        """
        Upsert a registry record into the caller's provider directory

        Raises:
            InvalidRequestError: provider lacks the country's identifier
            PersistenceError: the upsert failed

        A failed audit write after a successful upsert is reported on the
        result instead of being raised.
        """
        caller = self._require_caller(caller)

        key_column = country.identifier_field
        identifier = getattr(provider, key_column)
        if not identifier:
            raise InvalidRequestError(f"{country.value} provider must have {key_column} to be saved")

        values = provider.to_dict()
        values.update(
            correctness_score=correctness_score,
            needs_review=self.needs_review(correctness_score),
            last_synced_at=datetime.now(timezone.utc).isoformat(),
        )

        stored = await asyncio.to_thread(self.store.upsert_provider, caller.user_id, country, values)

        entry = AuditEntry(
            user_id=caller.user_id,
            action=AuditAction.SYNC,
            country=country,
            identifier=identifier,
            correctness_score=correctness_score,
            notes="Provider saved to directory",
            provider_record_id=stored.get("id"),
            new_values=values,
        )

        audit_error = None
        try:
            await asyncio.to_thread(self.store.append_audit, entry)
        except PersistenceError as e:
            audit_error = e.message

        return SaveResult(provider=stored, audit_error=audit_error)

    # =========================================================================
    # CACHED LOOKUP
    # =========================================================================

    def is_stale(self, record: Dict[str, Any], now: Optional[datetime] = None) -> bool:
        """A stored row is stale once its last sync is older than the cache window"""
        last_synced = record.get("last_synced_at")
        if not last_synced:
            return True

        try:
            synced_at = datetime.fromisoformat(str(last_synced))
        except ValueError:
            logger.warning(f"Unreadable last_synced_at {last_synced!r}; treating as stale")
            return True
        if synced_at.tzinfo is None:
            synced_at = synced_at.replace(tzinfo=timezone.utc)

        now = now or datetime.now(timezone.utc)
        return now - synced_at > timedelta(days=self.config.cache_max_age_days)

    async def get_provider(
        self,
        caller: Optional[CallerIdentity],
        country: Country,
        identifier: str,
        force_refresh: bool = False,
        timeout: Optional[float] = None
    ) -> CachedLookup:
        """
        Get a provider by NPI / registration id, cache first

        A fresh cached row is returned as is. A stale or missing one triggers
        a registry fetch whose first result is saved (with a SYNC audit entry)
        and returned.
        """
        caller = self._require_caller(caller)
        if not identifier:
            raise InvalidRequestError("An NPI number or provider id is required")

        if not force_refresh:
            cached = await asyncio.to_thread(self.store.get_provider, caller.user_id, country, identifier)
            if cached and not self.is_stale(cached):
                logger.debug(f"Cache hit for {country.value} {identifier}")
                return CachedLookup(provider=cached, from_cache=True)

        providers = await self._search_registry(SearchParams.for_identifier(country, identifier), timeout)
        if not providers:
            return CachedLookup(provider=None, from_cache=False)

        saved = await self.save(caller, providers[0], country)
        return CachedLookup(provider=saved.provider, from_cache=False, audit_error=saved.audit_error)

    async def list_cached(
        self,
        caller: Optional[CallerIdentity],
        country: Optional[Country] = None
    ) -> List[Dict[str, Any]]:
        """Caller's saved providers, newest first"""
        caller = self._require_caller(caller)
        return await asyncio.to_thread(self.store.list_providers, caller.user_id, country)

    async def history(self, caller: Optional[CallerIdentity], limit: int = 50) -> List[Dict[str, Any]]:
        """Caller's audit entries, newest first"""
        caller = self._require_caller(caller)
        return await asyncio.to_thread(self.store.list_audit, caller.user_id, limit)
