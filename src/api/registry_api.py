"""
Python API for the provider registry service

Single action-selected entry point, mirroring the HTTP endpoint:

    from src.api import RegistryAPI

    api = RegistryAPI.from_env()
    status, payload = api.handle_sync(
        "validate",
        authorization="Bearer <token>",
        body={"country": "US", "userData": {"npi_number": "1234567893", "phone": "(555) 123-4567"}},
    )

Actions:
    search      Search a registry (query params)
    validate    Score user data against the registry (body)
    save        Save a registry record to the caller's directory (body)
    lookup      Cache-first provider lookup by NPI / provider id
    cached      Caller's saved providers
    history     Caller's audit log

Every action needs a bearer credential; failures come back as
``{"success": false, "error": ..., "errorType": ...}`` with a matching status.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx

from src.api.auth import StaticTokenVerifier, SupabaseTokenVerifier, TokenVerifier
from src.core.errors import InvalidRequestError, RegistryServiceError
from src.core.lookup_service import LookupService, ServiceConfig
from src.core.models import (
    CallerIdentity,
    Country,
    NormalizedProvider,
    SearchParams,
    UserProviderData,
)
from src.store.provider_store import ProviderStore

logger = logging.getLogger(__name__)

Handler = Callable[[CallerIdentity, Mapping[str, Any], Mapping[str, Any]], Awaitable[Dict[str, Any]]]


def _optional_str(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _int_param(params: Mapping[str, Any], key: str, default: int) -> int:
    value = params.get(key)
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"{key} must be an integer") from None
    if number <= 0:
        raise InvalidRequestError(f"{key} must be positive")
    return number


def _bool_param(params: Mapping[str, Any], key: str) -> bool:
    value = params.get(key)
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes"}


def _score_param(body: Mapping[str, Any], key: str) -> Optional[float]:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError(f"{key} must be a number")
    if not 0 <= value <= 100:
        raise InvalidRequestError(f"{key} must be between 0 and 100")
    return value


class RegistryAPI:
    """
    Action-selected API over LookupService

    Resolves the caller from the bearer credential before any registry
    work, dispatches on the action name, and renders results and errors
    as JSON-ready dicts.
    """

    def __init__(self, service: LookupService, verifier: TokenVerifier):
        self.service = service
        self.verifier = verifier
        self._handlers: Dict[str, Handler] = {
            "search": self._search,
            "validate": self._validate,
            "save": self._save,
            "lookup": self._lookup,
            "cached": self._cached,
            "history": self._history,
        }

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        store: Optional[ProviderStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verifier: Optional[TokenVerifier] = None
    ) -> "RegistryAPI":
        """Build the API, choosing Supabase auth when it is configured"""
        if verifier is None:
            if config.supabase_url and config.supabase_anon_key:
                verifier = SupabaseTokenVerifier(config.supabase_url, config.supabase_anon_key)
            else:
                if not config.api_tokens:
                    logger.warning("No Supabase auth or REGISTRY_API_TOKENS configured; all requests will be rejected")
                verifier = StaticTokenVerifier(config.api_tokens)

        service = LookupService(config, store=store, transport=transport)
        return cls(service, verifier)

    @classmethod
    def from_env(cls) -> "RegistryAPI":
        """
        Create RegistryAPI from environment variables

        See ServiceConfig.from_env for the variables read.
        """
        return cls.from_config(ServiceConfig.from_env())

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def handle(
        self,
        action: Optional[str],
        authorization: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Run one request

        Returns:
            Tuple of (http_status, payload)
        """
        try:
            caller = await self.verifier.authenticate(authorization)

            handler = self._handlers.get(action or "")
            if handler is None:
                raise InvalidRequestError("Invalid action")

            if body is not None and not isinstance(body, Mapping):
                raise InvalidRequestError("Request body must be a JSON object")

            payload = await handler(caller, params or {}, body or {})
            return 200, payload

        except RegistryServiceError as e:
            logger.info(f"Request {action!r} failed: {e.error_type}: {e.message}")
            return e.http_status, e.to_dict()
        except Exception as e:
            logger.exception(f"Unexpected error handling {action!r}")
            return 500, {"success": False, "error": str(e) or "Unknown error", "errorType": "error"}

    def handle_sync(
        self,
        action: Optional[str],
        authorization: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """Synchronous wrapper for handle"""
        return asyncio.run(self.handle(action, authorization, params, body))

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def _search(self, caller, params, body) -> Dict[str, Any]:
        search_params = SearchParams(
            country=Country.parse(params.get("country") or "US"),
            npi=_optional_str(params, "npi"),
            provider_id=_optional_str(params, "providerId"),
            first_name=_optional_str(params, "firstName"),
            last_name=_optional_str(params, "lastName"),
            name=_optional_str(params, "name"),
            city=_optional_str(params, "city"),
            state=_optional_str(params, "state"),
            postal_code=_optional_str(params, "postalCode"),
            limit=_int_param(params, "limit", self.service.config.default_search_limit),
        )
        providers = await self.service.search(caller, search_params)
        return {"success": True, "data": [p.to_dict() for p in providers]}

    async def _validate(self, caller, params, body) -> Dict[str, Any]:
        country = Country.parse(body.get("country"))
        user_data = UserProviderData.from_dict(body.get("userData"))
        result = await self.service.validate(caller, country, user_data)
        return result.to_dict()

    async def _save(self, caller, params, body) -> Dict[str, Any]:
        country = Country.parse(body.get("country"))
        provider = NormalizedProvider.from_dict(body.get("provider"), country)
        score = _score_param(body, "correctnessScore")

        saved = await self.service.save(caller, provider, country, score)
        payload = {"success": True, "provider": saved.provider}
        if saved.audit_error:
            payload["auditError"] = saved.audit_error
        return payload

    async def _lookup(self, caller, params, body) -> Dict[str, Any]:
        country = Country.parse(params.get("country") or "US")
        identifier = _optional_str(params, "identifier")
        if not identifier:
            raise InvalidRequestError("identifier is required")

        result = await self.service.get_provider(
            caller, country, identifier, force_refresh=_bool_param(params, "forceRefresh")
        )
        payload = {
            "success": True,
            "found": result.provider is not None,
            "fromCache": result.from_cache,
            "provider": result.provider,
        }
        if result.provider is None:
            payload["message"] = "Provider not found in registry"
        if result.audit_error:
            payload["auditError"] = result.audit_error
        return payload

    async def _cached(self, caller, params, body) -> Dict[str, Any]:
        country = Country.parse(params["country"]) if params.get("country") else None
        providers = await self.service.list_cached(caller, country)
        return {"success": True, "data": providers}

    async def _history(self, caller, params, body) -> Dict[str, Any]:
        entries = await self.service.history(caller, limit=_int_param(params, "limit", 50))
        return {"success": True, "data": entries}
