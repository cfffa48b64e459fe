"""
Async base client for national provider registries

Shared by the country adapters:
- One httpx.AsyncClient per request, opened with ``async with``
- Bounded request timeout (configurable, overridable per call)
- Uniform mapping of HTTP status codes to the error taxonomy
- No retries; retry policy belongs to the caller
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from src.core.errors import RateLimitedError, RecordParseError, UpstreamError
from src.core.models import NormalizedProvider, SearchParams

logger = logging.getLogger(__name__)


@dataclass
class RegistryConfig:
    """Registry connection configuration"""
    base_url: str
    api_key: Optional[str] = None
    request_timeout: float = 10.0


class RegistryClient(ABC):
    """
    Base async registry adapter

    Subclasses supply the upstream query (``search``) and the payload
    parser (``parse``); this class owns the HTTP session and error mapping.
    """

    # Label used in upstream error messages
    registry_name = "Registry"

    # Whether an upstream 404 means "no such provider" rather than a failure
    not_found_is_empty = False

    def __init__(self, config: RegistryConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry"""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.request_timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Optional[Any]:
        """
        GET a JSON document from the registry

        Returns:
            Decoded JSON, or None when a 404 means an empty result

        Raises:
            RateLimitedError: upstream answered 429
            UpstreamError: any other failure
        """
        if self._client is None:
            raise RuntimeError(f"{type(self).__name__} must be used as an async context manager")

        kwargs: Dict[str, Any] = {"params": params, "headers": self._get_headers()}
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout)

        logger.info(f"Fetching {self.registry_name}: {url} {params or ''}")

        try:
            response = await self._client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{self.registry_name} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{self.registry_name} request failed: {e}") from e

        if response.status_code == 429:
            logger.warning(f"{self.registry_name} rate limit hit")
            raise RateLimitedError()

        if response.status_code == 404 and self.not_found_is_empty:
            return None

        if not response.is_success:
            logger.error(f"{self.registry_name} API error: {response.status_code} {response.text[:200]}")
            raise UpstreamError(
                f"{self.registry_name} API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{self.registry_name} returned invalid JSON: {e}") from e

    def _parse_all(self, entries: List[Any]) -> List[NormalizedProvider]:
        """Parse upstream entries, skipping ones without a usable record"""
        providers = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping non-object {self.registry_name} entry: {entry!r}")
                continue
            try:
                providers.append(self.parse(entry))
            except RecordParseError as e:
                logger.warning(f"Skipping {self.registry_name} entry: {e}")
            except (TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Skipping malformed {self.registry_name} entry: {e!r}")
        return providers

    @staticmethod
    @abstractmethod
    def parse(result: Dict[str, Any]) -> NormalizedProvider:
        """Turn one upstream result into a canonical record"""

    @abstractmethod
    async def search(self, params: SearchParams, timeout: Optional[float] = None) -> List[NormalizedProvider]:
        """
        Search the registry

        An identifier search ignores every other filter; with neither an
        identifier nor a name fragment the result is empty and upstream is
        not called.
        """


def first_non_empty(*candidates: Any) -> str:
    """First candidate that is neither None nor an empty string, as str"""
    for candidate in candidates:
        if candidate is None:
            continue
        value = str(candidate)
        if value:
            return value
    return ""


def as_dict(value: Any) -> Dict[str, Any]:
    """Nested upstream section as a dict; anything else is treated as absent"""
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    """Nested upstream section as a list; anything else is treated as absent"""
    return value if isinstance(value, list) else []
