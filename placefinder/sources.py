"""Where the search controller gets its candidates from.

``ProxyLocationSource`` is the normal path: HTTP calls to the backend's
``/location`` endpoints, keeping provider keys server-side.
``LocalLocationSource`` runs a geocoder service in-process, for the CLI and
for scripts that have no server to talk to.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from placefinder import constants
from placefinder.errors import (
    InputError,
    ProviderError,
    RateLimitedError,
    ResolutionError,
)
from placefinder.models import Candidate

logger = logging.getLogger(__name__)

PROXY = "proxy"


class LocationSource(ABC):

    @abstractmethod
    async def search(self, text: str) -> List[Candidate]:
        """Return candidates for *text*.  Raises ``LocationError`` on failure."""

    @abstractmethod
    async def resolve(self, candidate: Candidate) -> Candidate:
        """Return *candidate* with coordinates.  Raises ``ResolutionError``."""

    async def aclose(self) -> None:
        pass


class ProxyLocationSource(LocationSource):

    def __init__(self, base_url: str = constants.PROXY_URL, *,
                 timeout: float = constants.REQUEST_TIMEOUT,
                 client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def search(self, text: str) -> List[Candidate]:
        logger.debug(f"Proxy lookup for '{text}'")
        try:
            response = await self._client.get("/location", params={"q": text})
        except httpx.HTTPError as exc:
            raise ProviderError(PROXY, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 400:
            raise InputError(self._error_message(response))
        if response.status_code == 503:
            hint = self._rate_limit_hint(response)
            if hint is not None:
                raise RateLimitedError(PROXY, self._error_message(response),
                                       retry_after=hint.get("retry_after"))
        if response.status_code != 200:
            raise ProviderError(PROXY, f"HTTP {response.status_code}")

        try:
            items = response.json()["locations"]
            return [Candidate.from_wire(item) for item in items]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(PROXY, f"Malformed response: {exc}") from exc

    async def resolve(self, candidate: Candidate) -> Candidate:
        if candidate.is_resolved:
            return candidate
        if candidate.place_id in (None, ""):
            raise ResolutionError(f"Candidate '{candidate.label}' has no place id")

        try:
            response = await self._client.get(
                "/location/details", params={"place_id": str(candidate.place_id),
                                           "label": candidate.label})
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Details request failed: {exc}") from exc
        if response.status_code != 200:
            raise ResolutionError(f"Details request returned HTTP {response.status_code}")

        try:
            resolved = Candidate.from_wire(response.json(), candidate.provider_id)
        except (ValueError, KeyError, TypeError) as exc:
            raise ResolutionError(f"Malformed details response: {exc}") from exc
        if not resolved.is_resolved:
            raise ResolutionError(f"No coordinates for '{candidate.label}'")
        return candidate.with_coordinates(resolved.coordinates, label=resolved.label)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error") or f"HTTP {response.status_code}"
        except ValueError:
            return f"HTTP {response.status_code}"

    @staticmethod
    def _rate_limit_hint(response: httpx.Response) -> Optional[dict]:
        try:
            details = response.json().get("details") or {}
        except ValueError:
            return None
        return details if details.get("rate_limited") else None


class LocalLocationSource(LocationSource):
    """Runs a geocoder service (``search(query)`` / ``resolve(place_id)``)
    in a worker thread; its provider calls block."""

    def __init__(self, service):
        self.service = service

    async def search(self, text: str) -> List[Candidate]:
        return await asyncio.to_thread(self.service.search, text)

    async def resolve(self, candidate: Candidate) -> Candidate:
        if candidate.is_resolved:
            return candidate
        if candidate.place_id in (None, ""):
            raise ResolutionError(f"Candidate '{candidate.label}' has no place id")
        return await asyncio.to_thread(
            self.service.resolve, str(candidate.place_id), candidate.label)
