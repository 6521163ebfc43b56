"""Geocode provider adapters.

Both upstream protocols (Google Places' predict-then-details and Nominatim's
single search) are normalized into ``Candidate`` lists behind one
``GeocodeProvider`` interface.  The implementation is chosen once, at
construction, by ``build_providers``.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from geopy.exc import GeocoderQuotaExceeded, GeocoderRateLimited, GeocoderServiceError
from geopy.geocoders import Nominatim

from placefinder import constants
from placefinder.errors import ProviderError, RateLimitedError, ResolutionError
from placefinder.models import Candidate, Coordinates
from placefinder.places import GooglePlaces

logger = logging.getLogger(__name__)

# geopy raises its own hierarchy for transport and HTTP failures; a payload
# it cannot parse surfaces as one of the builtin lookup/type errors instead.
_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _provider_error(provider_id: str, exc: Exception) -> ProviderError:
    if isinstance(exc, GeocoderRateLimited):
        return RateLimitedError(provider_id, str(exc), retry_after=exc.retry_after)
    if isinstance(exc, GeocoderQuotaExceeded):
        return RateLimitedError(provider_id, str(exc))
    return ProviderError(provider_id, f"{type(exc).__name__}: {exc}")


class GeocodeProvider(ABC):
    provider_id: str = ""

    @abstractmethod
    def search(self, query: str) -> List[Candidate]:
        """Return candidates for *query*; raise ``ProviderError`` on failure."""

    @abstractmethod
    def resolve_details(self, candidate: Candidate) -> Candidate:
        """Return *candidate* with coordinates; raise ``ResolutionError``."""

    def lookup(self, query: str) -> List[Candidate]:
        """Like ``search`` but a failing provider yields an empty list."""
        try:
            return self.search(query)
        except ProviderError as exc:
            logger.warning(f"{self.provider_id} lookup failed for '{query}': {exc}")
            return []


class GooglePlacesProvider(GeocodeProvider):
    """Commercial path: locality predictions now, geometry on selection."""

    provider_id = constants.GOOGLE

    def __init__(self, api_key: str, *, place_types: str = constants.GOOGLE_PLACE_TYPES,
                 language: Optional[str] = constants.ACCEPT_LANGUAGE,
                 timeout: float = constants.PROVIDER_TIMEOUT,
                 client: Optional[GooglePlaces] = None):
        self.place_types = place_types
        self.language = language
        self._places = client or GooglePlaces(api_key, timeout=timeout)

    def search(self, query: str) -> List[Candidate]:
        try:
            predictions = self._places.autocomplete(
                query, types=self.place_types, language=self.language)
        except (GeocoderServiceError, *_PAYLOAD_ERRORS) as exc:
            raise _provider_error(self.provider_id, exc) from exc

        return [
            Candidate(label=p["description"], provider_id=self.provider_id,
                      coordinates=None, place_id=p["place_id"])
            for p in predictions
        ]

    def resolve_details(self, candidate: Candidate) -> Candidate:
        if candidate.is_resolved:
            return candidate
        if not candidate.place_id:
            raise ResolutionError(f"Candidate '{candidate.label}' has no place id")

        try:
            location = self._places.details(candidate.place_id, language=self.language)
        except (GeocoderServiceError, *_PAYLOAD_ERRORS) as exc:
            logger.warning(f"Google details failed for {candidate.place_id}: {exc}")
            raise ResolutionError(f"Could not resolve '{candidate.label}'") from exc

        if location is None:
            raise ResolutionError(f"Could not resolve '{candidate.label}'")
        return candidate.with_coordinates(
            Coordinates(lat=location.latitude, lng=location.longitude),
            label=location.address or None,
        )


class NominatimProvider(GeocodeProvider):
    """Free path: one search call, coordinates included in every result."""

    provider_id = constants.NOMINATIM

    def __init__(self, *, user_agent: str = constants.NOMINATIM_USER_AGENT,
                 language: str = constants.ACCEPT_LANGUAGE,
                 domain: str = constants.NOMINATIM_DOMAIN,
                 timeout: float = constants.PROVIDER_TIMEOUT,
                 limit: int = constants.RESULT_LIMIT,
                 client: Optional[Nominatim] = None):
        self.language = language
        self.limit = limit
        self._nominatim = client or Nominatim(
            user_agent=user_agent, domain=domain, timeout=timeout)
        # Usage policy asks for an identifying UA and a language preference.
        self._nominatim.headers["Accept-Language"] = language

    def search(self, query: str) -> List[Candidate]:
        try:
            results = self._nominatim.geocode(
                query,
                exactly_one=False,
                limit=self.limit,
                addressdetails=True,
                language=self.language,
            )
            return [self._to_candidate(location) for location in results or []]
        except (GeocoderServiceError, *_PAYLOAD_ERRORS) as exc:
            raise _provider_error(self.provider_id, exc) from exc

    def resolve_details(self, candidate: Candidate) -> Candidate:
        if candidate.is_resolved:
            return candidate
        raise ResolutionError(
            f"Nominatim candidate '{candidate.label}' carries no coordinates")

    def _to_candidate(self, location) -> Candidate:
        raw = location.raw or {}
        return Candidate(
            label=raw.get("display_name") or location.address,
            provider_id=self.provider_id,
            coordinates=Coordinates(lat=float(raw.get("lat", location.latitude)),
                                    lng=float(raw.get("lon", location.longitude))),
            place_id=raw.get("place_id"),
        )


def build_providers(google_api_key: Optional[str] = None, *,
                    nominatim: Optional[NominatimProvider] = None) -> List[GeocodeProvider]:
    """Return the provider chain in priority order.

    A Google key puts Google Places first with Nominatim as the fallback;
    without one the chain is Nominatim alone.
    """
    chain: List[GeocodeProvider] = []
    if google_api_key:
        chain.append(GooglePlacesProvider(google_api_key))
    chain.append(nominatim or NominatimProvider())
    logger.info("Location providers: %s", ", ".join(p.provider_id for p in chain))
    return chain
