import logging
from typing import List, Optional, Sequence

from placefinder import constants
from placefinder.errors import (
    InputError,
    ProviderError,
    ProviderUnavailable,
    RateLimitedError,
    ResolutionError,
)
from placefinder.models import Candidate
from placefinder.providers import GeocodeProvider, build_providers

from backend import config

logger = logging.getLogger(__name__)


class GeocoderService:
    """Forward-geocoding service behind ``/location``.

    Tries the configured providers in priority order (Google Places when a
    key is set, then Nominatim) and returns the first provider's answer that
    did not fail.  Holds no per-request state, so one instance serves every
    concurrent request.
    """

    def __init__(self, providers: Optional[Sequence[GeocodeProvider]] = None,
                 min_query_length: int = config.MIN_QUERY_LENGTH):
        if providers is None:
            providers = build_providers(config.GOOGLE_MAPS_API_KEY)
        self.providers: List[GeocodeProvider] = list(providers)
        self.min_query_length = min_query_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[Candidate]:
        """Resolve *query* to a list of candidates.

        Google predictions come back unresolved (no coordinates); Nominatim
        results always carry coordinates.  Zero results from a provider is a
        valid answer and does not trigger the fallback; a provider failure
        does.

        Raises ``InputError`` for queries shorter than the minimum length and
        ``ProviderUnavailable`` when every provider failed.
        """
        query = (query or "").strip()
        if len(query) < self.min_query_length:
            raise InputError("query too short")

        errors: List[ProviderError] = []
        for provider in self.providers:
            candidates = self._try_provider(provider, query, errors)
            if candidates is not None:
                return candidates

        raise ProviderUnavailable(errors)

    def resolve(self, place_id: str, label: Optional[str] = None) -> Candidate:
        """Fetch coordinates for a prediction chosen by the user.

        Only the first provider is consulted; the details call is made for
        exactly this one place.
        """
        place_id = (place_id or "").strip()
        if not place_id:
            raise InputError("place_id is required")

        provider = self.details_provider
        if provider is None:
            raise ResolutionError("No provider supports place details")

        candidate = Candidate(label=label or place_id, provider_id=provider.provider_id,
                              place_id=place_id)
        return provider.resolve_details(candidate)

    @property
    def details_provider(self) -> Optional[GeocodeProvider]:
        for provider in self.providers:
            if provider.provider_id != constants.NOMINATIM:
                return provider
        return None

    # ------------------------------------------------------------------
    # Provider attempts
    # ------------------------------------------------------------------

    def _try_provider(self, provider: GeocodeProvider, query: str,
                      errors: List[ProviderError]) -> Optional[List[Candidate]]:
        """Run one provider.  Returns candidates, or None after a failure."""
        try:
            logger.info(f"Trying {provider.provider_id} for '{query}'...")
            candidates = provider.search(query)
        except ProviderError as exc:
            errors.append(exc)
            if isinstance(exc, RateLimitedError):
                logger.warning(f"{provider.provider_id} rate limited: {exc}")
            else:
                logger.warning(f"{provider.provider_id} failed: {exc}")
            return None

        logger.info(f"{provider.provider_id} returned {len(candidates)} result(s)")
        return candidates
