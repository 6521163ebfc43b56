"""Google Places (Autocomplete + Details) as a geopy geocoder.

geopy ships ``GoogleV3`` for the Geocoding API only; the Places endpoints
follow the same request/status conventions, so they are implemented here on
top of geopy's ``Geocoder`` base to share its transport, timeouts and
exception mapping.
"""

import logging
from functools import partial
from urllib.parse import urlencode

from geopy.exc import (
    GeocoderAuthenticationFailure,
    GeocoderParseError,
    GeocoderQueryError,
    GeocoderQuotaExceeded,
)
from geopy.geocoders.base import DEFAULT_SENTINEL, Geocoder
from geopy.location import Location

logger = logging.getLogger(__name__)


class GooglePlaces(Geocoder):
    """Two-step Places client: ``autocomplete`` for predictions without
    geometry, ``details`` for the geometry of one chosen place."""

    autocomplete_path = "/maps/api/place/autocomplete/json"
    details_path = "/maps/api/place/details/json"

    def __init__(self, api_key, *, domain="maps.googleapis.com", scheme=None,
                 timeout=DEFAULT_SENTINEL, proxies=DEFAULT_SENTINEL,
                 user_agent=None, ssl_context=DEFAULT_SENTINEL,
                 adapter_factory=None):
        super().__init__(
            scheme=scheme,
            timeout=timeout,
            proxies=proxies,
            user_agent=user_agent,
            ssl_context=ssl_context,
            adapter_factory=adapter_factory,
        )
        if not api_key:
            raise GeocoderAuthenticationFailure("A Google Maps API key is required")
        self.api_key = api_key
        self.domain = domain.strip("/")
        self.autocomplete_api = f"{self.scheme}://{self.domain}{self.autocomplete_path}"
        self.details_api = f"{self.scheme}://{self.domain}{self.details_path}"

    def autocomplete(self, query, *, types="(cities)", language=None,
                     timeout=DEFAULT_SENTINEL):
        """Return the raw prediction dicts for *query*.

        Each prediction carries ``description`` and ``place_id`` but no
        coordinates.  An empty list means Google found nothing.
        """
        params = {"input": query, "key": self.api_key}
        if types:
            params["types"] = types
        if language:
            params["language"] = language
        url = "?".join((self.autocomplete_api, urlencode(params)))
        logger.debug("%s.autocomplete: %s", self.__class__.__name__, query)
        return self._call_geocoder(url, self._parse_predictions, timeout=timeout)

    def details(self, place_id, *, fields="geometry,formatted_address",
                language=None, timeout=DEFAULT_SENTINEL):
        """Fetch geometry for exactly one place and return a ``Location``."""
        params = {"place_id": place_id, "fields": fields, "key": self.api_key}
        if language:
            params["language"] = language
        url = "?".join((self.details_api, urlencode(params)))
        logger.debug("%s.details: %s", self.__class__.__name__, place_id)
        callback = partial(self._parse_details, place_id=place_id)
        return self._call_geocoder(url, callback, timeout=timeout)

    def _parse_predictions(self, page):
        if not isinstance(page, dict):
            raise GeocoderParseError("Unexpected autocomplete payload")
        self._check_status(page)
        predictions = page.get("predictions") or []
        try:
            return [
                {"description": p["description"], "place_id": p["place_id"]}
                for p in predictions
            ]
        except (KeyError, TypeError) as exc:
            raise GeocoderParseError(f"Malformed prediction: {exc}") from exc

    def _parse_details(self, page, place_id):
        if not isinstance(page, dict):
            raise GeocoderParseError("Unexpected details payload")
        self._check_status(page)
        if page.get("status") == "ZERO_RESULTS" or not page.get("result"):
            raise GeocoderQueryError(f"No details for place {place_id}")
        place = page["result"]
        try:
            location = place["geometry"]["location"]
            latitude = float(location["lat"])
            longitude = float(location["lng"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocoderParseError(f"Place {place_id} has no geometry") from exc
        return Location(place.get("formatted_address") or "", (latitude, longitude), place)

    def _check_status(self, page):
        status = page.get("status")
        if status in ("OK", "ZERO_RESULTS"):
            return
        message = page.get("error_message") or status
        if status == "OVER_QUERY_LIMIT":
            raise GeocoderQuotaExceeded(message)
        elif status == "REQUEST_DENIED":
            raise GeocoderAuthenticationFailure(message)
        elif status == "NOT_FOUND":
            raise GeocoderQueryError(f"Place not found: {message}")
        else:
            raise GeocoderQueryError(f"Unknown status: {message}")
