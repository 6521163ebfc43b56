import logging
import math

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from placefinder.errors import InputError, ProviderUnavailable, ResolutionError

from backend.geocoder import GeocoderService
from backend.models import ErrorResponse, LocationItem, LocationsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/location", tags=["location"])

geocoder = GeocoderService()

GENERIC_FAILURE = "Failed to fetch locations. Please try again."


def _error(status_code: int, message: str, details: dict | None = None,
           headers: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, details=details)
    return JSONResponse(status_code=status_code,
                        content=body.model_dump(exclude_none=True),
                        headers=headers)


@router.get("", response_model=LocationsResponse,
            responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse},
                       503: {"model": ErrorResponse}})
def search_locations(q: str = ""):
    """Return location candidates for a free-text query.

    Uses ``def`` (not ``async def``) so FastAPI runs it in a threadpool;
    the blocking provider HTTP calls won't stall the event loop.  There is
    no rate limiting here: callers debounce their keystrokes.
    """
    try:
        candidates = geocoder.search(q)
    except InputError as exc:
        return _error(400, str(exc))
    except ProviderUnavailable as exc:
        logger.error(f"Location search failed for '{q}': {exc.errors}")
        if exc.rate_limited:
            retry_after = exc.retry_after
            headers = {"Retry-After": str(math.ceil(retry_after))} if retry_after else None
            return _error(503, GENERIC_FAILURE,
                          details={"rate_limited": True, "retry_after": retry_after},
                          headers=headers)
        return _error(502, GENERIC_FAILURE)

    return LocationsResponse(
        locations=[LocationItem.from_candidate(c) for c in candidates])


@router.get("/details", response_model=LocationItem,
            responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse},
                       502: {"model": ErrorResponse}})
def location_details(place_id: str = "", label: str = ""):
    """Resolve a prediction's ``place_id`` to coordinates.

    ``label`` is the prediction text the client showed; it is kept when the
    provider returns no address for the place.
    """
    if geocoder.details_provider is None and place_id.strip():
        return _error(404, "Place details are not available")
    try:
        candidate = geocoder.resolve(place_id, label.strip() or None)
    except InputError as exc:
        return _error(400, str(exc))
    except ResolutionError as exc:
        logger.warning(f"Place details failed for '{place_id}': {exc}")
        return _error(502, "Could not resolve the selected location.")

    return LocationItem.from_candidate(candidate)
