"""Exception hierarchy for location resolution."""

from typing import Iterable, Optional


class LocationError(Exception):
    """Base class for every error raised by placefinder."""


class InputError(LocationError):
    """The query was rejected before any network call."""


class ProviderError(LocationError):
    """A provider failed: transport error, non-2xx, timeout or bad payload."""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class RateLimitedError(ProviderError):
    """The provider refused the call because of rate limits or quota."""

    def __init__(self, provider_id: str, message: str,
                 retry_after: Optional[float] = None):
        super().__init__(provider_id, message)
        self.retry_after = retry_after


class ProviderUnavailable(LocationError):
    """Every provider attempted for a query failed."""

    def __init__(self, errors: Iterable[ProviderError]):
        self.errors = list(errors)
        names = ", ".join(e.provider_id for e in self.errors) or "none"
        super().__init__(f"All location providers failed ({names})")

    @property
    def rate_limited(self) -> bool:
        return any(isinstance(e, RateLimitedError) for e in self.errors)

    @property
    def retry_after(self) -> Optional[float]:
        hints = [e.retry_after for e in self.errors
                 if isinstance(e, RateLimitedError) and e.retry_after is not None]
        return max(hints) if hints else None


class ResolutionError(LocationError):
    """A selected candidate could not be resolved to coordinates."""
