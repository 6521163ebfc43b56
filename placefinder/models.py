"""Value types shared by the providers, the proxy and the search controller."""

import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Union


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def __str__(self) -> str:
        return f"{self.lat:.4f}, {self.lng:.4f}"


@dataclass(frozen=True)
class Query:
    """A single issued lookup.  Only the latest ``request_id`` may touch
    visible state."""
    text: str
    request_id: int
    issued_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class Candidate:
    label: str
    provider_id: str
    coordinates: Optional[Coordinates] = None
    place_id: Union[int, str, None] = None

    @property
    def is_resolved(self) -> bool:
        return self.coordinates is not None

    def with_coordinates(self, coordinates: Coordinates,
                         label: Optional[str] = None) -> "Candidate":
        return replace(self, coordinates=coordinates,
                       label=label or self.label)

    def to_wire(self) -> dict:
        """Serialize to the proxy's JSON item.

        ``lat``/``lon`` are strings (the Nominatim wire format) and ``None``
        for predictions that still need a details lookup.
        """
        return {
            "display_name": self.label,
            "lat": str(self.coordinates.lat) if self.coordinates else None,
            "lon": str(self.coordinates.lng) if self.coordinates else None,
            "place_id": self.place_id,
            "provider": self.provider_id,
        }

    @classmethod
    def from_wire(cls, item: dict, default_provider: str = "") -> "Candidate":
        lat, lon = item.get("lat"), item.get("lon")
        coordinates = None
        if lat not in (None, "") and lon not in (None, ""):
            coordinates = Coordinates(lat=float(lat), lng=float(lon))
        return cls(
            label=item["display_name"],
            provider_id=item.get("provider") or default_provider,
            coordinates=coordinates,
            place_id=item.get("place_id"),
        )


@dataclass(frozen=True)
class Selection:
    """A committed resolution.  Valid only while the input shows ``label``."""
    label: str
    coordinates: Coordinates


@dataclass
class SearchState:
    text: str = ""
    candidates: List[Candidate] = field(default_factory=list)
    is_loading: bool = False
    selected_index: int = -1
    has_valid_selection: bool = False
    last_request_id: int = 0
    show_suggestions: bool = False
    search_failed: bool = False
    selection: Optional[Selection] = None

    @property
    def highlighted(self) -> Optional[Candidate]:
        if 0 <= self.selected_index < len(self.candidates):
            return self.candidates[self.selected_index]
        return None
