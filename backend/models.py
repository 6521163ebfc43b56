from pydantic import BaseModel
from typing import List, Optional, Union

from placefinder.models import Candidate


class LocationItem(BaseModel):
    display_name: str
    lat: Optional[str] = None     # None until a Google prediction is resolved
    lon: Optional[str] = None
    place_id: Union[int, str, None] = None
    provider: str

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "LocationItem":
        return cls(**candidate.to_wire())


class LocationsResponse(BaseModel):
    locations: List[LocationItem]


class ErrorResponse(BaseModel):
    error: str
    details: Optional[dict] = None
