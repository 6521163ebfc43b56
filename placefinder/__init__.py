"""placefinder: free-text place search resolved to coordinates.

Providers (Google Places, Nominatim) sit behind one adapter interface; the
``SearchController`` turns keystrokes into debounced, race-safe lookups.
"""

from placefinder.controller import SearchController, SearchPhase
from placefinder.models import Candidate, Coordinates, Query, SearchState, Selection
from placefinder.sources import LocalLocationSource, ProxyLocationSource
