import os

from placefinder import constants

# Presence of a key enables Google Places ahead of Nominatim.
GOOGLE_MAPS_API_KEY = constants.GOOGLE_MAPS_API_KEY

MIN_QUERY_LENGTH = constants.MIN_QUERY_LENGTH

# Comma-separated list, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "PLACEFINDER_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]
