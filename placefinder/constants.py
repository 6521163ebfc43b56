"""Configuration constants and environment-driven settings."""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# -- Provider identifiers -------------------------------------------------
GOOGLE = "google"
NOMINATIM = "nominatim"

# -- Upstream providers ---------------------------------------------------
# Presence of a Google key toggles provider priority (Google first, then
# Nominatim).  Without one, only Nominatim is used.
GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY", "").strip() or None
GOOGLE_PLACE_TYPES = "(cities)"

NOMINATIM_DOMAIN = os.environ.get("NOMINATIM_DOMAIN", "nominatim.openstreetmap.org")
NOMINATIM_USER_AGENT = os.environ.get(
    "NOMINATIM_USER_AGENT", "placefinder/1.0 (contact@example.com)")

ACCEPT_LANGUAGE = os.environ.get("PLACEFINDER_LANGUAGE", "en")
PROVIDER_TIMEOUT = float(os.environ.get("PLACEFINDER_PROVIDER_TIMEOUT", "10"))
RESULT_LIMIT = 5

# -- Incremental search ---------------------------------------------------
MIN_QUERY_LENGTH = 2
DEBOUNCE_SECONDS = 0.3      # quiet period before a lookup is issued
BLUR_GRACE_SECONDS = 0.2    # lets a suggestion click land before blur clears
REQUEST_TIMEOUT = 8.0       # an unanswered lookup is treated as failed

PROXY_URL = os.environ.get("PLACEFINDER_PROXY_URL", "http://127.0.0.1:8000")
