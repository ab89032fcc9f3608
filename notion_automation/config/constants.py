"""
Central configuration constants for the Notion automation workflows.

This module contains all shared constants used across workflow modules,
eliminating duplication and providing a single source of truth.
"""

# API Base URLs
NOTION_API_BASE_URL = "https://api.notion.com/v1"
NOTION_API_VERSION = "2022-06-28"
NOTION_PAGES_URL = f"{NOTION_API_BASE_URL}/pages"
NOTION_DATABASES_URL = f"{NOTION_API_BASE_URL}/databases"
NOTION_BLOCKS_URL = f"{NOTION_API_BASE_URL}/blocks"

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"

TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
TMDB_POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
OMDB_API_URL = "http://www.omdbapi.com/"

GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
GOOGLE_MAPS_DIR_URL = "https://www.google.com/maps/dir"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
NOMINATIM_USER_AGENT = "notion-automation/1.0"

# Timeouts and Limits
DEFAULT_TIMEOUT = 30  # seconds
AI_TIMEOUT = 120  # seconds
MAX_PAGE_SIZE = 100  # Notion API limit
MAX_DIRECTIONS_WAYPOINTS = 25  # Google Directions API limit

# Delays between sequential third-party calls
METADATA_LOOKUP_DELAY = 0.3  # seconds, TMDB/OMDb
NOMINATIM_DELAY = 1.0  # seconds, Nominatim usage policy

# HTTP Headers
DEFAULT_HEADERS = {
    "Content-Type": "application/json",
}

NOTION_HEADERS = {
    **DEFAULT_HEADERS,
    "Notion-Version": NOTION_API_VERSION,
}

# Error Messages
ERROR_MISSING_ENV = "{} is not defined"
ERROR_EMPTY_AI_RESPONSE = "AI returned an empty response"

# Display fallbacks
UNNAMED_FALLBACK = "Unnamed"

# Workflow windows
MEAL_PLANNER_WINDOW_DAYS = 28
SHOPPING_LOOKAHEAD_DAYS = 7
EVENTS_HORIZON_MONTHS = 12

# Pub crawl page blocks
PUB_CRAWL_HEADING = "🗺️ Pub Crawl Route"
