DOMAIN = "geotrace"
VERSION = "0.3.0"

USER_AGENT = f"{DOMAIN}/{VERSION}"

# Provider endpoints
COMPLETION_API_URL = "https://data.geopf.fr/geocodage/completion"
OVERPASS_API_URL = "https://overpass-api.de/api/interpreter"
ELEVATION_API_URL = "https://api.open-elevation.com/api/v1/lookup"

# Shared request queue
MIN_REQUEST_DELAY = 0.05     # 50 ms between dispatches = max 20 requests/second
                             # (the feature provider starts refusing at around 50/s)

# HTTP
REQUEST_TIMEOUT = 15         # seconds, multiplied by attempt number for each retry
REQUEST_ATTEMPTS = 3         # maximum number of attempts on timeout

# Elevation lookups
ELEVATION_MAX_SPLIT_DEPTH = 5  # at most 2**5 - 1 = 31 requests per original batch

# Geometry
EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.32       # constant-latitude approximation used for bbox buffers

# Feature search
DEFAULT_SEARCH_RADIUS_KM = 1.0
DEFAULT_SEARCH_LIMIT = 8

# Tag kinds checked, in order, to classify a feature.
TYPE_TAG_PRIORITY: tuple[str, ...] = ("place", "amenity", "tourism", "natural", "historic")

# Annotation defaults
DEFAULT_COLOR = "#000000"
DEFAULT_POLYGON_COLOR = "#90EE90"  # light green
MIN_POLYGON_VERTICES = 3

# Persisted collection name → entity kind value
COLLECTION_KINDS: dict[str, str] = {
    "points": "point",
    "lineSegments": "lineSegment",
    "circles": "circle",
    "polygons": "polygon",
}
