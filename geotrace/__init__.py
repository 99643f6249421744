"""geotrace — geodata search aggregation and annotation store."""
from .aggregator import FeatureSearchAggregator
from .api.completion import SearchError
from .config import GeoTraceConfig, load_config
from .elevation import ElevationResolver
from .entity_store import BulkLoadReport, EntityStore
from .geokey import GeoKeyCodec
from .models import (
    CircleEntity,
    Coordinate,
    EntityKind,
    LineMode,
    LineSegmentEntity,
    Note,
    PointEntity,
    PolygonEntity,
    SearchResult,
)
from .request_queue import RateLimitedQueue
from .service import GeoSearchService

__all__ = [
    "BulkLoadReport",
    "CircleEntity",
    "Coordinate",
    "ElevationResolver",
    "EntityKind",
    "EntityStore",
    "FeatureSearchAggregator",
    "GeoKeyCodec",
    "GeoSearchService",
    "GeoTraceConfig",
    "LineMode",
    "LineSegmentEntity",
    "Note",
    "PointEntity",
    "PolygonEntity",
    "RateLimitedQueue",
    "SearchError",
    "SearchResult",
    "load_config",
]
