"""External metadata providers."""

from cinerank.providers.catalog import TMDBCatalog, extract_catalog_item
from cinerank.providers.tmdb_client import TMDBClient, TMDBError, TMDBRateLimitError

__all__ = [
    "TMDBCatalog",
    "TMDBClient",
    "TMDBError",
    "TMDBRateLimitError",
    "extract_catalog_item",
]
