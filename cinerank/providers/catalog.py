"""Metadata provider backed by TMDB."""

from typing import Any

from cinerank.core.contracts import CatalogItem, MediaKind
from cinerank.logging import get_logger
from cinerank.providers.tmdb_client import TMDBClient

logger = get_logger(__name__)


def extract_catalog_item(data: dict[str, Any], media_kind: MediaKind) -> CatalogItem | None:
    """Normalize a raw TMDB record.

    Movies carry ``title``/``release_date``, TV shows ``name``/
    ``first_air_date``.

    Returns:
        CatalogItem, or None when id or title is missing
    """
    tmdb_id = data.get("id")
    title = data.get("title") or data.get("name")
    if tmdb_id is None or not title:
        return None

    return CatalogItem(
        id=int(tmdb_id),
        title=title,
        media_kind=media_kind,
        poster_path=data.get("poster_path"),
        vote_average=data.get("vote_average"),
        vote_count=data.get("vote_count"),
        genre_ids=list(data.get("genre_ids") or [g["id"] for g in data.get("genres", []) if "id" in g]),
        release_date=data.get("release_date") or data.get("first_air_date") or None,
        overview=data.get("overview"),
    )


def extract_results(payload: dict[str, Any], media_kind: MediaKind) -> list[CatalogItem]:
    items = []
    for raw in payload.get("results") or []:
        if raw.get("adult"):
            continue
        item = extract_catalog_item(raw, media_kind)
        if item is not None:
            items.append(item)
    return items


class TMDBCatalog:
    """Adapts :class:`TMDBClient` to the metadata provider protocol."""

    def __init__(self, client: TMDBClient, region: str = "US") -> None:
        self.client = client
        self.region = region

    async def search(self, title: str, media_kind: MediaKind) -> list[CatalogItem]:
        payload = await self.client.search(media_kind.value, title)
        return extract_results(payload, media_kind)

    async def details(self, item_id: int, media_kind: MediaKind) -> dict[str, Any]:
        return await self.client.get_details(media_kind.value, item_id)

    async def similar(self, item_id: int, media_kind: MediaKind) -> list[CatalogItem]:
        payload = await self.client.get_similar(media_kind.value, item_id)
        return extract_results(payload, media_kind)

    async def watch_providers(self, item_id: int, media_kind: MediaKind) -> list[dict[str, Any]]:
        """Flat-rate providers for the configured region."""
        payload = await self.client.get_watch_providers(media_kind.value, item_id)
        region = (payload.get("results") or {}).get(self.region) or {}
        return list(region.get("flatrate") or [])

    async def close(self) -> None:
        await self.client.close()
