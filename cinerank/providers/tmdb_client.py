"""TMDB API client with transport-level backoff."""

import asyncio
from typing import Any

import httpx

from cinerank.logging import get_logger

logger = get_logger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_TIMEOUT = 15.0
MAX_RETRIES = 3
BASE_BACKOFF = 1.0


# Combined movie + TV genre map (TMDB genre IDs -> English names)
TMDB_GENRE_MAP: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
    # TV-specific
    10759: "Action & Adventure",
    10762: "Kids",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
}


class TMDBError(Exception):
    """Base exception for TMDB API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TMDBRateLimitError(TMDBError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


def _backoff(attempt: int) -> float:
    return BASE_BACKOFF * (2 ** (attempt - 1))


def _is_transient(error: TMDBError) -> bool:
    return error.status_code is not None and (error.status_code == 429 or error.status_code >= 500)


class TMDBClient:
    """Async TMDB API client.

    Rate-limit, server-error and timeout responses are retried with
    exponential backoff; other client errors raise immediately.
    """

    def __init__(
        self,
        bearer_token: str,
        language: str = "en-US",
        region: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ):
        """Initialize TMDB client.

        Args:
            bearer_token: TMDB API bearer token (v4 auth)
            language: Language for results (e.g., "en-US")
            region: Region for results (e.g., "US")
            timeout: Request timeout in seconds
            max_retries: Attempts per request
        """
        self.bearer_token = bearer_token
        self.language = language
        self.region = region
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=TMDB_BASE_URL,
                headers={
                    "Authorization": f"Bearer {self.bearer_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _error_for(response: httpx.Response) -> TMDBError:
        """Translate a non-200 response into the matching exception."""
        status = response.status_code
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            return TMDBRateLimitError(retry_after=int(retry_after) if retry_after else None)
        if status >= 500:
            return TMDBError(f"Server error: {status}", status_code=status)
        payload = response.json() if response.content else {}
        return TMDBError(payload.get("status_message", f"HTTP {status}"), status_code=status)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request with backoff.

        Args:
            method: HTTP method
            path: API path (e.g., "/search/movie")
            params: Query parameters; language and region are filled in

        Returns:
            Parsed JSON response

        Raises:
            TMDBError: On a client error, or once attempts run out
        """
        client = await self._get_client()

        query = {"language": self.language, **(params or {})}
        if self.region:
            query.setdefault("region", self.region)

        error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.request(method, path, params=query)
            except httpx.RequestError as e:
                error, delay = e, _backoff(attempt)
            else:
                if response.status_code == 200:
                    return response.json()
                error = self._error_for(response)
                if not _is_transient(error):
                    raise error
                retry_after = getattr(error, "retry_after", None)
                delay = _backoff(attempt) if retry_after is None else retry_after

            logger.warning(
                f"TMDB {method} {path} failed ({error}), "
                f"attempt {attempt}/{self.max_retries}"
            )
            if attempt < self.max_retries:
                await asyncio.sleep(delay)

        if isinstance(error, TMDBError):
            raise error
        raise TMDBError(f"{path} failed after {self.max_retries} attempts: {error}")

    async def search(self, media_type: str, query: str, page: int = 1) -> dict[str, Any]:
        """Search movies or TV shows by title.

        Args:
            media_type: "movie" or "tv"
            query: Title to look up
            page: Page number (1-based)

        Returns:
            TMDB response with results array
        """
        return await self._request(
            "GET",
            f"/search/{media_type}",
            params={"query": query, "page": page, "include_adult": "false"},
        )

    async def get_details(self, media_type: str, tmdb_id: int) -> dict[str, Any]:
        """Get movie or TV details with credits and keywords appended."""
        return await self._request(
            "GET",
            f"/{media_type}/{tmdb_id}",
            params={"append_to_response": "credits,keywords"},
        )

    async def get_similar(self, media_type: str, tmdb_id: int, page: int = 1) -> dict[str, Any]:
        """Get titles TMDB considers similar to the given one."""
        return await self._request("GET", f"/{media_type}/{tmdb_id}/similar", params={"page": page})

    async def get_watch_providers(self, media_type: str, tmdb_id: int) -> dict[str, Any]:
        """Get streaming/rental providers keyed by region."""
        return await self._request("GET", f"/{media_type}/{tmdb_id}/watch/providers")
