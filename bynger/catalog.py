"""
TMDB catalog client.

Supplies the Episode and Movie records a scheduling session works with:
full season/episode enumeration for a show (with fuzzy runtimes) and single
movie lookups. Title search is left to the UI layer.
"""

import asyncio
import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional

import aiohttp
from pydantic import ValidationError

from bynger.event_store import EventStore
from bynger.exceptions import CatalogError
from bynger.models import Episode
from bynger.models import Movie
from bynger.settings import get_settings

logger = logging.getLogger(__name__)


class TmdbCatalog:
    """
    The Movie Database API v3 client.

    Usable as an async context manager; a caller-supplied aiohttp session is
    used as-is and left open, otherwise the client owns its session.
    """

    def __init__(self, api_key: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        if not api_key or not api_key.strip():
            raise CatalogError("A TMDB API key is required")

        self.settings = get_settings()
        self.api_key = api_key.strip()
        # JWT (v4 bearer) vs plain key (v3 query param)
        self._is_bearer = self.api_key.startswith("eyJ")
        self._session = session
        self._owns_session = session is None
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Authenticated GET returning the decoded JSON body."""
        all_params = dict(params or {})
        headers = {}
        if self._is_bearer:
            headers["Authorization"] = f"Bearer {self.api_key}"
        else:
            all_params["api_key"] = self.api_key

        url = f"{self.settings.tmdb_base_url}{path}"
        session = await self._get_session()

        async with self._semaphore:
            try:
                async with session.get(url, params=all_params, headers=headers) as resp:
                    if resp.status != 200:
                        logger.warning(f"[TMDB] status={resp.status} path={path}")
                        raise CatalogError(f"TMDB returned {resp.status} for {path}", status=resp.status)
                    data = await resp.json()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise CatalogError(f"TMDB request for {path} failed: {exc}") from exc

        if not isinstance(data, dict):
            raise CatalogError(f"TMDB returned an unexpected payload for {path}")

        logger.debug(f"[TMDB] status=200 path={path}")
        return data

    async def get_show(self, show_id: int) -> Dict[str, Any]:
        """Show details, including the season list and episode_run_time."""
        return await self._get_json(f"/tv/{show_id}")

    async def get_season(self, show_id: int, season_number: int) -> Dict[str, Any]:
        """A single season with its episode list."""
        return await self._get_json(f"/tv/{show_id}/season/{season_number}")

    async def get_episodes(
        self,
        show_id: int,
        seasons: Optional[Iterable[int]] = None,
    ) -> List[Episode]:
        """
        Enumerate a show's episodes in season/episode order.

        Args:
            show_id: TMDB show id
            seasons: Restrict to these season numbers (default: every season)

        Returns:
            Episodes with runtimes resolved against the show-level runtimes
        """
        show = await self.get_show(show_id)
        show_name = show.get("name") or show.get("original_name") or str(show_id)
        show_runtimes = show.get("episode_run_time") or []

        season_numbers = sorted(
            s["season_number"] for s in show.get("seasons", []) if "season_number" in s
        )
        if seasons is not None:
            wanted = set(seasons)
            season_numbers = [n for n in season_numbers if n in wanted]

        payloads = await asyncio.gather(
            *(self.get_season(show_id, number) for number in season_numbers)
        )

        episodes: List[Episode] = []
        for payload in payloads:
            for raw in payload.get("episodes", []):
                try:
                    episodes.append(
                        Episode.from_catalog(
                            show_id,
                            show_name,
                            raw,
                            show_runtimes,
                            self.settings.default_runtime,
                        )
                    )
                except (KeyError, ValidationError) as exc:
                    raise CatalogError(f"Malformed episode in show {show_id}: {exc}") from exc

        logger.info(
            f"Fetched {len(episodes)} episodes across {len(season_numbers)} seasons of {show_name}"
        )
        return episodes

    async def get_movie(self, movie_id: int) -> Movie:
        """Movie details as a schedulable Movie."""
        data = await self._get_json(f"/movie/{movie_id}")
        try:
            return Movie.from_catalog(data, self.settings.default_runtime)
        except (KeyError, ValidationError) as exc:
            raise CatalogError(f"Malformed movie {movie_id}: {exc}") from exc

    def poster_url(self, path: Optional[str]) -> Optional[str]:
        """Absolute image URL for a poster/still path."""
        if not path:
            return None
        return f"{self.settings.tmdb_image_base}/{path.lstrip('/')}"

    async def __aenter__(self) -> "TmdbCatalog":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def resolve_api_key(store: EventStore) -> str:
    """API key from settings, else the one saved in the event store."""
    api_key = get_settings().tmdb_api_key or await store.get_api_key()
    if not api_key:
        raise CatalogError("No TMDB API key configured; set BYNGER_TMDB_API_KEY or save one")
    return api_key
