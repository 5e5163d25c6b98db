"""Typed domain calls against the music service's Web API.

:class:`MusicApi` is the surface the CLI (or any other front end) uses.
Each method maps to one endpoint, goes through
:class:`~sonique.client.async_client.AsyncApiClient` (so it inherits the
token injection, rate-limit retry, and error mapping), and validates the
payload into the models from :mod:`sonique.models`.

Library mutations take several album ids at once; they are sent as one
comma-separated ``ids`` parameter, which the service caps at 20 per call.
"""

from __future__ import annotations

from collections.abc import Iterable

from sonique.client.async_client import AsyncApiClient
from sonique.models import (
    Artist,
    ArtistAlbumsResponse,
    SavedAlbumsResponse,
    SearchArtistsResponse,
    TopTracksResponse,
)

MAX_IDS_PER_CALL = 20


def join_ids(ids: Iterable[str]) -> str:
    """Return *ids* as the comma-separated list the API expects.

    Raises:
        ValueError: If no id is given or more than :data:`MAX_IDS_PER_CALL`.
    """
    cleaned = [i.strip() for i in ids if i and i.strip()]
    if not cleaned:
        raise ValueError("at least one id is required")
    if len(cleaned) > MAX_IDS_PER_CALL:
        raise ValueError(f"at most {MAX_IDS_PER_CALL} ids per call, got {len(cleaned)}")
    return ",".join(cleaned)


class MusicApi:
    """Domain calls for artists, albums, and the user's saved albums.

    Args:
        client: An open :class:`AsyncApiClient`.

    Example::

        async with AsyncApiClient(profile, store) as client:
            api = MusicApi(client)
            page = await api.search_artists("nina simone", limit=5)
    """

    def __init__(self, client: AsyncApiClient) -> None:
        self._client = client

    async def search_artists(
        self, query: str, limit: int = 20, offset: int = 0
    ) -> SearchArtistsResponse:
        data = await self._client.get(
            "/search",
            params={"q": query, "type": "artist", "limit": limit, "offset": offset},
        )
        return SearchArtistsResponse.model_validate(data)

    async def artist(self, artist_id: str) -> Artist:
        data = await self._client.get(f"/artists/{artist_id}")
        return Artist.model_validate(data)

    async def artist_top_tracks(self, artist_id: str, market: str = "US") -> TopTracksResponse:
        data = await self._client.get(
            f"/artists/{artist_id}/top-tracks", params={"market": market}
        )
        return TopTracksResponse.model_validate(data)

    async def artist_albums(
        self, artist_id: str, limit: int = 20, offset: int = 0
    ) -> ArtistAlbumsResponse:
        """Albums and singles by *artist_id*, one page at a time."""
        data = await self._client.get(
            f"/artists/{artist_id}/albums",
            params={"include_groups": "album,single", "limit": limit, "offset": offset},
        )
        return ArtistAlbumsResponse.model_validate(data)

    async def saved_albums(self, limit: int = 20, offset: int = 0) -> SavedAlbumsResponse:
        """One page of the albums in the user's library."""
        data = await self._client.get("/me/albums", params={"limit": limit, "offset": offset})
        return SavedAlbumsResponse.model_validate(data)

    async def saved_albums_contains(self, album_ids: Iterable[str]) -> list[bool]:
        """Return, for each id in order, whether it is in the user's library."""
        data = await self._client.get("/me/albums/contains", params={"ids": join_ids(album_ids)})
        return [bool(flag) for flag in data or []]

    async def save_albums(self, album_ids: Iterable[str]) -> None:
        await self._client.put("/me/albums", params={"ids": join_ids(album_ids)})

    async def remove_albums(self, album_ids: Iterable[str]) -> None:
        await self._client.delete("/me/albums", params={"ids": join_ids(album_ids)})
