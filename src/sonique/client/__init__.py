"""HTTP client module for sonique.

Classes:
    :class:`AsyncApiClient` -- resilient request layer backed by
    :class:`httpx.AsyncClient`: bearer injection, rate-limit retry, and
    typed errors.
    :class:`MusicApi` -- typed domain calls built on the client.

Example::

    from sonique.client import AsyncApiClient, MusicApi

    async with AsyncApiClient(profile, store) as client:
        albums = await MusicApi(client).saved_albums(limit=50)
"""

from sonique.client.async_client import AsyncApiClient
from sonique.client.music import MusicApi

__all__ = ["AsyncApiClient", "MusicApi"]
