"""Canonical Pydantic models shared across all sonique modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ProviderConfig`, :class:`RequestConfig`, :class:`GlobalConfig`,
    and :class:`Profile`.

**Session models** -- the authenticated state owned by
:class:`~sonique.auth.session.SessionStore`:
    :class:`Session` and :class:`PkcePair`.

**API response models** -- the minimal typing of the music service payloads
returned by :class:`~sonique.client.music.MusicApi`:
    :class:`Image`, :class:`Artist`, :class:`Album`, :class:`Track`, and the
    page/envelope models built on them.

Response models use ``extra="allow"`` so that fields the service adds later
are preserved in ``model_extra`` instead of being rejected.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


# --- Configuration ---


class ProviderConfig(BaseModel):
    """OAuth2 client registration and endpoints for the music service.

    ``client_id`` is the public identifier issued by the provider; PKCE
    replaces the client secret, so none is stored.

    Example::

        ProviderConfig(
            client_id="abc123",
            redirect_uri="http://127.0.0.1:8888/callback",
            scopes=["user-library-read", "user-library-modify"],
        )
    """

    client_id: str = Field(default="", description="OAuth2 client identifier")
    redirect_uri: str = Field(
        default="http://127.0.0.1:8888/callback",
        description="Redirect target registered with the provider",
    )
    scopes: list[str] = Field(
        default_factory=lambda: ["user-library-read"],
        description="Scopes requested at login",
    )
    authorize_url: str = SPOTIFY_AUTHORIZE_URL
    token_url: str = SPOTIFY_TOKEN_URL
    api_base_url: str = SPOTIFY_API_BASE_URL


class RequestConfig(BaseModel):
    """HTTP settings applied to every API call in a profile."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_rate_limit_retries: int = Field(
        default=5, ge=0, description="Retries allowed after a 429 before giving up"
    )
    default_retry_after: float = Field(
        default=2.0, gt=0, description="Wait used when a 429 has no usable Retry-After"
    )
    backoff_ceiling: float = Field(
        default=60.0, gt=0, description="Upper bound for a single rate-limit wait"
    )
    callback_timeout: float = Field(
        default=120.0, gt=0, description="Seconds to wait for the login redirect"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/sonique/config.json``.

    Loaded and saved by :func:`~sonique.config.load_global_config` and
    :func:`~sonique.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or
    CLI flags. See :func:`~sonique.config.resolve_config` for the full
    precedence chain.
    """

    default_profile: str = "default"


class Profile(BaseModel):
    """Per-account profile stored as JSON under the ``profiles/`` config directory.

    Each profile owns one session file, so several accounts (or several
    client registrations) can be logged in side by side.

    See Also:
        :func:`~sonique.config.load_profile`: Deserialise a profile by name.
        :func:`~sonique.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Session ---


class PkcePair(BaseModel):
    """A PKCE ``code_verifier`` and its S256 ``code_challenge``."""

    model_config = ConfigDict(frozen=True)

    verifier: str
    challenge: str


class Session(BaseModel):
    """The authenticated state of one profile.

    A session only exists with a non-empty access token; the store treats
    anything else as no session at all.

    Attributes:
        access_token: Opaque bearer credential sent on every API call.
        refresh_token: Credential for the ``refresh_token`` grant, if the
            provider issued one.
        expires_at: UTC expiry of ``access_token``. ``None`` when unknown.
        scope: Space-separated scopes the user granted.
    """

    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` if :attr:`expires_at` is known and has passed."""
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return current >= expires


# --- API responses ---


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Image(_ApiModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class Followers(_ApiModel):
    total: int = 0


class ArtistRef(_ApiModel):
    """The abbreviated artist object embedded in albums and tracks."""

    id: Optional[str] = None
    name: str


class Artist(_ApiModel):
    id: str
    name: str
    images: list[Image] = Field(default_factory=list)
    followers: Optional[Followers] = None
    genres: list[str] = Field(default_factory=list)
    popularity: Optional[int] = None


class Album(_ApiModel):
    id: str
    name: str
    images: list[Image] = Field(default_factory=list)
    release_date: Optional[str] = None
    artists: list[ArtistRef] = Field(default_factory=list)


class Track(_ApiModel):
    id: str
    name: str
    duration_ms: int = 0


class ArtistPage(_ApiModel):
    """One page of artists, as found under ``artists`` in a search result."""

    items: list[Artist] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None


class SearchArtistsResponse(_ApiModel):
    artists: ArtistPage


class TopTracksResponse(_ApiModel):
    tracks: list[Track] = Field(default_factory=list)


class ArtistAlbumsResponse(_ApiModel):
    items: list[Album] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    next: Optional[str] = None


class SavedAlbum(_ApiModel):
    added_at: str
    album: Album


class SavedAlbumsResponse(_ApiModel):
    items: list[SavedAlbum] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0
    next: Optional[str] = None
