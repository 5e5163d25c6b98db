"""Session store -- the single owner of a profile's authenticated state.

A :class:`SessionStore` wraps a :class:`~sonique.auth.storage.KeyValueStorage`
and maps the session onto a fixed set of well-known keys:

=====================  ===============================================
Key                    Meaning
=====================  ===============================================
``sp_access_token``    Bearer credential sent on every API call
``sp_refresh_token``   Credential for the ``refresh_token`` grant
``sp_expires_at``      ISO-8601 UTC expiry of the access token
``sp_scope``           Space-separated scopes granted by the user
``sp_pkce_verifier``   Verifier of the one pending login attempt
=====================  ===============================================

The store is passed explicitly to
:class:`~sonique.auth.flow.AuthorizationFlow` (the only writer) and to
:class:`~sonique.client.async_client.AsyncApiClient` (a reader that clears
the session when the API rejects the token).

A session is either absent or has a non-empty access token: a stored
refresh token or expiry without an access token is reported as no session.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import ValidationError

from sonique.auth.storage import KeyValueStorage
from sonique.models import Session

ACCESS_TOKEN_KEY = "sp_access_token"
REFRESH_TOKEN_KEY = "sp_refresh_token"
EXPIRES_AT_KEY = "sp_expires_at"
SCOPE_KEY = "sp_scope"
VERIFIER_KEY = "sp_pkce_verifier"

SESSION_KEYS = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    EXPIRES_AT_KEY,
    SCOPE_KEY,
    VERIFIER_KEY,
)


def _expiry(expires_in: Any, now: datetime) -> Optional[datetime]:
    """Absolute expiry for *expires_in* seconds, or ``None`` if it is unusable."""
    if expires_in is None:
        return None
    try:
        return now + timedelta(seconds=float(expires_in))
    except (TypeError, ValueError, OverflowError):
        return None


class SessionStore:
    """Read, write, and clear the session of one profile.

    Args:
        storage: Backend holding the session keys.

    Example::

        store = SessionStore(MemoryStorage())
        store.set_access_token("tok123")
        assert store.get_access_token() == "tok123"
        store.clear()
        assert store.get_access_token() is None
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    # ------------------------------------------------------------------ #
    # Access token
    # ------------------------------------------------------------------ #

    def get_access_token(self) -> Optional[str]:
        """Return the access token, or ``None`` when there is no session."""
        session = self.load()
        return session.access_token if session is not None else None

    def set_access_token(self, token: str) -> None:
        """Store *token* as the access token.

        Raises:
            ValueError: If *token* is empty.
        """
        if not token:
            raise ValueError("access token must be a non-empty string")
        self._storage.set(ACCESS_TOKEN_KEY, token)

    def is_authenticated(self) -> bool:
        """Return ``True`` when a usable access token is stored."""
        return self.get_access_token() is not None

    # ------------------------------------------------------------------ #
    # Whole session
    # ------------------------------------------------------------------ #

    def load(self) -> Optional[Session]:
        """Return the stored :class:`~sonique.models.Session`.

        Returns:
            The session, or ``None`` if no access token is stored or the
            stored values do not form a valid session.
        """
        data = self._storage.read_all()
        token = data.get(ACCESS_TOKEN_KEY)
        if not token:
            return None
        try:
            return Session(
                access_token=token,
                refresh_token=data.get(REFRESH_TOKEN_KEY) or None,
                expires_at=data.get(EXPIRES_AT_KEY) or None,
                scope=data.get(SCOPE_KEY) or None,
            )
        except ValidationError:
            return None

    def save_token_response(
        self,
        token_data: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Session:
        """Persist a token endpoint response as the current session.

        ``expires_in`` (seconds) is converted to an absolute UTC expiry; a
        value that is not a number or is out of range stores no expiry.
        When the response carries no ``refresh_token`` the previously stored
        one is kept, which is how providers answer a refresh grant.

        Args:
            token_data: Parsed JSON body of the token endpoint.
            now: Reference time for the expiry (defaults to the current time).

        Returns:
            The session that was stored.

        Raises:
            ValueError: If ``access_token`` is missing or empty.
        """
        access_token = token_data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response has no access_token")

        values: dict[str, str] = {ACCESS_TOKEN_KEY: access_token}
        remove: list[str] = []

        refresh_token = token_data.get("refresh_token")
        if isinstance(refresh_token, str) and refresh_token:
            values[REFRESH_TOKEN_KEY] = refresh_token

        expires_at = _expiry(token_data.get("expires_in"), now or datetime.now(timezone.utc))
        if expires_at is not None:
            values[EXPIRES_AT_KEY] = expires_at.isoformat()
        else:
            remove.append(EXPIRES_AT_KEY)

        scope = token_data.get("scope")
        if isinstance(scope, str) and scope:
            values[SCOPE_KEY] = scope

        self._storage.update(values, remove=remove)
        session = self.load()
        assert session is not None  # the access token was just written
        return session

    def clear(self) -> None:
        """Remove every session key, including a pending verifier.

        All keys go in a single storage write. Calling this with no session
        stored is a no-op.
        """
        self._storage.update(remove=SESSION_KEYS)

    # ------------------------------------------------------------------ #
    # Pending authorization attempt
    # ------------------------------------------------------------------ #

    def get_pending_verifier(self) -> Optional[str]:
        return self._storage.get(VERIFIER_KEY) or None

    def set_pending_verifier(self, verifier: str) -> None:
        """Record *verifier* as the one pending login, replacing any older one."""
        self._storage.set(VERIFIER_KEY, verifier)

    def pop_pending_verifier(self) -> Optional[str]:
        """Return and remove the pending verifier."""
        verifier = self.get_pending_verifier()
        if verifier is not None:
            self._storage.delete(VERIFIER_KEY)
        return verifier
