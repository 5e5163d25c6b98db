"""OAuth2 Authorization Code flow with PKCE (:rfc:`7636`).

:class:`AuthorizationFlow` drives the two legs of the login:

1. :meth:`~AuthorizationFlow.start_login` generates a fresh PKCE pair,
   records the verifier as the pending attempt, builds the authorization
   URL, and hands the user agent to the provider.
2. :meth:`~AuthorizationFlow.handle_callback` takes the query parameters
   the provider redirected back with and exchanges the code plus the
   pending verifier for tokens, which land in the
   :class:`~sonique.auth.session.SessionStore`.

The controller moves through :class:`FlowState`::

    ANONYMOUS --start_login--> AWAITING_REDIRECT --handle_callback--> AUTHENTICATED
                                        |
                                        +--token endpoint rejects--> FAILED

:meth:`~AuthorizationFlow.logout` returns to ``ANONYMOUS`` from any state.
A callback without a code or without a pending verifier changes nothing
and is reported as :attr:`CallbackOutcome.ABANDONED`.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union
from urllib.parse import urlencode, urlsplit

import httpx

from sonique.auth.callback import flatten_query
from sonique.auth.navigator import Navigator, NullNavigator
from sonique.auth.pkce import create_pair
from sonique.auth.session import SessionStore
from sonique.exceptions import AuthExchangeError, ConfigError
from sonique.models import ProviderConfig, Session
from sonique.output import debug


class FlowState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AWAITING_REDIRECT = "awaiting_redirect"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class CallbackOutcome(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class CallbackResult:
    """What :meth:`AuthorizationFlow.handle_callback` did with a redirect.

    Attributes:
        outcome: ``AUTHENTICATED`` when a session was stored, ``ABANDONED``
            when the redirect could not complete a login (user cancelled,
            stale or replayed URL, no pending attempt).
        reason: Why the attempt was abandoned. ``None`` on success.
        session: The new session on success.
    """

    outcome: CallbackOutcome
    reason: Optional[str] = None
    session: Optional[Session] = None

    @property
    def ok(self) -> bool:
        return self.outcome is CallbackOutcome.AUTHENTICATED


class AuthorizationFlow:
    """Login, callback handling, refresh, and logout for one profile.

    Args:
        provider: Client registration and endpoints.
        store: The session store this flow writes to.
        navigator: Receives the authorization URL. Defaults to a
            :class:`~sonique.auth.navigator.NullNavigator`.
        http_client: Optional client used for the token endpoint. When
            ``None`` a short-lived :class:`httpx.AsyncClient` is created
            for each exchange.
        timeout: Token endpoint timeout in seconds when no client is given.

    Example::

        flow = AuthorizationFlow(profile.provider, store, BrowserNavigator())
        flow.start_login()
        result = await flow.handle_callback(wait_for_callback(redirect_uri))
    """

    def __init__(
        self,
        provider: ProviderConfig,
        store: SessionStore,
        navigator: Optional[Navigator] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._provider = provider
        self._store = store
        self._navigator = navigator or NullNavigator()
        self._http_client = http_client
        self._timeout = timeout
        self._state = (
            FlowState.AUTHENTICATED if store.is_authenticated() else FlowState.ANONYMOUS
        )

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def navigator(self) -> Navigator:
        return self._navigator

    # ------------------------------------------------------------------ #
    # Leg one: redirect
    # ------------------------------------------------------------------ #

    def build_authorize_url(self, challenge: str) -> str:
        """Return the provider's authorization URL for *challenge*."""
        params = {
            "client_id": self._require_client_id(),
            "response_type": "code",
            "redirect_uri": self._provider.redirect_uri,
            "scope": " ".join(self._provider.scopes),
            "code_challenge_method": "S256",
            "code_challenge": challenge,
        }
        return f"{self._provider.authorize_url}?{urlencode(params)}"

    def start_login(self) -> str:
        """Begin a login attempt and hand the user agent to the provider.

        Any earlier pending verifier is overwritten; only the newest
        attempt can complete.

        Returns:
            The authorization URL the navigator was sent to.

        Raises:
            ConfigError: If the provider has no ``client_id``.
        """
        pair = create_pair()
        url = self.build_authorize_url(pair.challenge)
        self._store.set_pending_verifier(pair.verifier)
        self._state = FlowState.AWAITING_REDIRECT
        debug(f"Starting login, redirecting to {self._provider.authorize_url}")
        self._navigator.navigate(url)
        return url

    # ------------------------------------------------------------------ #
    # Leg two: callback
    # ------------------------------------------------------------------ #

    async def handle_callback(
        self, params: Union[Mapping[str, str], str]
    ) -> CallbackResult:
        """Complete a login from the provider's redirect.

        Args:
            params: The redirect's query parameters, the raw query string,
                or the full redirect URL.

        Returns:
            A :class:`CallbackResult`. An ``ABANDONED`` result leaves the
            session store and the flow state untouched.

        Raises:
            AuthExchangeError: If the token endpoint does not answer with a
                2xx carrying ``access_token``. The flow is then ``FAILED``
                and the verifier is gone; call :meth:`start_login` again.
        """
        query = self._normalise_params(params)
        code = query.get("code")
        verifier = self._store.get_pending_verifier()

        if not code:
            reason = query.get("error") or "redirect carried no authorization code"
            debug(f"Login abandoned: {reason}")
            return CallbackResult(CallbackOutcome.ABANDONED, reason=reason)
        if not verifier:
            debug("Login abandoned: no pending login attempt")
            return CallbackResult(CallbackOutcome.ABANDONED, reason="no pending login attempt")

        # The verifier is single-use whatever the exchange returns.
        self._store.pop_pending_verifier()
        form = {
            "client_id": self._require_client_id(),
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._provider.redirect_uri,
            "code_verifier": verifier,
        }
        try:
            token_data = await self._post_token(form, "Token exchange")
            session = self._store.save_token_response(token_data)
        except AuthExchangeError:
            self._state = FlowState.FAILED
            raise

        self._state = FlowState.AUTHENTICATED
        return CallbackResult(CallbackOutcome.AUTHENTICATED, session=session)

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def refresh(self) -> Session:
        """Exchange the stored refresh token for a new access token.

        Returns:
            The updated session.

        Raises:
            AuthExchangeError: If there is no refresh token or the token
                endpoint rejects it. The stored session is left as it was.
        """
        session = self._store.load()
        if session is None or not session.refresh_token:
            raise AuthExchangeError("No refresh token stored; log in again")

        form = {
            "client_id": self._require_client_id(),
            "grant_type": "refresh_token",
            "refresh_token": session.refresh_token,
        }
        token_data = await self._post_token(form, "Token refresh")
        refreshed = self._store.save_token_response(token_data)
        self._state = FlowState.AUTHENTICATED
        return refreshed

    def logout(self) -> None:
        """Clear the session and any lingering callback query. Safe to repeat."""
        self._store.clear()
        self._navigator.clear_query()
        self._state = FlowState.ANONYMOUS
        debug("Logged out")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _require_client_id(self) -> str:
        if not self._provider.client_id:
            raise ConfigError(
                "No client_id configured. Set SONIQUE_CLIENT_ID or run "
                "'sonique config set provider.client_id <id>'"
            )
        return self._provider.client_id

    def _normalise_params(self, params: Union[Mapping[str, str], str]) -> dict[str, str]:
        if not isinstance(params, str):
            return dict(params)
        if "://" in params:
            self._navigator.set_location(params)
            return flatten_query(urlsplit(params).query)
        return flatten_query(params.lstrip("?"))

    async def _post_token(self, form: dict[str, str], label: str) -> dict[str, Any]:
        """POST *form* to the token endpoint and return the parsed body."""
        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self._provider.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        self._provider.token_url,
                        data=form,
                        headers={"Accept": "application/json"},
                    )
        except httpx.HTTPError as exc:
            raise AuthExchangeError(f"{label} failed: {exc}") from exc

        debug(f"{label} answered {response.status_code}")
        if not response.is_success:
            raise AuthExchangeError(
                f"{label} failed with status {response.status_code}: {response.text}",
                status=response.status_code,
                body=response.text,
            )

        try:
            token_data = response.json()
        except ValueError as exc:
            raise AuthExchangeError(f"{label} returned a non-JSON body") from exc
        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise AuthExchangeError(f"{label} response missing 'access_token' field")
        return token_data
