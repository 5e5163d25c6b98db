"""Asynchronous API client with bearer injection and rate-limit retry.

This module provides :class:`AsyncApiClient`, the request layer every
domain call goes through. It wraps :class:`httpx.AsyncClient` and layers
on:

- **Auth injection** -- the access token is read from the
  :class:`~sonique.auth.session.SessionStore` on every attempt and sent as
  ``Authorization: Bearer <token>`` along with a JSON ``Content-Type``.
- **Rate-limit retry** -- a 429 is retried after the server's
  ``Retry-After`` (2 s when absent or unparsable), growing exponentially
  up to ``backoff_ceiling`` and giving up with
  :class:`~sonique.exceptions.RetryExhaustedError` after
  ``max_rate_limit_retries`` retries.
- **Credential rejection** -- a 401 clears the session and raises
  :class:`~sonique.exceptions.UnauthorizedError`. Deciding where to send
  the user next is left to the caller.
- **Error mapping** -- any other non-2xx raises
  :class:`~sonique.exceptions.ApiError` with the status and body text.

Each call runs its own retry loop, so one throttled request never delays
another running on the same event loop.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable
from typing import Any, Callable, Optional

import httpx

from sonique.auth.session import SessionStore
from sonique.exceptions import (
    ApiError,
    ConnectionError_,
    RetryExhaustedError,
    UnauthorizedError,
)
from sonique.models import Profile
from sonique.output import debug

Sleep = Callable[[float], Awaitable[None]]


def parse_retry_after(value: Optional[str], default: float) -> float:
    """Return the ``Retry-After`` delay in seconds, or *default*.

    Only the delta-seconds form is understood. Missing, non-numeric,
    negative, and non-finite values all fall back to *default*.
    """
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return seconds


class AsyncApiClient:
    """Asynchronous client for the music service's resource API.

    Must be used as an async context manager so that the underlying
    connection pool is opened and closed.

    Args:
        profile: Supplies ``provider.api_base_url`` and the request settings
            (timeout, rate-limit retry cap, default delay, backoff ceiling).
        store: Session store to read the token from and to clear on 401.
        transport: Optional httpx transport (tests pass a
            :class:`httpx.MockTransport`).
        sleep: Coroutine used for rate-limit waits. Defaults to
            :func:`asyncio.sleep`.

    Example::

        async with AsyncApiClient(profile, store) as client:
            artist = await client.get("/artists/0OdUWJ0sBjDrqHygGUXeCF")
    """

    def __init__(
        self,
        profile: Profile,
        store: SessionStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._profile = profile
        self._store = store
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncApiClient:
        self._client = httpx.AsyncClient(
            base_url=self._profile.provider.api_base_url,
            timeout=self._profile.request.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, ...).
            path: URL path appended to the API base URL.
            params: Query parameters.
            json_body: JSON-serialisable request body.
            headers: Extra headers. They may replace the values of the
                ``Authorization`` and ``Content-Type`` defaults but never
                drop those headers.

        Returns:
            The parsed JSON body, the body text if it is not JSON, or
            ``None`` for an empty body.

        Raises:
            UnauthorizedError: On 401, after the session has been cleared.
            RetryExhaustedError: When still rate limited after the retry cap.
            ApiError: On any other non-2xx status.
            ConnectionError_: On network or timeout errors.
        """
        response = await self._send(method, path, params, json_body, headers)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def request_void(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Send a mutation whose success carries no useful body.

        Takes the same arguments and raises the same errors as
        :meth:`request`.
        """
        await self._send(method, path, params, json_body, headers)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> None:
        await self.request_void("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> None:
        await self.request_void("DELETE", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_headers(self, extra: Optional[dict[str, str]]) -> httpx.Headers:
        token = self._store.get_access_token() or ""
        merged = httpx.Headers({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })
        for key, value in (extra or {}).items():
            if value:
                merged[key] = value
        return merged

    def _backoff_delay(self, retry_after: float, retries: int) -> float:
        """Delay before retry number ``retries + 1``.

        The first wait is exactly what the server asked for. Later waits
        double, capped at the configured ceiling, but never drop below the
        server's ``Retry-After``.
        """
        ceiling = self._profile.request.backoff_ceiling
        return max(retry_after, min(retry_after * (2 ** retries), ceiling))

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        json_body: Optional[Any],
        headers: Optional[dict[str, str]],
    ) -> httpx.Response:
        """Run the request loop and return the first 2xx response."""
        assert self._client is not None, "Client not initialised -- use as async context manager"

        config = self._profile.request
        retries = 0

        while True:
            kwargs: dict[str, Any] = {
                "method": method,
                "url": path,
                "headers": self._build_headers(headers),
                "params": params,
            }
            if json_body is not None:
                kwargs["json"] = json_body

            try:
                response = await self._client.request(**kwargs)
            except httpx.TransportError as exc:
                raise ConnectionError_(f"{method} {path} failed: {exc}") from exc

            status = response.status_code

            if status == 401:
                debug(f"{method} {path} answered 401, clearing session")
                self._store.clear()
                raise UnauthorizedError(
                    "The access token was rejected; the session has been cleared"
                )

            if status == 429:
                retry_after = parse_retry_after(
                    response.headers.get("Retry-After"), config.default_retry_after
                )
                if retries >= config.max_rate_limit_retries:
                    raise RetryExhaustedError(attempts=retries + 1, last_delay=retry_after)
                delay = self._backoff_delay(retry_after, retries)
                debug(
                    f"Rate limited on {method} {path}, retrying in {delay:g}s "
                    f"(retry {retries + 1}/{config.max_rate_limit_retries})"
                )
                await self._sleep(delay)
                retries += 1
                continue

            if not response.is_success:
                raise ApiError(status, response.text)

            return response
