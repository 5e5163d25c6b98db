"""Exception hierarchy for sonique.

Every error sonique reports on purpose is a :class:`SoniqueError`. Its
``exit_code`` is what :func:`sonique.app.main` passes to ``sys.exit``;
anything that is not a ``SoniqueError`` is treated as a crash.

Subclass hierarchy::

    SoniqueError (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- AuthExchangeError     (exit 3)
    +-- UnauthorizedError     (exit 3)
    +-- ApiError              (exit 5)
    +-- RetryExhaustedError   (exit 5)
    +-- ConnectionError_      (exit 6)
    +-- ConfigError           (exit 1)

Rate limiting is not part of the hierarchy: a 429 is absorbed by
:class:`~sonique.client.async_client.AsyncApiClient` and only surfaces as
:class:`RetryExhaustedError` once the retry cap is reached.
"""

from __future__ import annotations

from sonique.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class SoniqueError(Exception):
    """An error with a message for the user and a process exit code.

    Args:
        message: Shown on stderr as ``Error: <message>``.
        exit_code: Replaces the subclass default for this instance.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SoniqueError):
    """Bad arguments, such as too many ids or an unknown config key."""

    exit_code = EXIT_INVALID_USAGE


class AuthExchangeError(SoniqueError):
    """Raised when the token endpoint rejects a code/verifier or refresh grant.

    The attempt cannot be resumed: the pending verifier is single-use, so
    the caller has to start a new login.

    Args:
        message: Human-readable error description.
        status: HTTP status returned by the token endpoint, if any.
        body: Raw response body text, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


TokenExchangeError = AuthExchangeError


class UnauthorizedError(SoniqueError):
    """Raised when the resource API rejects the access token (HTTP 401).

    By the time this is raised the session has already been cleared.
    """

    exit_code = EXIT_AUTH_FAILURE


class ApiError(SoniqueError):
    """Raised for any non-success API response other than 401 and 429.

    Args:
        status: The HTTP status code.
        body: The response body text.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, status: int, body: str = ""):
        message = f"API {status}: {body}" if body else f"API {status}"
        super().__init__(message)
        self.status = status
        self.body = body


class RetryExhaustedError(SoniqueError):
    """Raised when an API call is still rate limited after the retry cap.

    Args:
        attempts: Number of requests that were sent.
        last_delay: The last server-requested delay, in seconds.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, attempts: int, last_delay: float):
        super().__init__(
            f"Still rate limited after {attempts} attempts "
            f"(server asked to wait {last_delay:g}s)"
        )
        self.attempts = attempts
        self.last_delay = last_delay


class ConnectionError_(SoniqueError):
    """The request never got an HTTP answer (DNS, refused connection, timeout).

    The trailing underscore keeps the builtin ``ConnectionError`` usable.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(SoniqueError):
    """Raised for configuration problems (missing profiles, invalid JSON, missing client id)."""

    exit_code = EXIT_GENERIC_FAILURE
