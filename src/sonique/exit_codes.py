"""Process exit codes, one per :class:`~sonique.exceptions.SoniqueError` family.

Scripts can inspect the exit code to tell a rejected session from
a throttled or failing API without parsing stderr.

Example::

    $ sonique saved
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the session was rejected, log in again
"""

EXIT_GENERIC_FAILURE = 1
"""Anything not covered below, including crashes."""

EXIT_INVALID_USAGE = 2
"""Bad command-line arguments or config values."""

EXIT_AUTH_FAILURE = 3
"""Login failed, or the API rejected the stored access token."""

EXIT_API_ERROR = 5
"""The API answered with a non-success status, or rate limiting never cleared."""

EXIT_CONNECTION_ERROR = 6
"""No HTTP response was received."""
