"""sonique -- PKCE login and a resilient API client for a music service.

This package authenticates an end user against a Spotify-style music
service using the OAuth2 Authorization Code grant with PKCE, keeps the
resulting session on disk per profile, and issues bearer-authenticated
REST calls that absorb rate limiting and report rejected credentials as
a typed failure.

Typical workflow::

    sonique auth login          # open the browser, exchange the code
    sonique search "radiohead"  # authenticated API call

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models for configuration, sessions, and API payloads.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    auth: PKCE generation, session storage, and the authorization flow.
    client: The resilient request client and the typed domain surface.
"""

__version__ = "0.1.0"
