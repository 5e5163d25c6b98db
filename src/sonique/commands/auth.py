"""Auth commands -- log in and manage the stored session.

Provides the ``sonique auth`` sub-command group. ``login`` runs the whole
PKCE flow: it opens the authorization page in the browser, waits for the
redirect on the loopback ``redirect_uri``, and exchanges the code. When
the browser runs on another machine, ``login --no-wait`` prints the URL
and ``callback`` finishes the login from the pasted redirect URL.

Typical workflow::

    sonique auth login      # browser opens, session is stored
    sonique auth status     # show expiry and scopes
    sonique auth logout     # forget the session
"""

from __future__ import annotations

import typer

from sonique.auth.callback import CallbackReceiver
from sonique.auth.flow import AuthorizationFlow, CallbackResult
from sonique.auth.navigator import BrowserNavigator, NullNavigator
from sonique.commands import active_profile, open_store, run
from sonique.exit_codes import EXIT_AUTH_FAILURE
from sonique.output import error, format_response, get_output, info, success, suggest, warning


auth_app = typer.Typer(no_args_is_help=True)


def _report(result: CallbackResult, profile_name: str) -> None:
    if result.ok:
        success(f'Logged in (profile "{profile_name}").')
        return
    error(f"Login was not completed: {result.reason}")
    suggest("Start again: sonique auth login")
    raise typer.Exit(code=EXIT_AUTH_FAILURE)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL instead of opening it."
    ),
    no_wait: bool = typer.Option(
        False, "--no-wait", help="Do not listen for the redirect; finish with 'auth callback'."
    ),
) -> None:
    """Log in with the OAuth2 Authorization Code flow and PKCE.

    A fresh verifier replaces any unfinished login. Unless ``--no-wait``
    is given, the command listens on the profile's ``redirect_uri`` until
    the provider redirects back or ``request.callback_timeout`` passes.

    Example::

        sonique auth login
        sonique --profile work auth login --no-browser
    """
    profile = active_profile(ctx)
    store = open_store(profile)
    navigator = NullNavigator() if no_browser else BrowserNavigator()
    flow = AuthorizationFlow(
        profile.provider, store, navigator, timeout=profile.request.timeout
    )

    if no_wait:
        info("Open this URL to authorize sonique:")
        get_output().print_data(flow.start_login())
        suggest("Then run: sonique auth callback '<redirect URL>'")
        return

    # The port is bound before the browser leaves for the provider.
    with CallbackReceiver(profile.provider.redirect_uri) as receiver:
        url = flow.start_login()
        if no_browser:
            info("Open this URL to authorize sonique:")
            get_output().print_data(url)
        else:
            info("Opening the authorization page in your browser...")
        info(f"Waiting for the redirect on {profile.provider.redirect_uri}")
        params = receiver.wait(timeout=profile.request.callback_timeout)
    _report(run(flow.handle_callback(params)), profile.name)


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    redirect_url: str = typer.Argument(help="The full URL the browser was redirected to."),
) -> None:
    """Finish a login started with ``auth login --no-wait``.

    Example::

        sonique auth callback 'http://127.0.0.1:8888/callback?code=AQB...'
    """
    profile = active_profile(ctx)
    flow = AuthorizationFlow(
        profile.provider, open_store(profile), timeout=profile.request.timeout
    )
    _report(run(flow.handle_callback(redirect_url)), profile.name)


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show whether the active profile has a session.

    Exits with the auth failure code when there is none, so scripts can
    use it as a guard.
    """
    profile = active_profile(ctx)
    session = open_store(profile).load()
    if session is None:
        info(f'Profile "{profile.name}" is not logged in.')
        suggest("Log in: sonique auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    format_response(
        {
            "profile": profile.name,
            "expires_at": session.expires_at.isoformat() if session.expires_at else None,
            "expired": session.is_expired(),
            "scope": session.scope,
            "refreshable": session.refresh_token is not None,
        }
    )
    if session.is_expired():
        warning("The access token has expired.")
        suggest("Renew it: sonique auth refresh" if session.refresh_token else "Log in: sonique auth login")


@auth_app.command("refresh")
def auth_refresh(ctx: typer.Context) -> None:
    """Trade the stored refresh token for a new access token."""
    profile = active_profile(ctx)
    flow = AuthorizationFlow(
        profile.provider, open_store(profile), timeout=profile.request.timeout
    )
    session = run(flow.refresh())
    expiry = session.expires_at.isoformat() if session.expires_at else "unknown"
    success(f"Session refreshed, expires at {expiry}.")


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Forget the session of the active profile. Safe to run twice."""
    profile = active_profile(ctx)
    AuthorizationFlow(profile.provider, open_store(profile)).logout()
    success(f'Logged out of profile "{profile.name}".')
