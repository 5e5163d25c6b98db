"""Authentication and session management for sonique.

The main entry points are:

- :func:`create_pair` / :func:`derive_challenge` -- PKCE secrets.
- :class:`SessionStore` -- the persisted session of one profile, over a
  :class:`FileStorage` or :class:`MemoryStorage` backend.
- :class:`AuthorizationFlow` -- login redirect, callback exchange, refresh,
  and logout.
- :class:`CallbackReceiver` / :func:`wait_for_callback` -- loopback
  receiver used by the CLI.

Typical usage::

    from sonique.auth import AuthorizationFlow, BrowserNavigator, FileStorage, SessionStore

    store = SessionStore(FileStorage.for_profile(profile.name))
    flow = AuthorizationFlow(profile.provider, store, BrowserNavigator())
    flow.start_login()
"""

from sonique.auth.callback import CallbackReceiver, wait_for_callback
from sonique.auth.flow import AuthorizationFlow, CallbackOutcome, CallbackResult, FlowState
from sonique.auth.navigator import BrowserNavigator, Navigator, NullNavigator
from sonique.auth.pkce import create_pair, derive_challenge, generate_verifier
from sonique.auth.session import SessionStore
from sonique.auth.storage import FileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "AuthorizationFlow",
    "BrowserNavigator",
    "CallbackOutcome",
    "CallbackReceiver",
    "CallbackResult",
    "FileStorage",
    "FlowState",
    "KeyValueStorage",
    "MemoryStorage",
    "Navigator",
    "NullNavigator",
    "SessionStore",
    "create_pair",
    "derive_challenge",
    "generate_verifier",
    "wait_for_callback",
]
