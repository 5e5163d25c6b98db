"""Built-in CLI sub-commands for sonique.

This package groups the Typer modules that form the CLI's command tree:

* :mod:`~sonique.commands.auth` -- log in, complete a pasted redirect,
  refresh, inspect, and log out.
* :mod:`~sonique.commands.config` -- view and modify profile settings.
* :mod:`~sonique.commands.library` -- artist search and lookups, and the
  user's saved albums.

The helpers below are shared by all three: they resolve the active
profile from the Typer context, open its session store, and run the
async core from synchronous command callbacks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer

from sonique.auth.session import SessionStore
from sonique.auth.storage import FileStorage
from sonique.config import resolve_config
from sonique.models import Profile

T = TypeVar("T")


def active_profile(ctx: typer.Context) -> Profile:
    """Resolve the profile selected by ``--profile``, the environment, or config."""
    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    _, profile = resolve_config(cli_profile)
    return profile


def open_store(profile: Profile) -> SessionStore:
    """Return the file-backed session store of *profile*."""
    return SessionStore(FileStorage.for_profile(profile.name))


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)
