"""Library commands -- artist lookups and the user's saved albums.

These commands are registered directly on the root app
(``sonique search``, ``sonique saved``, ...). They all require a session:
without one they exit with the auth failure code before sending anything,
and when the API rejects the stored token the session is already cleared
by the client, so the command only has to point the user back to
``sonique auth login``.

Tables are printed in Rich or plain mode; ``--json`` prints the full
payload instead.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Callable, Optional, TypeVar

import typer

from sonique.client import AsyncApiClient, MusicApi
from sonique.client.music import join_ids
from sonique.commands import active_profile, open_store, run
from sonique.exceptions import UnauthorizedError
from sonique.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_USAGE
from sonique.models import Album
from sonique.output import OutputFormat, error, get_output, success, suggest

T = TypeVar("T")


def _call(ctx: typer.Context, operation: Callable[[MusicApi], Awaitable[T]]) -> T:
    """Run *operation* against the API with the active profile's session."""
    profile = active_profile(ctx)
    store = open_store(profile)
    if not store.is_authenticated():
        error(f'Profile "{profile.name}" is not logged in.')
        suggest("Log in: sonique auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    async def _go() -> T:
        async with AsyncApiClient(profile, store) as client:
            return await operation(MusicApi(client))

    try:
        return run(_go())
    except UnauthorizedError as exc:
        error(str(exc))
        suggest("Log in again: sonique auth login")
        raise typer.Exit(code=exc.exit_code) from None


def _emit(
    payload: Any,
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    output = get_output()
    if output.format == OutputFormat.JSON:
        output.format_response(payload)
    else:
        output.print_table(headers, rows, title)


def _check_ids(album_ids: list[str]) -> list[str]:
    """Return the ids as they will be sent, or exit on a bad count."""
    try:
        return join_ids(album_ids).split(",")
    except ValueError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


def _album_row(album: Album) -> list[str]:
    artists = ", ".join(a.name for a in album.artists)
    return [album.id, album.name, artists, album.release_date or ""]


def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(help="Artist name to search for."),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=50, help="Page size."),
    offset: int = typer.Option(0, "--offset", min=0, help="Index of the first result."),
) -> None:
    """Search artists by name.

    Example::

        sonique search "nina simone" --limit 5
    """
    result = _call(ctx, lambda api: api.search_artists(query, limit=limit, offset=offset))
    page = result.artists
    rows = [
        [a.id, a.name, str(a.followers.total if a.followers else 0), ", ".join(a.genres)]
        for a in page.items
    ]
    _emit(
        result.model_dump(mode="json"),
        ["ID", "Name", "Followers", "Genres"],
        rows,
        title=f"Artists {page.offset + 1}-{page.offset + len(page.items)} of {page.total}",
    )


def artist_command(
    ctx: typer.Context,
    artist_id: str = typer.Argument(help="Artist id."),
) -> None:
    """Show one artist."""
    artist = _call(ctx, lambda api: api.artist(artist_id))
    _emit(
        artist.model_dump(mode="json"),
        ["ID", "Name", "Followers", "Popularity", "Genres"],
        [[
            artist.id,
            artist.name,
            str(artist.followers.total if artist.followers else 0),
            str(artist.popularity if artist.popularity is not None else ""),
            ", ".join(artist.genres),
        ]],
    )


def top_tracks_command(
    ctx: typer.Context,
    artist_id: str = typer.Argument(help="Artist id."),
    market: str = typer.Option("US", "--market", "-m", help="ISO 3166-1 country code."),
) -> None:
    """Show an artist's top tracks in a market."""
    result = _call(ctx, lambda api: api.artist_top_tracks(artist_id, market=market))
    rows = [
        [t.id, t.name, f"{t.duration_ms // 60000}:{t.duration_ms // 1000 % 60:02d}"]
        for t in result.tracks
    ]
    _emit(result.model_dump(mode="json"), ["ID", "Track", "Length"], rows, title="Top tracks")


def albums_command(
    ctx: typer.Context,
    artist_id: str = typer.Argument(help="Artist id."),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=50, help="Page size."),
    offset: int = typer.Option(0, "--offset", min=0, help="Index of the first album."),
) -> None:
    """List an artist's albums and singles."""
    result = _call(ctx, lambda api: api.artist_albums(artist_id, limit=limit, offset=offset))
    _emit(
        result.model_dump(mode="json"),
        ["ID", "Album", "Artists", "Released"],
        [_album_row(a) for a in result.items],
        title=f"Albums {result.offset + 1}-{result.offset + len(result.items)} of {result.total}",
    )


def saved_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=50, help="Page size."),
    offset: int = typer.Option(0, "--offset", min=0, help="Index of the first album."),
) -> None:
    """List the albums saved in your library."""
    result = _call(ctx, lambda api: api.saved_albums(limit=limit, offset=offset))
    _emit(
        result.model_dump(mode="json"),
        ["ID", "Album", "Artists", "Released", "Added"],
        [_album_row(item.album) + [item.added_at] for item in result.items],
        title="Saved albums",
    )


def contains_command(
    ctx: typer.Context,
    album_ids: list[str] = typer.Argument(help="Album ids to check."),
) -> None:
    """Check which albums are saved in your library."""
    album_ids = _check_ids(album_ids)
    flags = _call(ctx, lambda api: api.saved_albums_contains(album_ids))
    _emit(
        dict(zip(album_ids, flags)),
        ["ID", "Saved"],
        [[album_id, "yes" if flag else "no"] for album_id, flag in zip(album_ids, flags)],
    )


def save_command(
    ctx: typer.Context,
    album_ids: list[str] = typer.Argument(help="Album ids to save (up to 20)."),
) -> None:
    """Save albums to your library."""
    album_ids = _check_ids(album_ids)
    _call(ctx, lambda api: api.save_albums(album_ids))
    success(f"Saved {len(album_ids)} album(s).")


def remove_command(
    ctx: typer.Context,
    album_ids: list[str] = typer.Argument(help="Album ids to remove (up to 20)."),
) -> None:
    """Remove albums from your library."""
    album_ids = _check_ids(album_ids)
    _call(ctx, lambda api: api.remove_albums(album_ids))
    success(f"Removed {len(album_ids)} album(s).")
