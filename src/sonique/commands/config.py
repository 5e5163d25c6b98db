"""Config commands -- view and modify profile settings.

Provides the ``sonique config`` sub-command group. Settings live in the
active profile (:class:`~sonique.models.Profile`): the OAuth2 client
registration under ``provider.*`` and the request behaviour under
``request.*``. ``config use`` switches the default profile stored in the
global config.
"""

from __future__ import annotations

from typing import Any

import typer

from sonique.commands import active_profile
from sonique.exit_codes import EXIT_INVALID_USAGE
from sonique.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _coerce(current: Any, value: str, key: str) -> Any:
    """Convert *value* to the type of the field's *current* value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, (int, float)):
        try:
            return type(current)(value)
        except ValueError:
            error(f"Expected {type(current).__name__} for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    if isinstance(current, list):
        return value.replace(",", " ").split()
    return value


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the active profile.

    Example::

        sonique config show --json
    """
    from sonique.config import get_config_dir

    profile = active_profile(ctx)
    info(f"Config directory: {get_config_dir()}")
    format_response(profile.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(
        help="Setting in dot notation, e.g. 'provider.client_id'."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a profile value and save the profile.

    Lists (``provider.scopes``) accept space- or comma-separated values.
    The result is validated before it is written.

    Example::

        sonique config set provider.client_id 0123456789abcdef
        sonique config set provider.scopes "user-library-read user-library-modify"
        sonique config set request.max_rate_limit_retries 3
    """
    from sonique.config import load_profile, profile_exists, save_profile
    from sonique.models import Profile

    # Edit the stored profile, not the one with SONIQUE_* overrides applied.
    name = active_profile(ctx).name
    profile = load_profile(name) if profile_exists(name) else Profile(name=name)
    data = profile.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or final_key == "name":
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    target[final_key] = _coerce(target[final_key], value, key)

    try:
        updated = Profile.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_profile(updated)
    success(f'Set {key} = {target[final_key]} in profile "{updated.name}"')


@config_app.command("use")
def config_use(
    profile_name: str = typer.Argument(help="Profile to use by default."),
) -> None:
    """Make *profile_name* the default profile."""
    from sonique.config import load_global_config, save_global_config

    config = load_global_config()
    config.default_profile = profile_name
    save_global_config(config)
    success(f'Default profile is now "{profile_name}".')
