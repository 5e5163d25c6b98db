"""Where sonique keeps its files, and how the active profile is chosen.

Layout on Linux and the BSDs follows the XDG base directories::

    $XDG_CONFIG_HOME/sonique/config.json          GlobalConfig
    $XDG_CONFIG_HOME/sonique/profiles/<name>.json Profile
    $XDG_DATA_HOME/sonique/credentials/<name>.json session (0600)
    $XDG_DATA_HOME/sonique/logs/crash-*.log

Other platforms use ``~/.sonique`` for configuration and ``~/.sonique/data``
for data.

The profile name is taken from ``--profile``, then ``SONIQUE_PROFILE``, then
``default_profile`` in the global config. ``SONIQUE_CLIENT_ID``,
``SONIQUE_REDIRECT_URI`` and ``SONIQUE_SCOPES`` override the stored
provider settings for the current process only.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from sonique.exceptions import ConfigError
from sonique.models import GlobalConfig, Profile

APP_DIR_NAME = "sonique"

PROFILE_ENV = "SONIQUE_PROFILE"
PROVIDER_ENV = {
    "client_id": "SONIQUE_CLIENT_ID",
    "redirect_uri": "SONIQUE_REDIRECT_URI",
    "scopes": "SONIQUE_SCOPES",
}


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _xdg_home(variable: str, *fallback: str) -> Path:
    value = os.environ.get(variable)
    return Path(value) if value else Path.home().joinpath(*fallback)


def get_config_dir() -> Path:
    """Directory for ``config.json`` and ``profiles/``. Created on demand."""
    if _is_xdg_platform():
        return _ensure(_xdg_home("XDG_CONFIG_HOME", ".config") / APP_DIR_NAME)
    return _ensure(Path.home() / f".{APP_DIR_NAME}")


def get_data_dir() -> Path:
    """Directory for sessions and crash logs. Created on demand."""
    if _is_xdg_platform():
        return _ensure(_xdg_home("XDG_DATA_HOME", ".local", "share") / APP_DIR_NAME)
    return _ensure(Path.home() / f".{APP_DIR_NAME}" / "data")


def get_profiles_dir() -> Path:
    return _ensure(get_config_dir() / "profiles")


def get_credentials_dir() -> Path:
    return _ensure(get_data_dir() / "credentials")


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* so readers never see a partial file.

    The content goes to a sibling temp file which is fsynced and then
    renamed over *path*. *mode* is set on the temp file before anything is
    written to it. On failure the temp file is removed and the error
    re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            if mode is not None:
                os.chmod(handle.name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8"))


def _dump_model(path: Path, model: GlobalConfig | Profile) -> None:
    atomic_write(path, json.dumps(model.model_dump(mode="json"), indent=2) + "\n")


# Global config


def load_global_config() -> GlobalConfig:
    """Read ``config.json``; a missing file gives the defaults.

    Raises:
        ConfigError: The file is not valid JSON or does not validate.
    """
    path = get_config_dir() / "config.json"
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(_read_json(path))
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    _dump_model(get_config_dir() / "config.json", config)


# Profiles


def _profile_file(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Names of the saved profiles, alphabetically."""
    return sorted(entry.stem for entry in get_profiles_dir().glob("*.json") if entry.is_file())


def profile_exists(name: str) -> bool:
    return _profile_file(name).is_file()


def load_profile(name: str) -> Profile:
    """Read a saved profile.

    Raises:
        ConfigError: The profile was never saved, or its file is corrupt.
    """
    path = _profile_file(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        return Profile.model_validate(_read_json(path))
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    _dump_model(_profile_file(profile.name), profile)


# Resolution


def _apply_env_overrides(profile: Profile) -> Profile:
    provider = profile.provider
    for field, variable in PROVIDER_ENV.items():
        value = os.environ.get(variable)
        if not value:
            continue
        if field == "scopes":
            # Space-separated (as the provider writes them) or comma-separated.
            provider.scopes = value.replace(",", " ").split()
        else:
            setattr(provider, field, value)
    return profile


def resolve_config(cli_profile: Optional[str] = None) -> tuple[GlobalConfig, Profile]:
    """Return the global config and the effective profile for this run.

    A profile that has never been saved resolves to a default
    :class:`~sonique.models.Profile` with that name, so the CLI works from
    environment variables alone. Environment overrides are applied to the
    returned object and never written back.
    """
    global_config = load_global_config()
    name = cli_profile or os.environ.get(PROFILE_ENV) or global_config.default_profile
    profile = load_profile(name) if profile_exists(name) else Profile(name=name)
    return global_config, _apply_env_overrides(profile)
