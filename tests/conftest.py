"""Shared test fixtures for sonique.

Provides isolated config environments, in-memory session stores, output
state management, and a CLI runner. These fixtures are discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sonique.auth.session import SessionStore
from sonique.auth.storage import MemoryStorage
from sonique.models import Profile, ProviderConfig, RequestConfig
from sonique.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and session files to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG layout, and clears all SONIQUE_* environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("sonique.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "SONIQUE_PROFILE",
        "SONIQUE_CLIENT_ID",
        "SONIQUE_REDIRECT_URI",
        "SONIQUE_SCOPES",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> SessionStore:
    """An empty session store over :class:`MemoryStorage`."""
    return SessionStore(MemoryStorage())


@pytest.fixture
def logged_in_store() -> SessionStore:
    """A session store holding a full session."""
    return SessionStore(
        MemoryStorage(
            {
                "sp_access_token": "tok123",
                "sp_refresh_token": "ref456",
                "sp_expires_at": "2030-01-01T00:00:00+00:00",
                "sp_scope": "user-library-read",
            }
        )
    )


@pytest.fixture
def sample_profile() -> Profile:
    """A profile pointing at example endpoints with fast retry settings."""
    return Profile(
        name="test",
        provider=ProviderConfig(
            client_id="client-abc",
            redirect_uri="http://127.0.0.1:8888/callback",
            scopes=["user-library-read", "user-library-modify"],
            authorize_url="https://accounts.example.com/authorize",
            token_url="https://accounts.example.com/api/token",
            api_base_url="https://api.example.com/v1",
        ),
        request=RequestConfig(timeout=5, max_rate_limit_retries=3),
    )


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
