"""CLI tests for the auth, config, and library commands."""

from __future__ import annotations

import json
import socket
import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

from sonique import __version__
from sonique.app import _write_crash_log, app, main
from sonique.auth.callback import flatten_query
from sonique.auth.flow import AuthorizationFlow
from sonique.auth.session import SessionStore
from sonique.auth.storage import FileStorage
from sonique.client.async_client import AsyncApiClient
from sonique.config import load_global_config, load_profile
from sonique.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE


ALBUM = {"id": "alb1", "name": "Pastel Blues", "artists": [{"name": "Nina Simone"}]}


def _log_in(profile: str = "default") -> SessionStore:
    store = SessionStore(FileStorage.for_profile(profile))
    store.save_token_response(
        {"access_token": "tok123", "refresh_token": "ref456", "expires_in": 3600, "scope": "s"}
    )
    return store


def _mock_api(
    monkeypatch: pytest.MonkeyPatch,
    handler: Callable[[httpx.Request], httpx.Response],
) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def _factory(profile, store):
        return AsyncApiClient(profile, store, transport=httpx.MockTransport(_record))

    monkeypatch.setattr("sonique.commands.library.AsyncApiClient", _factory)
    return seen


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _mock_token_endpoint(
    monkeypatch: pytest.MonkeyPatch, token: dict[str, object]
) -> list[dict[str, str]]:
    forms: list[dict[str, str]] = []

    def _answer(request: httpx.Request) -> httpx.Response:
        forms.append(flatten_query(request.content.decode()))
        return httpx.Response(200, json=token)

    def _factory(provider, store, navigator=None, timeout=30.0):
        client = httpx.AsyncClient(transport=httpx.MockTransport(_answer))
        return AuthorizationFlow(provider, store, navigator, http_client=client, timeout=timeout)

    monkeypatch.setattr("sonique.commands.auth.AuthorizationFlow", _factory)
    return forms


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"sonique {__version__}" in result.output

    def test_main_maps_errors_to_exit_codes(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("sonique.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(sys, "argv", ["sonique", "--no-color", "auth", "refresh"])
        SessionStore(FileStorage.for_profile("default")).set_access_token("tok")

        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_AUTH_FAILURE

    def test_crash_log_written(self, isolated_config: Path) -> None:
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as exc:
            path = Path(_write_crash_log(exc))
        assert path.parent == isolated_config / "data" / "sonique" / "logs"
        assert "kaboom" in path.read_text()


class TestAuthCommands:
    def test_status_without_session(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "auth", "status"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "not logged in" in result.output

    def test_status_with_session(self, cli_runner, isolated_config: Path) -> None:
        _log_in()
        result = cli_runner.invoke(app, ["--json", "auth", "status"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["profile"] == "default"
        assert data["refreshable"] is True
        assert data["expired"] is False
        assert data["scope"] == "s"

    def test_status_warns_when_expired(self, cli_runner, isolated_config: Path) -> None:
        store = _log_in()
        store.storage.set("sp_expires_at", "2020-01-01T00:00:00+00:00")
        result = cli_runner.invoke(app, ["--plain", "--no-color", "auth", "status"])
        assert result.exit_code == 0
        assert "expired\tTrue" in result.output
        assert "Warning: The access token has expired." in result.output
        assert "sonique auth refresh" in result.output

    def test_login_no_wait_prints_url(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SONIQUE_CLIENT_ID", "client-abc")
        result = cli_runner.invoke(app, ["--no-color", "auth", "login", "--no-browser", "--no-wait"])
        assert result.exit_code == 0
        assert "https://accounts.spotify.com/authorize?client_id=client-abc" in result.output
        assert SessionStore(FileStorage.for_profile("default")).get_pending_verifier()

    def test_login_waits_for_redirect(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        redirect_uri = f"http://127.0.0.1:{_free_port()}/callback"
        monkeypatch.setenv("SONIQUE_CLIENT_ID", "client-abc")
        monkeypatch.setenv("SONIQUE_REDIRECT_URI", redirect_uri)
        cli_runner.invoke(app, ["config", "set", "request.callback_timeout", "10"])

        opened: list[str] = []

        def _browser(url: str) -> None:
            opened.append(url)
            # The provider redirects straight back, before the CLI starts waiting.
            httpx.get(f"{redirect_uri}?code=auth-code", timeout=5.0)

        monkeypatch.setattr("sonique.auth.navigator.webbrowser.open", _browser)
        token_forms = _mock_token_endpoint(monkeypatch, {"access_token": "fresh", "expires_in": 3600})

        result = cli_runner.invoke(app, ["--no-color", "auth", "login"])

        assert result.exit_code == 0, result.output
        assert "Logged in" in result.output
        assert opened[0].startswith("https://accounts.spotify.com/authorize?client_id=client-abc")
        assert token_forms[0]["code"] == "auth-code"
        assert token_forms[0]["redirect_uri"] == redirect_uri
        store = SessionStore(FileStorage.for_profile("default"))
        assert store.get_access_token() == "fresh"
        assert store.get_pending_verifier() is None

    def test_login_on_busy_port_opens_nothing(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        holder = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        holder.bind(("127.0.0.1", 0))
        holder.listen(1)
        port = holder.getsockname()[1]
        monkeypatch.setenv("SONIQUE_CLIENT_ID", "client-abc")
        monkeypatch.setenv("SONIQUE_REDIRECT_URI", f"http://127.0.0.1:{port}/callback")
        opened: list[str] = []
        monkeypatch.setattr("sonique.auth.navigator.webbrowser.open", opened.append)
        monkeypatch.setattr("sonique.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(sys, "argv", ["sonique", "--no-color", "auth", "login"])

        try:
            with pytest.raises(SystemExit) as exc_info:
                main()
        finally:
            holder.close()

        assert exc_info.value.code == EXIT_GENERIC_FAILURE
        assert opened == []
        assert SessionStore(FileStorage.for_profile("default")).get_pending_verifier() is None
        assert not (isolated_config / "data" / "sonique" / "logs").exists()

    def test_callback_without_pending_login(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(
            app, ["--no-color", "auth", "callback", "http://127.0.0.1:8888/callback?code=abc"]
        )
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "not completed" in result.output

    def test_callback_with_error(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SONIQUE_CLIENT_ID", "client-abc")
        cli_runner.invoke(app, ["auth", "login", "--no-browser", "--no-wait"])
        result = cli_runner.invoke(
            app, ["--no-color", "auth", "callback", "http://127.0.0.1:8888/callback?error=access_denied"]
        )
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "access_denied" in result.output

    def test_logout_twice(self, cli_runner, isolated_config: Path) -> None:
        store = _log_in()
        for _ in range(2):
            result = cli_runner.invoke(app, ["--no-color", "auth", "logout"])
            assert result.exit_code == 0
        assert store.get_access_token() is None
        assert not FileStorage.for_profile("default").path.exists()

    def test_profiles_are_independent(self, cli_runner, isolated_config: Path) -> None:
        _log_in("work")
        assert cli_runner.invoke(app, ["auth", "status"]).exit_code == EXIT_AUTH_FAILURE
        assert cli_runner.invoke(app, ["--profile", "work", "auth", "status"]).exit_code == 0


class TestConfigCommands:
    def test_set_string(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "provider.client_id", "abc"])
        assert result.exit_code == 0
        assert load_profile("default").provider.client_id == "abc"

    def test_set_list_and_int(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "provider.scopes", "user-library-read,user-library-modify"])
        cli_runner.invoke(app, ["config", "set", "request.max_rate_limit_retries", "2"])
        profile = load_profile("default")
        assert profile.provider.scopes == ["user-library-read", "user-library-modify"]
        assert profile.request.max_rate_limit_retries == 2

    def test_set_does_not_persist_env_overrides(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SONIQUE_CLIENT_ID", "from-env")
        cli_runner.invoke(app, ["config", "set", "request.timeout", "10"])
        assert load_profile("default").provider.client_id == ""

    @pytest.mark.parametrize(
        "args",
        [
            ["request.max_rate_limit_retries", "many"],
            ["request.max_rate_limit_retries", "-1"],
            ["nothing.here", "x"],
            ["provider.unknown", "x"],
            ["name", "other"],
        ],
    )
    def test_invalid_values(self, cli_runner, isolated_config: Path, args: list[str]) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set", *args])
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_use(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "use", "work"])
        assert result.exit_code == 0
        assert load_global_config().default_profile == "work"

    def test_show(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "config", "show"])
        assert result.exit_code == 0
        assert '"client_id"' in result.stdout


class TestLibraryCommands:
    def test_requires_login(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen = _mock_api(monkeypatch, lambda request: httpx.Response(200, json={}))
        result = cli_runner.invoke(app, ["--no-color", "saved"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "sonique auth login" in result.output
        assert seen == []

    def test_saved_json(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        seen = _mock_api(
            monkeypatch,
            lambda request: httpx.Response(
                200, json={"items": [{"added_at": "2024-05-01T10:00:00Z", "album": ALBUM}], "total": 1}
            ),
        )
        result = cli_runner.invoke(app, ["--json", "saved", "--limit", "5"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["items"][0]["album"]["id"] == "alb1"
        assert seen[0].headers["authorization"] == "Bearer tok123"
        assert seen[0].url.params["limit"] == "5"

    def test_contains_plain_table(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        _mock_api(monkeypatch, lambda request: httpx.Response(200, json=[True, False]))
        result = cli_runner.invoke(app, ["--plain", "--no-color", "contains", "a", "b"])
        assert result.exit_code == 0
        assert "a\tyes" in result.stdout
        assert "b\tno" in result.stdout

    def test_blank_ids_do_not_shift_labels(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        seen = _mock_api(monkeypatch, lambda request: httpx.Response(200, json=[True, False]))
        result = cli_runner.invoke(app, ["--plain", "--no-color", "contains", "a", "", "b"])
        assert result.exit_code == 0
        assert seen[0].url.params["ids"] == "a,b"
        assert "a\tyes" in result.stdout
        assert "b\tno" in result.stdout

    def test_save_counts_sent_ids(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        _mock_api(monkeypatch, lambda request: httpx.Response(200))
        result = cli_runner.invoke(app, ["--no-color", "save", "a", " ", "b"])
        assert result.exit_code == 0
        assert "Saved 2 album(s)." in result.output

    def test_unauthorized_clears_session(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = _log_in()
        _mock_api(monkeypatch, lambda request: httpx.Response(401, json={"error": "expired"}))
        result = cli_runner.invoke(app, ["--no-color", "artist", "art1"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "Log in again" in result.output
        assert store.get_access_token() is None

    def test_too_many_ids(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        seen = _mock_api(monkeypatch, lambda request: httpx.Response(200))
        ids = [f"id{i}" for i in range(21)]
        result = cli_runner.invoke(app, ["--no-color", "save", *ids])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert seen == []

    def test_remove(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _log_in()
        seen = _mock_api(monkeypatch, lambda request: httpx.Response(204))
        result = cli_runner.invoke(app, ["--no-color", "remove", "a", "b"])
        assert result.exit_code == 0
        assert seen[0].method == "DELETE"
        assert seen[0].url.params["ids"] == "a,b"
