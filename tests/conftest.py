"""Shared test fixtures for ger.

Provides reusable fixtures for creating isolated config environments,
simulated clocks, in-memory cache stores, sample Gerrit changes, and
running CLI commands. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from ger.cache import CacheManager, CacheStore
from ger.cache.store import MEMORY
from ger.models import AccountInfo, ChangeInfo, ChangeStatus, GerritCredentials
from ger.output import OutputFormat, OutputManager, reset_output, set_output

START_TIME = 1_700_000_000


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Simulated time
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """A simulated clock starting at a fixed epoch second."""
    return FakeClock()


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(clock: FakeClock) -> CacheStore:
    """An initialised in-memory store driven by the simulated clock."""
    s = CacheStore(MEMORY, clock=clock)
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def manager(store: CacheStore) -> CacheManager:
    """A cache manager over the in-memory store."""
    return CacheManager(store)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def make_change() -> Callable[..., ChangeInfo]:
    """Factory for :class:`ChangeInfo` instances with overridable fields.

    ``number`` drives the default ids, so two calls with different numbers
    never collide on either unique key.
    """

    def _make(number: int = 12345, **overrides: Any) -> ChangeInfo:
        change_id = overrides.pop("change_id", f"I{number:040x}")
        project = overrides.pop("project", "platform/core")
        branch = overrides.pop("branch", "main")
        fields: dict[str, Any] = {
            "id": f"{project}~{branch}~{change_id}",
            "project": project,
            "branch": branch,
            "change_id": change_id,
            "subject": f"Change {number}",
            "status": ChangeStatus.NEW,
            "created": "2024-01-15 10:00:00.000000000",
            "updated": "2024-01-15 12:00:00.000000000",
            "insertions": 10,
            "deletions": 2,
            "number": number,
            "owner": AccountInfo(
                account_id=1000, name="Alice Example", email="alice@example.com"
            ),
        }
        fields.update(overrides)
        return ChangeInfo(**fields)

    return _make


@pytest.fixture
def change_payload() -> Callable[..., dict[str, Any]]:
    """Factory for Gerrit REST JSON objects describing a change."""

    def _make(number: int = 12345, **overrides: Any) -> dict[str, Any]:
        change_id = overrides.pop("change_id", f"I{number:040x}")
        data: dict[str, Any] = {
            "id": f"platform%2Fcore~main~{change_id}",
            "project": "platform/core",
            "branch": "main",
            "change_id": change_id,
            "subject": f"Change {number}",
            "status": "NEW",
            "created": "2024-01-15 10:00:00.000000000",
            "updated": "2024-01-15 12:00:00.000000000",
            "insertions": 10,
            "deletions": 2,
            "_number": number,
            "owner": {"_account_id": 1000, "name": "Alice Example"},
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def credentials() -> GerritCredentials:
    """Credentials for a fictional Gerrit server."""
    return GerritCredentials(
        host="https://review.example.com", username="alice", password="s3cret"
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, credentials, or the cache
    database. Clears all GER_* environment variables and changes the
    working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("ger.config._is_xdg_platform", lambda: True)

    for var in ["GER_HOST", "GER_USERNAME", "GER_PASSWORD", "GER_CACHE_DB"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a PLAIN-format, quiet OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Fake Gerrit server
# ---------------------------------------------------------------------------


class FakeGerrit:
    """MockTransport handler serving canned Gerrit replies keyed by method and path.

    Paths are matched in their percent-encoded form without the query
    string. Unknown routes answer 404 like a real server would.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def reply(self, method: str, path: str, data: Any = None, status_code: int = 200) -> None:
        """Answer *method* *path* with JSON *data* behind the XSSI guard."""
        self.routes[(method, path)] = httpx.Response(
            status_code, text=")]}'\n" + json.dumps(data)
        )

    def reply_text(self, method: str, path: str, text: str, status_code: int = 200) -> None:
        self.routes[(method, path)] = httpx.Response(status_code, text=text)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.split(b"?")[0].decode("ascii")
        canned = self.routes.get((request.method, path))
        if canned is None:
            return httpx.Response(404, text="Not found")
        return httpx.Response(canned.status_code, content=canned.content)

    def calls(self, method: str, path: str) -> int:
        """Number of requests received for *method* *path*."""
        return sum(
            1
            for r in self.requests
            if r.method == method and r.url.raw_path.split(b"?")[0].decode("ascii") == path
        )


@pytest.fixture
def gerrit() -> FakeGerrit:
    """An empty fake Gerrit server; tests register the routes they need."""
    return FakeGerrit()


@pytest.fixture
def run_ger(
    cli_runner, gerrit: FakeGerrit, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
) -> Callable[..., Any]:
    """Invoke the ``ger`` CLI against the fake server.

    Credentials come from the environment and the cache database lives in
    the isolated config directory.
    """
    from ger.app import app

    monkeypatch.setenv("GER_HOST", "https://review.example.com")
    monkeypatch.setenv("GER_USERNAME", "alice")
    monkeypatch.setenv("GER_PASSWORD", "s3cret")

    def _run(*args: str, input: str | None = None) -> Any:
        return cli_runner.invoke(
            app,
            list(args),
            input=input,
            obj={"transport": httpx.MockTransport(gerrit)},
        )

    return _run
