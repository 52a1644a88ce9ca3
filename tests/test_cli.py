"""Tests for repofetch CLI entrypoints."""

from __future__ import annotations

import io
from pathlib import Path
from types import SimpleNamespace

import pytest
from rich.console import Console

import repofetch.main as main
from repofetch.cli import fetch as fetch_module
from repofetch.errors import CancellationError, ProcessExitError


def _args(tmp_path: Path, **overrides) -> SimpleNamespace:
    values = dict(
        url="https://example.com/repo.git",
        dest=str(tmp_path / "project"),
        ref="",
        subdir=None,
        timeout=None,
        git=None,
        verbose=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("REPOFETCH_VERBOSE", "REPOFETCH_GIT", "REPOFETCH_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


def test_main_dispatches_fetch_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """The fetch subcommand is routed to fetch_command."""
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)
    captured = {}

    def fake_fetch_command(args, console=None) -> int:
        captured["args"] = args
        return 0

    monkeypatch.setattr(main, "fetch_command", fake_fetch_command)

    exit_code = main.main(
        ["fetch", "https://example.com/r.git", str(tmp_path), "--ref", "v1", "--subdir", "docs"]
    )

    assert exit_code == 0
    parsed = captured["args"]
    assert parsed.url == "https://example.com/r.git"
    assert parsed.ref == "v1"
    assert parsed.subdir == "docs"


def test_main_without_command_prints_help(monkeypatch: pytest.MonkeyPatch) -> None:
    """Running without a subcommand prints help and fails."""
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)

    assert main.main([]) == 1


def test_fetch_command_builds_request(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, console) -> None:
    """CLI arguments become a fetch request with config overrides."""
    seen = {}

    def fake_run(self, request, token=None):
        seen["request"] = request
        seen["config"] = self.config

    monkeypatch.setattr(fetch_module.GitFetcher, "run", fake_run)

    code = fetch_module.fetch_command(
        _args(tmp_path, ref="main", subdir="templates/go", timeout=12.5), console=console
    )

    assert code == 0
    assert seen["request"].sub_path == "templates/go"
    assert seen["request"].ref == "main"
    assert seen["config"].timeout == 12.5


def test_fetch_failure_removes_created_target(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, console) -> None:
    """A failed fetch removes the target directory it created."""
    def failing_run(self, request, token=None):
        request.target_dir.mkdir()
        (request.target_dir / "partial").write_text("x")
        raise ProcessExitError(["git", "clone"], 128, "fatal: not found", phase="clone")

    monkeypatch.setattr(fetch_module.GitFetcher, "run", failing_run)

    code = fetch_module.fetch_command(_args(tmp_path), console=console)

    assert code == 1
    assert not (tmp_path / "project").exists()


def test_fetch_failure_keeps_preexisting_target(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, console) -> None:
    """A failed fetch leaves an existing target directory alone."""
    (tmp_path / "project").mkdir()

    def failing_run(self, request, token=None):
        raise ProcessExitError(["git", "clone"], 1)

    monkeypatch.setattr(fetch_module.GitFetcher, "run", failing_run)

    assert fetch_module.fetch_command(_args(tmp_path), console=console) == 1
    assert (tmp_path / "project").exists()


def test_interrupt_exit_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, console) -> None:
    """An interrupted fetch exits with status 130."""
    def interrupted_run(self, request, token=None):
        token.cancel("interrupted")
        raise CancellationError("git interrupted", phase="clone")

    monkeypatch.setattr(fetch_module.GitFetcher, "run", interrupted_run)

    assert fetch_module.fetch_command(_args(tmp_path), console=console) == fetch_module.EXIT_INTERRUPTED


def test_invalid_environment_is_reported(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, console) -> None:
    """Bad REPOFETCH_* values fail the command before fetching."""
    monkeypatch.setenv("REPOFETCH_TIMEOUT", "soon")

    assert fetch_module.fetch_command(_args(tmp_path), console=console) == 1
