"""Shared test fixtures for refyne.

Provides fixtures for isolating config directories, managing the global
output state, recording SDK log calls, and running CLI commands. pytest
discovers them automatically.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from refyne.logger import Logger
from refyne.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager binds sys.stdout/sys.stderr when it is created.
    CliRunner swaps those streams during a test, so a manager left over
    from one test would write to closed files in the next.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME, XDG_CACHE_HOME and XDG_DATA_HOME at tmp_path.

    Also clears every REFYNE_* variable so the developer's environment
    never leaks into a test.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("refyne.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["REFYNE_API_KEY", "REFYNE_BASE_URL", "REFYNE_TIMEOUT", "REFYNE_MAX_RETRIES"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class RecordingLogger(Logger):
    """Logger that keeps every call as ``(level, message, meta)``."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, message: str, meta: Optional[Any]) -> None:
        self.records.append((level, message, dict(meta or {})))

    def debug(self, message: str, meta: Any = None) -> None:
        self._record("debug", message, meta)

    def info(self, message: str, meta: Any = None) -> None:
        self._record("info", message, meta)

    def warning(self, message: str, meta: Any = None) -> None:
        self._record("warning", message, meta)

    def error(self, message: str, meta: Any = None) -> None:
        self._record("error", message, meta)

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message, _ in self.records if lvl == level]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
