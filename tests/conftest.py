"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from macsetup.adapters.shell.command import CommandResult


class FakeRunner:
    """Stand-in for ``run_command``: records calls, replays canned results.

    Responses match on a command prefix; the most recently added match
    wins. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], dict]] = []
        self._responses: list[tuple[list[str], dict]] = []

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0, error: str | None = None):
        self._responses.append((list(prefix), {
            "stdout": stdout, "stderr": stderr, "returncode": returncode, "error": error,
        }))
        return self

    def __call__(self, cmd: list[str], **kwargs) -> CommandResult:
        cmd = list(cmd)
        self.calls.append((cmd, kwargs))
        for prefix, response in reversed(self._responses):
            if cmd[: len(prefix)] == prefix:
                return CommandResult(cmd=cmd, **response)
        return CommandResult(cmd=cmd)

    @property
    def commands(self) -> list[list[str]]:
        return [cmd for cmd, _ in self.calls]

    def kwargs_for(self, *prefix: str) -> dict:
        for cmd, kwargs in self.calls:
            if cmd[: len(prefix)] == list(prefix):
                return kwargs
        raise AssertionError(f"no call starting with {prefix}")


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path: Path, monkeypatch) -> Path:
    """Keep the run ledger out of the real home directory."""
    state_dir = tmp_path / "state"
    monkeypatch.setenv("MACSETUP_STATE_DIR", str(state_dir))
    return state_dir


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a macsetup.yml into tmp_path and return its path."""

    def _write(content: str, name: str = "macsetup.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def full_config(write_config) -> Path:
    """A config touching every section."""
    return write_config("""\
        formulae:
          - git
          - node@20
        casks:
          - iterm2
        privilegedCasks:
          - docker
        appStoreApps:
          - id: 497799835
            name: Xcode
        editorExtensions:
          - ms-python.python
        settings:
          - domain: com.apple.dock
            key: autohide
            value: true
            type: bool
        dockAdd:
          - /Applications/iTerm.app
        dockRemove:
          - Mail
        dockReplace:
          - add: /Applications/Firefox.app
            replace: Safari
        identity:
          name: Ada Lovelace
          email: ada@example.com
        shellExports:
          JAVA_HOME: /Library/Java/Home
        ohMyZsh: true
    """)
