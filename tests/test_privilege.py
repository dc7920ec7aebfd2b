"""
Tests for the privilege session and the sudo backend.
"""

import time

import pytest

from macsetup.adapters.base import PrivilegeBackend
from macsetup.adapters.mock import MockPrivilegeBackend
from macsetup.adapters.privilege.sudo import SudoBackend
from macsetup.core.privilege.session import PrivilegeError, PrivilegeSession, SessionState


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _ExplodingBackend(PrivilegeBackend):
    def __init__(self, on_verify: bool = False):
        self._on_verify = on_verify

    def verify(self, credential: str) -> bool:
        if self._on_verify:
            raise OSError("sudo went away")
        return True

    def refresh(self) -> bool:
        raise OSError("sudo went away")


class TestPrivilegeSession:
    def test_initial_state(self):
        session = PrivilegeSession(MockPrivilegeBackend())
        assert session.state == SessionState.UNACQUIRED
        assert not session.is_active
        assert not session.refreshing

    def test_acquire(self):
        backend = MockPrivilegeBackend()
        with PrivilegeSession(backend, refresh_interval=3600) as session:
            session.acquire("secret")
            assert session.is_active
            assert session.refreshing
            assert backend.verify_calls == 1

    def test_rejected_credential(self):
        session = PrivilegeSession(MockPrivilegeBackend(credential="secret"))
        with pytest.raises(PrivilegeError, match="rejected"):
            session.acquire("wrong")
        assert session.state == SessionState.UNACQUIRED
        assert not session.refreshing

    def test_verify_raising(self):
        session = PrivilegeSession(_ExplodingBackend(on_verify=True))
        with pytest.raises(PrivilegeError, match="sudo went away"):
            session.acquire("secret")

    def test_acquire_twice(self):
        with PrivilegeSession(MockPrivilegeBackend(), refresh_interval=3600) as session:
            session.acquire("secret")
            with pytest.raises(PrivilegeError):
                session.acquire("secret")

    def test_refresh_keeps_active(self):
        backend = MockPrivilegeBackend()
        with PrivilegeSession(backend, refresh_interval=0.01) as session:
            session.acquire("secret")
            assert _wait_for(lambda: backend.refresh_calls >= 3)
            assert session.is_active

    def test_refresh_failure_expires(self):
        backend = MockPrivilegeBackend(refresh_results=[True, False])
        with PrivilegeSession(backend, refresh_interval=0.01) as session:
            session.acquire("secret")
            assert _wait_for(lambda: session.state == SessionState.EXPIRED)
            assert _wait_for(lambda: not session.refreshing)
            assert backend.refresh_calls == 2

    def test_refresh_raising_expires(self):
        with PrivilegeSession(_ExplodingBackend(), refresh_interval=0.01) as session:
            session.acquire("secret")
            assert _wait_for(lambda: session.state == SessionState.EXPIRED)

    def test_terminate_stops_thread(self):
        session = PrivilegeSession(MockPrivilegeBackend(), refresh_interval=3600)
        session.acquire("secret")
        session.terminate()
        assert session.state == SessionState.TERMINATED
        assert not session.refreshing
        assert not session.is_active

    def test_terminate_idempotent(self):
        session = PrivilegeSession(MockPrivilegeBackend())
        session.terminate()
        session.terminate()
        assert session.state == SessionState.TERMINATED

    def test_context_manager_terminates_on_error(self):
        session = PrivilegeSession(MockPrivilegeBackend(), refresh_interval=3600)
        with pytest.raises(RuntimeError):
            with session:
                session.acquire("secret")
                raise RuntimeError("boom")
        assert session.state == SessionState.TERMINATED
        assert not session.refreshing


class TestSudoBackend:
    @pytest.fixture(autouse=True)
    def not_root(self, monkeypatch):
        monkeypatch.setattr("macsetup.adapters.privilege.sudo.os.geteuid", lambda: 501)

    def test_verify_password_on_stdin(self, fake_runner):
        backend = SudoBackend(runner=fake_runner)
        assert backend.verify("hunter2")

        cmd, kwargs = fake_runner.calls[0]
        assert cmd == ["sudo", "-S", "-p", "", "-v"]
        assert "hunter2" not in " ".join(cmd)
        assert kwargs["input_text"] == "hunter2\n"

    def test_verify_rejected(self, fake_runner):
        fake_runner.on("sudo", "-S", returncode=1, stderr="Sorry, try again.")
        assert not SudoBackend(runner=fake_runner).verify("wrong")

    def test_refresh(self, fake_runner):
        backend = SudoBackend(runner=fake_runner)
        assert backend.refresh()
        assert fake_runner.commands == [["sudo", "-n", "true"]]

    def test_refresh_needs_password_again(self, fake_runner):
        fake_runner.on("sudo", "-n", returncode=1, stderr="sudo: a password is required")
        assert not SudoBackend(runner=fake_runner).refresh()

    def test_root_needs_nothing(self, fake_runner, monkeypatch):
        monkeypatch.setattr("macsetup.adapters.privilege.sudo.os.geteuid", lambda: 0)
        backend = SudoBackend(runner=fake_runner)
        assert backend.verify("")
        assert backend.refresh()
        assert fake_runner.calls == []
