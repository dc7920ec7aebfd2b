"""
Privilege session — one elevated grant for the whole run.

States:
    UNACQUIRED → Nothing granted yet.
    ACTIVE     → Credential verified; refresh thread keeping it alive.
    EXPIRED    → A refresh failed. Privileged actions fail from here on.
    TERMINATED → Torn down at run end. Refresh thread stopped.

Transitions:
    UNACQUIRED → ACTIVE:      acquire() with a credential the backend accepts
    ACTIVE → EXPIRED:         refresh() returned False or raised (refresh thread only)
    ANY → TERMINATED:         terminate()

The refresh thread is the only writer of ACTIVE → EXPIRED; the main
flow just reads ``is_active`` before each privileged action.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum

from macsetup.adapters.base import PrivilegeBackend

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_S = 60.0


class PrivilegeError(Exception):
    """Raised when the privilege grant cannot be acquired."""


class SessionState(StrEnum):
    """Privilege session states."""

    UNACQUIRED = "unacquired"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class PrivilegeSession:
    """Holds and refreshes a privilege grant.

    Use as a context manager so teardown happens on every exit path::

        with PrivilegeSession(SudoBackend()) as session:
            session.acquire(password)
            execute_plan(plan, registry, session=session)
    """

    def __init__(self, backend: PrivilegeBackend, refresh_interval: float = REFRESH_INTERVAL_S):
        self._backend = backend
        self._refresh_interval = refresh_interval
        self._state = SessionState.UNACQUIRED
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def refreshing(self) -> bool:
        """Whether the background refresh thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def acquire(self, credential: str) -> None:
        """Verify the credential and start the refresh loop.

        Raises:
            PrivilegeError: If the session is not fresh or the
                backend rejects the credential.
        """
        if self._state != SessionState.UNACQUIRED:
            raise PrivilegeError(f"Cannot acquire a privilege session in state '{self._state}'")

        try:
            verified = self._backend.verify(credential)
        except Exception as e:
            raise PrivilegeError(f"Privilege verification failed: {e}") from e
        if not verified:
            raise PrivilegeError("Privilege verification failed: credential rejected")

        self._state = SessionState.ACTIVE
        self._thread = threading.Thread(
            target=self._refresh_loop,
            daemon=True,
            name="privilege-refresh",
        )
        self._thread.start()
        logger.info("Privilege session active (refresh every %.0fs)", self._refresh_interval)

    def _refresh_loop(self) -> None:
        """Refresh until stopped or until the grant is lost."""
        while not self._stop.wait(self._refresh_interval):
            try:
                ok = self._backend.refresh()
            except Exception as e:
                logger.warning("Privilege refresh raised: %s", e)
                ok = False
            if not ok:
                if self._state == SessionState.ACTIVE:
                    self._state = SessionState.EXPIRED
                    logger.warning("Privilege session expired")
                return
            logger.debug("Privilege session refreshed")

    def terminate(self) -> None:
        """Stop the refresh loop and close the session. Idempotent."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        if self._state != SessionState.TERMINATED:
            logger.debug("Privilege session terminated (was %s)", self._state)
        self._state = SessionState.TERMINATED

    def __enter__(self) -> PrivilegeSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.terminate()
