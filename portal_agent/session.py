"""
Session State Machine
=====================
Owns the single shared portal session and its browser surface.

Lifecycle::

    UNAUTHENTICATED ──login──▶ AUTHENTICATING ──ok──▶ AUTHENTICATED
          ▲                         │                      │
          └────────fail─────────────┘◀──logout / loss──────┘

    any state ──surface destroyed externally──▶ CLOSED

``CLOSED`` is terminal for the surface that was lost.  The next login
calls ``invalidate()`` and starts over with a new surface.

The surface can be closed by an external actor (user, crash) without the
state machine being told synchronously, so ``is_authenticated()`` always
re-checks the provider.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .models import SessionStateError
from .surface import BrowserSurfaceProvider, SurfaceHandle

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.UNAUTHENTICATED: frozenset({SessionState.AUTHENTICATING}),
    SessionState.AUTHENTICATING: frozenset({
        SessionState.AUTHENTICATED, SessionState.UNAUTHENTICATED,
    }),
    SessionState.AUTHENTICATED: frozenset({SessionState.UNAUTHENTICATED}),
    SessionState.CLOSED: frozenset(),
}


class Session:
    """One portal session: state, exclusively-owned surface, login mutex flag."""

    def __init__(self, provider: BrowserSurfaceProvider):
        self.provider = provider
        self.state = SessionState.UNAUTHENTICATED
        self.surface: Optional[SurfaceHandle] = None
        self.auth_in_flight = False

    # ── Queries ───────────────────────────────────────────────────

    def surface_open(self) -> bool:
        return self.surface is not None and self.provider.is_open(self.surface)

    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and self.surface_open()

    # ── Transitions ───────────────────────────────────────────────

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise SessionStateError(
                f"Illegal session transition {self.state.value} → {target.value}"
            )
        logger.debug(f"[SESSION] {self.state.value} → {target.value}")
        self.state = target

    def begin_authentication(self) -> None:
        """Enter AUTHENTICATING and take the login mutex flag."""
        if self.state is SessionState.CLOSED or not self.surface_open():
            self.invalidate()
        elif self.state is not SessionState.UNAUTHENTICATED:
            # Stuck attempt whose flag a waiter force-cleared, or a
            # re-login on a live surface.
            self.state = SessionState.UNAUTHENTICATED
        self._transition(SessionState.AUTHENTICATING)
        self.auth_in_flight = True

    def finish_authentication(self, success: bool) -> None:
        """Leave AUTHENTICATING; always releases the login mutex flag."""
        self.auth_in_flight = False
        if self.state is SessionState.CLOSED:
            # Surface died mid-attempt; nothing to authenticate against.
            self.invalidate()
            return
        if self.state is not SessionState.AUTHENTICATING:
            return
        if success and self.surface_open():
            self._transition(SessionState.AUTHENTICATED)
            return
        self._transition(SessionState.UNAUTHENTICATED)
        if not self.surface_open():
            self.surface = None

    def invalidate(self) -> None:
        """Force UNAUTHENTICATED, drop the surface, clear the mutex flag."""
        if self.state is not SessionState.UNAUTHENTICATED:
            logger.info(f"[SESSION] Invalidated (was {self.state.value})")
        self.state = SessionState.UNAUTHENTICATED
        self.surface = None
        self.auth_in_flight = False

    def _on_surface_closed(self, handle: SurfaceHandle) -> None:
        if handle is not self.surface:
            return
        logger.warning(
            f"[SESSION] Surface #{handle.surface_id} closed externally — session CLOSED"
        )
        self.state = SessionState.CLOSED
        self.surface = None

    # ── Surface ownership ─────────────────────────────────────────

    async def acquire_surface(self) -> SurfaceHandle:
        """Return the open surface, creating one if needed."""
        if self.surface_open():
            return self.surface
        handle = await self.provider.create()
        if self.surface_open():
            # A concurrent attempt won the race while create() was pending
            logger.warning(
                f"[SESSION] Discarding surface #{handle.surface_id}; "
                f"#{self.surface.surface_id} already owns the session"
            )
            await self.provider.destroy(handle)
            return self.surface
        self.provider.on_close(handle, lambda: self._on_surface_closed(handle))
        self.surface = handle
        return handle

    async def release_surface(self) -> None:
        """Destroy the surface if still open (idempotent)."""
        handle, self.surface = self.surface, None
        if handle is not None and self.provider.is_open(handle):
            await self.provider.destroy(handle)
