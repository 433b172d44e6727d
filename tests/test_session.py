"""
Tests for the session state machine.

Covers:
  1. Legal / illegal transitions
  2. External surface closure → CLOSED and recovery on the next login
  3. Surface ownership (reuse, idempotent release)
"""

import asyncio

import pytest

from portal_agent.models import SessionStateError
from portal_agent.session import Session, SessionState

from conftest import BlockingCreateProvider, FakeSurfaceProvider, make_authenticated_session


# ====================================================================
# 1. Transitions
# ====================================================================

class TestTransitions:

    def test_initial_state(self, fake):
        session = Session(fake)
        assert session.state is SessionState.UNAUTHENTICATED
        assert session.surface is None
        assert session.auth_in_flight is False
        assert not session.is_authenticated()

    async def test_successful_attempt(self, fake):
        session = Session(fake)
        session.begin_authentication()
        assert session.state is SessionState.AUTHENTICATING
        assert session.auth_in_flight is True

        await session.acquire_surface()
        session.finish_authentication(True)
        assert session.state is SessionState.AUTHENTICATED
        assert session.auth_in_flight is False
        assert session.is_authenticated()

    async def test_failed_attempt_keeps_open_surface(self, fake):
        session = Session(fake)
        session.begin_authentication()
        handle = await session.acquire_surface()
        session.finish_authentication(False)
        assert session.state is SessionState.UNAUTHENTICATED
        assert session.surface is handle
        assert not session.is_authenticated()

    def test_success_without_surface_is_not_authenticated(self, fake):
        """A 'successful' attempt that never opened a surface cannot authenticate."""
        session = Session(fake)
        session.begin_authentication()
        session.finish_authentication(True)
        assert session.state is SessionState.UNAUTHENTICATED

    def test_illegal_transition_raises(self, fake):
        session = Session(fake)
        with pytest.raises(SessionStateError):
            session._transition(SessionState.AUTHENTICATED)

    async def test_reauthentication_on_live_surface(self, fake):
        session = await make_authenticated_session(fake)
        session.begin_authentication()
        assert session.state is SessionState.AUTHENTICATING
        assert session.auth_in_flight is True

    async def test_finish_ignored_outside_attempt(self, fake):
        session = await make_authenticated_session(fake)
        session.finish_authentication(False)
        assert session.state is SessionState.AUTHENTICATED


# ====================================================================
# 2. External closure
# ====================================================================

class TestExternalClosure:

    async def test_closure_moves_to_closed(self, fake):
        session = await make_authenticated_session(fake)
        fake.close_externally(session.surface)
        assert session.state is SessionState.CLOSED
        assert session.surface is None
        assert not session.is_authenticated()

    async def test_is_authenticated_rechecks_provider(self):
        """Closure the session was never told about still counts."""
        fake = FakeSurfaceProvider()
        session = await make_authenticated_session(fake)
        fake._open.clear()
        assert session.state is SessionState.AUTHENTICATED
        assert not session.is_authenticated()

    async def test_login_after_closure_starts_over(self, fake):
        session = await make_authenticated_session(fake)
        fake.close_externally(session.surface)

        session.begin_authentication()
        assert session.state is SessionState.AUTHENTICATING
        handle = await session.acquire_surface()
        assert handle.surface_id == 2

    async def test_closure_mid_attempt(self, fake):
        session = Session(fake)
        session.begin_authentication()
        handle = await session.acquire_surface()
        fake.close_externally(handle)
        session.finish_authentication(True)
        assert session.state is SessionState.UNAUTHENTICATED
        assert session.auth_in_flight is False

    async def test_stale_handle_closure_ignored(self, fake):
        session = Session(fake)
        session.begin_authentication()
        old = await session.acquire_surface()
        session.finish_authentication(False)
        await session.release_surface()

        session.begin_authentication()
        await session.acquire_surface()
        session.finish_authentication(True)
        session._on_surface_closed(old)
        assert session.state is SessionState.AUTHENTICATED


# ====================================================================
# 3. Surface ownership
# ====================================================================

class TestSurfaceOwnership:

    async def test_open_surface_is_reused(self, fake):
        session = Session(fake)
        first = await session.acquire_surface()
        second = await session.acquire_surface()
        assert first is second
        assert fake.count("create") == 1

    async def test_concurrent_create_keeps_one_surface(self):
        fake = BlockingCreateProvider()
        session = Session(fake)

        slow = asyncio.ensure_future(session.acquire_surface())
        await asyncio.sleep(0)
        fast = await session.acquire_surface()
        fake.release.set()
        late = await slow

        assert late is fast
        assert session.surface is fast
        assert fake.count("create") == 2
        assert fake.count("destroy") == 1
        assert list(fake._open) == [fast.surface_id]

    async def test_release_is_idempotent(self, fake):
        session = Session(fake)
        await session.acquire_surface()
        await session.release_surface()
        await session.release_surface()
        assert fake.count("destroy") == 1
        assert session.surface is None

    async def test_invalidate_clears_everything(self, fake):
        session = await make_authenticated_session(fake)
        session.auth_in_flight = True
        session.invalidate()
        assert session.state is SessionState.UNAUTHENTICATED
        assert session.surface is None
        assert session.auth_in_flight is False
