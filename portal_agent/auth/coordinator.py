"""
Authentication Coordinator
==========================
Serialized, self-healing login against the portal's uncooperative form.

Flow (``login``):
    1. Fast path — already authenticated on an open surface
    2. Mutex wait — poll while another attempt holds ``auth_in_flight``;
       force-clear the flag at the ceiling and proceed fresh
    3. Validate credentials, decrypt the secret
    4. Acquire surface, navigate to the entry URL
    5. Readiness polling (best effort)
    6. Field discovery → inject values + synthetic events
    7. Submit discovery → click / form.submit()
    8. Settle, then classify the outcome (fail-closed)
    9. Re-check the session: a surface lost mid-attempt is a ``SurfaceError``

Every failure is returned as an ``AuthResult``; nothing is raised.

Security:
    - The plaintext secret lives only in ``_attempt``'s frame and in the
      argument of a single injected script.
    - Only URLs, strategy names and counts appear in logs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from ..models import AuthResult, ErrorKind
from ..run_config import PortalRunConfig
from ..session import Session
from ..surface import SurfaceHandle
from . import scripts
from .credentials import CredentialCodec, Credentials
from .discovery import (
    CONTROL_SELECTOR,
    ControlSnapshot,
    FieldStrategy,
    SubmitStrategy,
    control_diagnostics,
    default_field_strategies,
    default_submit_strategies,
    discover_fields,
    discover_submission,
    input_diagnostics,
    parse_inputs,
)

logger = logging.getLogger(__name__)


def classify_outcome(
    current_url: str, page_check: Optional[Dict[str, Any]], config: PortalRunConfig
) -> AuthResult:
    """Classify the post-submit page.

    Checks (in priority order):
        1. Error marker present → ``LoginRejected`` with its text
        2. URL left the login endpoint, or matches a post-login pattern → success
        3. Anything else → ``AmbiguousFailure`` (fail-closed)
    """
    check = page_check or {}
    if check.get("hasError"):
        text = (check.get("errorText") or "").strip()
        return AuthResult.failure(
            ErrorKind.LOGIN_REJECTED,
            text or "Login failed - error message found on page",
        )

    url = current_url or check.get("url") or ""
    on_login_page = config.login_url_marker in url
    matches_success = any(p in url for p in config.success_url_patterns)
    if url and (not on_login_page or matches_success):
        return AuthResult.ok()

    return AuthResult.failure(
        ErrorKind.AMBIGUOUS_FAILURE,
        "Still on login page - credentials may be incorrect "
        "or login form structure changed",
        diagnostics={
            "url": url,
            "title": check.get("title") or "",
            "body_text": check.get("bodyText") or "",
        },
    )


class AuthenticationCoordinator:
    """Drives one ``Session`` from UNAUTHENTICATED to AUTHENTICATED."""

    def __init__(
        self,
        session: Session,
        codec: CredentialCodec,
        config: Optional[PortalRunConfig] = None,
        field_strategies: Optional[List[FieldStrategy]] = None,
        submit_strategies: Optional[List[SubmitStrategy]] = None,
    ):
        self.session = session
        self.codec = codec
        self.config = config or PortalRunConfig()
        self.field_strategies = field_strategies or default_field_strategies(
            self.config.identity_hints
        )
        self.submit_strategies = submit_strategies or default_submit_strategies(
            self.config.login_lexicon
        )

    @property
    def provider(self):
        return self.session.provider

    async def login(self, credentials: Credentials) -> AuthResult:
        session = self.session

        # ── Step 1: Fast path ────────────────────────────────────────
        if session.is_authenticated():
            logger.debug("[AUTH] Already authenticated — reusing session")
            return AuthResult.ok()

        # ── Step 2: Mutex wait ───────────────────────────────────────
        if session.auth_in_flight:
            if await self._wait_for_in_flight():
                return AuthResult.ok()

        # ── Step 3: Validate ─────────────────────────────────────────
        if not credentials.is_complete:
            return AuthResult.failure(ErrorKind.MISSING_CREDENTIALS, "Missing credentials")

        session.begin_authentication()
        result = AuthResult.failure(ErrorKind.SURFACE_ERROR, "Login aborted")
        try:
            result = await self._attempt(credentials)
        except Exception as e:
            logger.error(f"[AUTH] Login error: {e}")
            result = AuthResult.failure(
                ErrorKind.SURFACE_ERROR, str(e) or type(e).__name__
            )
        finally:
            session.finish_authentication(result.success)

        if result.success and not session.is_authenticated():
            result = AuthResult.failure(
                ErrorKind.SURFACE_ERROR, "Surface closed before login completed"
            )

        if result.success:
            logger.info("[AUTH] ✅ Login successful")
        else:
            logger.error(f"[AUTH] ❌ Login failed: {result.error} — {result.message}")
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _wait_for_in_flight(self) -> bool:
        """Wait for a concurrent attempt.  Returns True if it succeeded.

        At the ceiling the flag is force-cleared so a stuck attempt cannot
        block logins forever.
        """
        settle = self.config.settle
        session = self.session
        logger.info("[AUTH] Login already in progress — waiting")
        deadline = time.monotonic() + settle.login_wait_ceiling
        while session.auth_in_flight and time.monotonic() < deadline:
            await asyncio.sleep(settle.login_poll_interval)
            if session.is_authenticated():
                return True

        if session.auth_in_flight:
            logger.warning(
                f"[AUTH] In-flight login exceeded {settle.login_wait_ceiling}s — "
                f"resetting flag and retrying"
            )
            session.auth_in_flight = False
        return session.is_authenticated()

    async def _inject(self, handle: SurfaceHandle, script: str, arg: Any = None) -> Any:
        return await self.provider.inject_script(handle, script, arg)

    async def _attempt(self, credentials: Credentials) -> AuthResult:
        settle = self.config.settle

        # ── Step 4: Decrypt ──────────────────────────────────────────
        secret = self.codec.decrypt(credentials.secret)
        if not secret:
            return AuthResult.failure(ErrorKind.DECRYPTION_FAILED, "Failed to decrypt password")

        # ── Step 5: Surface + navigation ─────────────────────────────
        handle = await self.session.acquire_surface()
        logger.info(f"[AUTH] Navigating to login page: {self.config.entry_url[:80]}")
        await self.provider.navigate(handle, self.config.entry_url)

        # ── Step 6: Readiness polling ────────────────────────────────
        await self._wait_for_login_form(handle)
        if settle.form_stabilize > 0:
            await asyncio.sleep(settle.form_stabilize)

        # ── Step 7: Field discovery ──────────────────────────────────
        fields = parse_inputs(await self._inject(handle, scripts.INPUT_SNAPSHOT))
        pair = discover_fields(fields, self.field_strategies)
        if pair is None:
            diagnostics = input_diagnostics(fields)
            logger.error(f"[AUTH] Could not find login fields: {diagnostics}")
            return AuthResult.failure(
                ErrorKind.LOGIN_FORM_NOT_FOUND, "Login form not found", diagnostics
            )

        # ── Step 8: Inject credentials ───────────────────────────────
        filled = await self._inject(handle, scripts.FILL_CREDENTIALS, {
            "userIndex": pair.username.index,
            "passwordIndex": pair.password.index,
            "userId": credentials.user_id,
            "secret": secret,
        }) or {}
        if not filled.get("filled"):
            return AuthResult.failure(
                ErrorKind.LOGIN_FORM_NOT_FOUND,
                "Login fields disappeared before they could be filled",
                input_diagnostics(fields),
            )
        logger.info(f"[AUTH] Credentials filled (strategy={pair.strategy})")

        # ── Step 9: Submit ───────────────────────────────────────────
        snapshot = ControlSnapshot.from_raw(await self._inject(
            handle, scripts.CONTROL_SNAPSHOT,
            {"selector": CONTROL_SELECTOR, "passwordIndex": pair.password.index},
        ))
        submission = discover_submission(snapshot, self.submit_strategies)
        if submission is None:
            return AuthResult.failure(
                ErrorKind.LOGIN_BUTTON_NOT_FOUND,
                "Login button not found",
                control_diagnostics(snapshot),
            )
        submitted = await self._inject(handle, scripts.SUBMIT_LOGIN, {
            "mode": submission.mode,
            "index": submission.index,
            "selector": CONTROL_SELECTOR,
            "passwordIndex": pair.password.index,
            "delayMs": settle.click_delay_ms,
        }) or {}
        if not submitted.get("submitted"):
            return AuthResult.failure(
                ErrorKind.LOGIN_BUTTON_NOT_FOUND,
                "Login control vanished before submission",
                control_diagnostics(snapshot),
            )
        logger.info(f"[AUTH] Submitted (strategy={submission.strategy})")

        # ── Step 10: Settle ──────────────────────────────────────────
        if settle.post_submit > 0:
            await asyncio.sleep(settle.post_submit)

        # ── Step 11: Classify ────────────────────────────────────────
        current_url = self.provider.current_url(handle)
        page_check = await self._inject(handle, scripts.PAGE_CHECK, self.config.error_selectors)
        logger.info(f"[AUTH] Post-login URL: {current_url[:120]}")
        return classify_outcome(current_url, page_check, self.config)

    async def _wait_for_login_form(self, handle: SurfaceHandle) -> bool:
        """Poll until a username-like and a password input are visible.

        Best effort: some deployments render the form without the hints the
        probe looks for, so exhausting the attempts is only logged.
        """
        settle = self.config.settle
        hints = [h.lower() for h in self.config.identity_hints]
        for attempt in range(1, settle.readiness_attempts + 1):
            if settle.readiness_interval > 0:
                await asyncio.sleep(settle.readiness_interval)
            probe = await self._inject(handle, scripts.READINESS_PROBE, hints) or {}
            logger.debug(
                f"[AUTH] Readiness {attempt}/{settle.readiness_attempts}: "
                f"found={probe.get('found')}, visible={probe.get('visibleInputCount')}"
            )
            if probe.get("found"):
                logger.info("[AUTH] Login form detected")
                return True
        logger.warning(
            f"[AUTH] Login form not confirmed after {settle.readiness_attempts} attempts "
            f"— continuing anyway"
        )
        return False
