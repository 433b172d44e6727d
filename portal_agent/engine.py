"""
Portal Engine
=============
Public facade over the session, authentication coordinator and
extraction pipeline.  One engine owns one session; create several
engines for several independent sessions.

Every operation returns a result object (``AuthResult`` / ``FetchResult``)
or ``None``.  Internal exceptions never cross this boundary.

Usage::

    engine = PortalEngine(PortalRunConfig.from_env())
    auth = await engine.login("u1", encrypted_secret)
    if auth.success:
        result = await engine.fetch_records("Hong Gildong", "1N2")
    await engine.close()
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .auth import (
    AesCredentialCodec,
    AuthenticationCoordinator,
    CredentialCodec,
    Credentials,
    CredentialStore,
    EnvCredentialStore,
)
from .auth.discovery import FieldStrategy, SubmitStrategy
from .extraction import ExtractionPipeline
from .models import AuthResult, ErrorKind, ExtractionError, FetchResult
from .run_config import PortalRunConfig
from .session import Session
from .surface import BrowserSurfaceProvider, PlaywrightSurfaceProvider

logger = logging.getLogger(__name__)


class PortalEngine:
    """Login + extraction against one shared portal session."""

    def __init__(
        self,
        config: Optional[PortalRunConfig] = None,
        provider: Optional[BrowserSurfaceProvider] = None,
        codec: Optional[CredentialCodec] = None,
        credential_store: Optional[CredentialStore] = None,
        field_strategies: Optional[List[FieldStrategy]] = None,
        submit_strategies: Optional[List[SubmitStrategy]] = None,
    ):
        self.config = config or PortalRunConfig()
        self.provider = provider or PlaywrightSurfaceProvider(self.config)
        self.codec = codec or AesCredentialCodec(
            self.config.codec_passphrase, self.config.codec_salt
        )
        self.credential_store = credential_store or EnvCredentialStore()
        self.session = Session(self.provider)
        self.coordinator = AuthenticationCoordinator(
            self.session,
            self.codec,
            self.config,
            field_strategies=field_strategies,
            submit_strategies=submit_strategies,
        )
        self.pipeline = ExtractionPipeline(self.session, self.config)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, user_id: str, encrypted_secret: str) -> AuthResult:
        return await self.coordinator.login(
            Credentials(user_id=user_id or "", secret=encrypted_secret or "")
        )

    async def login_with_stored_credentials(self) -> AuthResult:
        credentials = self.credential_store.load()
        if credentials is None:
            return AuthResult.failure(
                ErrorKind.NO_STORED_CREDENTIALS, "No stored credentials"
            )
        return await self.coordinator.login(credentials)

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    async def logout(self) -> None:
        """Destroy the surface and reset the session.  Safe to call repeatedly."""
        try:
            await self.session.release_surface()
        except Exception as e:
            logger.warning(f"[SESSION] Surface teardown error: {e}")
        self.session.invalidate()
        logger.info("[SESSION] Logged out")

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def fetch_records(self, name: str, partition: str = "") -> FetchResult:
        try:
            records = await self.pipeline.fetch_records(name, partition)
        except ExtractionError as e:
            logger.error(f"[EXTRACT] ❌ {e.kind.value}: {e.message}")
            return FetchResult.failure(e.kind, e.message)
        except Exception as e:
            logger.error(f"[EXTRACT] Surface error: {e}")
            return FetchResult.failure(ErrorKind.SURFACE_ERROR, str(e) or type(e).__name__)
        return FetchResult.ok(records)

    # ------------------------------------------------------------------
    # Surface management
    # ------------------------------------------------------------------

    async def set_surface_visible(self, visible: bool) -> None:
        if not self.session.surface_open():
            logger.info("[SURFACE] No open surface to show or hide")
            return
        try:
            await self.provider.set_visible(self.session.surface, visible)
        except Exception as e:
            logger.warning(f"[SURFACE] Visibility toggle failed: {e}")

    async def close(self) -> None:
        """Log out and release provider-wide resources."""
        await self.logout()
        try:
            await self.provider.shutdown()
        except Exception as e:
            logger.warning(f"[SURFACE] Provider shutdown error: {e}")
