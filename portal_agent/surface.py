"""
Browser Surface Provider
========================
Isolated, navigable, script-injectable page surfaces for the engine.

Architecture:
    - ``SurfaceHandle``           — opaque handle owned by exactly one session
    - ``BrowserSurfaceProvider``  — abstract contract the engine depends on
    - ``PlaywrightSurfaceProvider`` — Chromium via the Playwright async API

The engine only ever talks to the abstract provider, so tests can swap in
a recording fake and never start a browser.

Visibility:
    Surfaces are hidden from the user by default.  In headed mode the
    window is minimised / restored through the CDP ``Browser.setWindowBounds``
    command; in headless mode ``set_visible`` is a logged no-op.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .run_config import PortalRunConfig

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class SurfaceHandle:
    """Opaque reference to one page surface.

    ``page`` / ``context`` are provider-specific and may be ``None`` for
    non-Playwright providers.
    """
    surface_id: int
    page: Optional[Page] = None
    context: Optional[BrowserContext] = None
    extra: dict = field(default_factory=dict)


class BrowserSurfaceProvider(ABC):
    """Contract for anything that can host an automation surface."""

    @abstractmethod
    async def create(self) -> SurfaceHandle:
        """Create a fresh, isolated surface."""
        ...

    @abstractmethod
    async def navigate(self, handle: SurfaceHandle, url: str) -> None:
        """Load *url* in the surface and wait for the load event."""
        ...

    @abstractmethod
    def is_open(self, handle: Optional[SurfaceHandle]) -> bool:
        """True while the surface has not been destroyed."""
        ...

    @abstractmethod
    def current_url(self, handle: SurfaceHandle) -> str:
        ...

    @abstractmethod
    async def inject_script(
        self, handle: SurfaceHandle, script: str, arg: Any = None
    ) -> Any:
        """Evaluate a JS function expression in the page, returning its JSON result."""
        ...

    @abstractmethod
    async def destroy(self, handle: SurfaceHandle) -> None:
        """Close the surface.  Must tolerate already-closed handles."""
        ...

    async def set_visible(self, handle: SurfaceHandle, visible: bool) -> None:
        """Show or hide the surface (debugging aid).  Optional."""
        logger.debug("[SURFACE] Visibility toggle not supported by this provider")

    def on_close(self, handle: SurfaceHandle, callback: Callable[[], None]) -> None:
        """Register *callback* for closure by an external actor.  Optional."""

    async def shutdown(self) -> None:
        """Release provider-wide resources (browser process etc.)."""


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------

class PlaywrightSurfaceProvider(BrowserSurfaceProvider):
    """Chromium surfaces, one BrowserContext per surface.

    The browser process is launched lazily on the first ``create()`` and
    shared by all surfaces until ``shutdown()``.
    """

    def __init__(self, config: Optional[PortalRunConfig] = None):
        self.config = config or PortalRunConfig()
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()
        self._next_id = 0
        self._visible = False

    async def _ensure_browser(self) -> Browser:
        async with self._launch_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._pw is None:
                    self._pw = await async_playwright().start()
                logger.info(
                    f"[SURFACE] Launching Chromium (headless={self.config.headless})"
                )
                self._browser = await self._pw.chromium.launch(
                    headless=self.config.headless,
                    args=[
                        '--no-sandbox',
                        '--disable-dev-shm-usage',
                    ],
                )
            return self._browser

    async def create(self) -> SurfaceHandle:
        browser = await self._ensure_browser()
        context = await browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            user_agent=self.config.user_agent,
        )
        page = await context.new_page()
        page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
        self._next_id += 1
        handle = SurfaceHandle(surface_id=self._next_id, page=page, context=context)
        logger.info(f"[SURFACE] Surface #{handle.surface_id} created")

        if not self.config.headless and not self._visible:
            await self.set_visible(handle, False)
        return handle

    async def navigate(self, handle: SurfaceHandle, url: str) -> None:
        logger.debug(f"[SURFACE] #{handle.surface_id} → {url[:100]}")
        await handle.page.goto(
            url, wait_until="load", timeout=self.config.navigation_timeout_ms
        )

    def is_open(self, handle: Optional[SurfaceHandle]) -> bool:
        return bool(handle and handle.page and not handle.page.is_closed())

    def current_url(self, handle: SurfaceHandle) -> str:
        if not self.is_open(handle):
            return ""
        return handle.page.url

    async def inject_script(
        self, handle: SurfaceHandle, script: str, arg: Any = None
    ) -> Any:
        if arg is None:
            return await handle.page.evaluate(script)
        return await handle.page.evaluate(script, arg)

    async def destroy(self, handle: SurfaceHandle) -> None:
        if handle.context is None:
            return
        try:
            await handle.context.close()
            logger.info(f"[SURFACE] Surface #{handle.surface_id} destroyed")
        except Exception as e:
            # Context already gone (browser crash, user closed the window)
            logger.debug(f"[SURFACE] Destroy on closed surface #{handle.surface_id}: {e}")

    async def set_visible(self, handle: SurfaceHandle, visible: bool) -> None:
        self._visible = visible
        if self.config.headless:
            logger.info(
                "[SURFACE] Headless surface cannot be shown — "
                "relaunch with headless=False to debug visually"
            )
            return
        if not self.is_open(handle):
            return
        cdp = await handle.context.new_cdp_session(handle.page)
        try:
            window = await cdp.send("Browser.getWindowForTarget")
            state = "normal" if visible else "minimized"
            await cdp.send(
                "Browser.setWindowBounds",
                {"windowId": window["windowId"], "bounds": {"windowState": state}},
            )
            if visible:
                await handle.page.bring_to_front()
            logger.info(f"[SURFACE] Surface #{handle.surface_id} window {state}")
        finally:
            await cdp.detach()

    def on_close(self, handle: SurfaceHandle, callback: Callable[[], None]) -> None:
        if handle.page is not None:
            handle.page.on("close", lambda _page: callback())

    async def shutdown(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"[SURFACE] Browser close error: {e}")
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None
