"""
Shared fixtures: a recording fake surface provider and canned portal pages.

The fake never starts a browser.  Each injected script is answered from
``responses`` keyed by the script constant itself; a value may be a plain
result, a callable taking the script argument, or an exception to raise.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from portal_agent.auth import scripts as auth_scripts
from portal_agent.auth.credentials import CredentialCodec
from portal_agent.extraction import scripts as list_scripts
from portal_agent.run_config import PortalRunConfig, SettleBudget
from portal_agent.session import Session
from portal_agent.surface import BrowserSurfaceProvider, SurfaceHandle

LOGIN_URL = "https://114.unipost.co.kr/welcome.uni"
HOME_URL = "https://114.unipost.co.kr/home.uni"


class FakeSurfaceProvider(BrowserSurfaceProvider):
    """Records create / navigate / inject / destroy calls (``is_open`` is free)."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[Tuple[str, Any]] = []
        self.injected: List[Tuple[str, Any]] = []
        self.failures: Dict[str, Exception] = {}
        self.visibility: List[bool] = []
        self.shutdowns = 0
        self._open: Dict[int, str] = {}
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_id = 0

    # ── helpers ──────────────────────────────────────────────────

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    def args_for(self, script: str) -> List[Any]:
        return [arg for s, arg in self.injected if s == script]

    def set_url(self, url: str) -> None:
        for surface_id in self._open:
            self._open[surface_id] = url

    def close_externally(self, handle: SurfaceHandle) -> None:
        self._open.pop(handle.surface_id, None)
        callback = self._callbacks.pop(handle.surface_id, None)
        if callback:
            callback()

    def _maybe_fail(self, op: str) -> None:
        if op in self.failures:
            raise self.failures[op]

    # ── provider contract ────────────────────────────────────────

    async def create(self) -> SurfaceHandle:
        self._maybe_fail("create")
        self._next_id += 1
        handle = SurfaceHandle(surface_id=self._next_id)
        self._open[handle.surface_id] = ""
        self.calls.append(("create", handle.surface_id))
        return handle

    async def navigate(self, handle: SurfaceHandle, url: str) -> None:
        self.calls.append(("navigate", url))
        self._maybe_fail("navigate")
        self._open[handle.surface_id] = url

    def is_open(self, handle: Optional[SurfaceHandle]) -> bool:
        return handle is not None and handle.surface_id in self._open

    def current_url(self, handle: SurfaceHandle) -> str:
        return self._open.get(handle.surface_id, "")

    async def inject_script(self, handle: SurfaceHandle, script: str, arg: Any = None) -> Any:
        self.calls.append(("inject", script))
        self.injected.append((script, arg))
        response = self.responses.get(script)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(arg)
        return response

    async def destroy(self, handle: SurfaceHandle) -> None:
        self.calls.append(("destroy", handle.surface_id))
        self._open.pop(handle.surface_id, None)
        self._callbacks.pop(handle.surface_id, None)

    async def set_visible(self, handle: SurfaceHandle, visible: bool) -> None:
        self.visibility.append(visible)

    def on_close(self, handle: SurfaceHandle, callback: Callable[[], None]) -> None:
        self._callbacks[handle.surface_id] = callback

    async def shutdown(self) -> None:
        self.shutdowns += 1


class BlockingCreateProvider(FakeSurfaceProvider):
    """The first ``create()`` hangs until ``release`` is set."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        super().__init__(responses)
        self.release = asyncio.Event()
        self._blocked = False

    async def create(self) -> SurfaceHandle:
        if not self._blocked:
            self._blocked = True
            await self.release.wait()
        return await super().create()


class PrefixCodec(CredentialCodec):
    """Toy codec: ciphertext is ``enc:<plaintext>``."""

    def encrypt(self, plaintext: str) -> str:
        return f"enc:{plaintext}" if plaintext else ""

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext or not ciphertext.startswith("enc:"):
            return ""
        return ciphertext[4:]


# ---------------------------------------------------------------------------
# Canned pages
# ---------------------------------------------------------------------------

LOGIN_INPUTS = [
    {"index": 0, "type": "hidden", "name": "returnUrl", "id": "", "placeholder": "", "visible": False},
    {"index": 1, "type": "text", "name": "userId", "id": "userId", "placeholder": "ID", "visible": True},
    {"index": 2, "type": "password", "name": "userPw", "id": "userPw", "placeholder": "", "visible": True},
]

LOGIN_CONTROLS = {
    "hasForm": True,
    "controls": [
        {"index": 0, "tag": "a", "type": "", "text": "아이디 찾기", "value": "", "title": "",
         "visible": True, "inForm": False},
        {"index": 1, "tag": "button", "type": "submit", "text": "로그인", "value": "", "title": "",
         "visible": True, "inForm": True},
    ],
}

GRID_ROWS = [
    {"SR_IDX": 101, "REQ_TITLE": "프린터 고장", "STATUS": "접수", "REQ_DATE": "2024-05-01",
     "PT_NAME": "HW", "REQ_NAME": "김철수", "WRITER": "홍길동"},
    {"SR_IDX": 102, "REQ_TITLE": "계정 잠김", "STATUS": "처리중", "PROC_DATE": "2024-05-02",
     "PT_NAME": "ACCOUNT", "REQ_NAME": "이영희", "WRITER": "홍길동"},
    {"SR_IDX": 103, "REQ_TITLE": "메일 용량", "STATUS": "완료", "REQ_DATE": "2024-05-03",
     "PT_NAME": "MAIL", "REQ_NAME": "박민수"},
]


def install_login_page(
    fake: FakeSurfaceProvider,
    landing_url: str = HOME_URL,
    page_check: Optional[Dict[str, Any]] = None,
) -> None:
    """Answer every login script; submitting moves the surface to *landing_url*."""

    def submit(arg):
        fake.set_url(landing_url)
        return {"submitted": True, "method": arg["mode"]}

    fake.responses.update({
        auth_scripts.READINESS_PROBE: {
            "found": True, "visibleInputCount": 2, "hasUserField": True, "hasPasswordField": True,
        },
        auth_scripts.INPUT_SNAPSHOT: LOGIN_INPUTS,
        auth_scripts.FILL_CREDENTIALS: {"filled": True},
        auth_scripts.CONTROL_SNAPSHOT: LOGIN_CONTROLS,
        auth_scripts.SUBMIT_LOGIN: submit,
        auth_scripts.PAGE_CHECK: lambda _arg: dict(
            {"url": landing_url, "hasError": False, "errorText": "",
             "title": "Unipost", "bodyText": ""},
            **(page_check or {}),
        ),
    })


def install_list_view(fake: FakeSurfaceProvider, rows: Optional[List[Dict[str, Any]]] = None) -> None:
    fake.responses.update({
        list_scripts.ACTIVATE_MENU: {"activated": True, "tag": "li", "candidates": 1},
        list_scripts.RESOLVE_SUB_DOCUMENT: {"status": "ok", "tabId": "tab-01"},
        list_scripts.CONFIGURE_SEARCH: {"status": "ok", "apiAvailable": True, "applied": 6},
        list_scripts.CHECK_TOGGLE: {"status": "ok", "toggled": True},
        list_scripts.TRIGGER_PROBE: {"status": "ok", "functions": ["fn_search"], "controls": []},
        list_scripts.INVOKE_TRIGGER: {"status": "ok", "invoked": True, "via": "function"},
        list_scripts.HARVEST_GRID: {
            "status": "ok", "available": True, "rows": GRID_ROWS if rows is None else rows,
        },
    })


async def make_authenticated_session(fake: FakeSurfaceProvider, url: str = HOME_URL) -> Session:
    session = Session(fake)
    session.begin_authentication()
    await session.acquire_surface()
    session.finish_authentication(True)
    fake.set_url(url)
    fake.calls.clear()
    return session


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake() -> FakeSurfaceProvider:
    return FakeSurfaceProvider()


@pytest.fixture
def config() -> PortalRunConfig:
    return PortalRunConfig(settle=SettleBudget.immediate())


@pytest.fixture
def codec() -> PrefixCodec:
    return PrefixCodec()
