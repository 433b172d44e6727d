"""
Unified Run Configuration
=========================
Single source of truth for the engine's portal URLs, heuristics lexicons
and settle budgets.

The target portal gives no reliable "done" signal for any of its
asynchronous widgets, so every wait in the engine is a named
``SettleBudget`` value rather than an inline sleep.  Tests build a
``SettleBudget.immediate()`` to run the full flows without waiting.

Populate via:
    - ``PortalRunConfig()``                 → all defaults
    - ``PortalRunConfig.from_env()``        → ``PORTAL_*`` environment vars
    - ``PortalRunConfig.from_cli_args(ns)`` → argparse Namespace (CLI)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "entry_url": "https://114.unipost.co.kr/welcome.uni",
    "list_view_url": "https://114.unipost.co.kr/home.uni",
    "list_view_marker": "home.uni",
    "login_url_marker": "welcome.uni",
    "detail_url_template": "https://114.unipost.co.kr/receipt/detail?srIdx={id}",
    "menu_label": "요청내역관리",
    "status_filter": "R,E,O,A,C,N,M",
    "search_mode": "P",                # "P" = search by handler
    "search_window_months": 6,
    "partition_separator": "N",
    "headless": True,
    "viewport_width": 1280,
    "viewport_height": 720,
    "navigation_timeout_ms": 60_000,
    "codec_passphrase": "help-work-app-secret",
    "codec_salt": "salt",
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SettleBudget:
    """Fixed waits (seconds) substituting for missing completion events."""

    # ── Login mutex ──────────────────────────────────────────────
    login_poll_interval: float = 0.5
    login_wait_ceiling: float = 20.0

    # ── Login form ───────────────────────────────────────────────
    readiness_attempts: int = 15
    readiness_interval: float = 1.0
    form_stabilize: float = 1.0
    post_submit: float = 5.0

    # ── Extraction ───────────────────────────────────────────────
    list_view: float = 3.0
    sub_document: float = 3.0
    search_results: float = 4.0

    # Delay the page waits before clicking submit, so the script that
    # scheduled the click can return its result first.
    click_delay_ms: int = 200

    @classmethod
    def immediate(cls, readiness_attempts: int = 1) -> "SettleBudget":
        """Near-zero budget for tests and dry runs."""
        return cls(
            login_poll_interval=0.0,
            login_wait_ceiling=0.0,
            readiness_attempts=readiness_attempts,
            readiness_interval=0.0,
            form_stabilize=0.0,
            post_submit=0.0,
            list_view=0.0,
            sub_document=0.0,
            search_results=0.0,
            click_delay_ms=0,
        )


@dataclass
class PortalRunConfig:
    """Configuration consumed by every engine subsystem."""

    # ---- Portal endpoints ----
    entry_url: str = _DEFAULTS["entry_url"]
    list_view_url: str = _DEFAULTS["list_view_url"]
    list_view_marker: str = _DEFAULTS["list_view_marker"]
    login_url_marker: str = _DEFAULTS["login_url_marker"]
    detail_url_template: str = _DEFAULTS["detail_url_template"]
    success_url_patterns: List[str] = field(
        default_factory=lambda: ["main", "home", "index"]
    )

    # ---- Login heuristics ----
    identity_hints: List[str] = field(
        default_factory=lambda: ["user", "id", "login", "account", "email"]
    )
    login_lexicon: List[str] = field(
        default_factory=lambda: ["로그인", "login", "log in", "sign in", "signin"]
    )
    error_selectors: List[str] = field(default_factory=lambda: [
        '.error-message', '.alert-danger', '.login-error', '.error', '.alert',
    ])

    # ---- Extraction target ----
    menu_label: str = _DEFAULTS["menu_label"]
    menu_selector: str = 'li, a, button, div[role="tab"]'
    config_api_namespace: str = "UNIUX"
    config_api_method: str = "SVC"
    status_filter: str = _DEFAULTS["status_filter"]
    search_mode: str = _DEFAULTS["search_mode"]
    search_window_months: int = _DEFAULTS["search_window_months"]
    partition_separator: str = _DEFAULTS["partition_separator"]
    handler_toggle_name: str = "RECEIPT_INFO_PROCESS"
    search_function_names: List[str] = field(default_factory=lambda: [
        'fn_search', 'fn_Search', 'doSearch', 'onSearch', 'search',
        'fnSearch', 'Search',
    ])
    # Exact control labels, then substrings ("검색조건 초기화" must not match)
    search_lexicon: List[str] = field(default_factory=lambda: ["조회", "검색"])
    search_keywords: List[str] = field(default_factory=lambda: ["Search"])
    search_control_ids: List[str] = field(default_factory=lambda: ["btn_search", "btnSearch"])
    grid_name: str = "grid"
    grid_accessor: str = "getAllRowValue"

    # ---- Browser surface ----
    headless: bool = _DEFAULTS["headless"]
    viewport_width: int = _DEFAULTS["viewport_width"]
    viewport_height: int = _DEFAULTS["viewport_height"]
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    user_agent: str = _DEFAULTS["user_agent"]

    # ---- Credential codec ----
    codec_passphrase: str = _DEFAULTS["codec_passphrase"]
    codec_salt: str = _DEFAULTS["codec_salt"]

    # ---- Settle budgets ----
    settle: SettleBudget = field(default_factory=SettleBudget)

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PortalRunConfig":
        """Build config from ``PORTAL_*`` environment variables.

        Recognised:
            ``PORTAL_ENTRY_URL``, ``PORTAL_LIST_VIEW_URL``,
            ``PORTAL_DETAIL_URL_TEMPLATE``, ``PORTAL_MENU_LABEL``,
            ``PORTAL_HEADLESS``, ``PORTAL_CODEC_PASSPHRASE``,
            ``PORTAL_SEARCH_WINDOW_MONTHS``
        """
        env = os.environ if environ is None else environ
        cfg = cls()
        overrides: Dict[str, str] = {
            "entry_url": "PORTAL_ENTRY_URL",
            "list_view_url": "PORTAL_LIST_VIEW_URL",
            "detail_url_template": "PORTAL_DETAIL_URL_TEMPLATE",
            "menu_label": "PORTAL_MENU_LABEL",
            "codec_passphrase": "PORTAL_CODEC_PASSPHRASE",
        }
        for attr, var in overrides.items():
            value = env.get(var, "")
            if value:
                setattr(cfg, attr, value)

        if env.get("PORTAL_HEADLESS"):
            cfg.headless = _env_bool(env["PORTAL_HEADLESS"])

        months = env.get("PORTAL_SEARCH_WINDOW_MONTHS", "")
        if months:
            try:
                cfg.search_window_months = int(months)
            except ValueError:
                logger.warning(
                    f"[CONFIG] Ignoring non-integer PORTAL_SEARCH_WINDOW_MONTHS={months!r}"
                )
        return cfg

    @classmethod
    def from_cli_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "PortalRunConfig":
        """Build config from an argparse Namespace (``__main__.py``)."""
        cfg = cls.from_env(environ)
        if getattr(args, "show_browser", False):
            cfg.headless = False
        entry_url = getattr(args, "entry_url", None)
        if entry_url:
            cfg.entry_url = entry_url
        return cfg

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger (no secrets)."""
        logger.info("=" * 60)
        logger.info("PORTAL RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Entry URL:        {self.entry_url}")
        logger.info(f"  List View:        {self.list_view_url}")
        logger.info(f"  Menu Label:       {self.menu_label}")
        logger.info(f"  Search Window:    {self.search_window_months} months")
        logger.info(f"  Headless:         {self.headless}")
        logger.info(f"  Post-submit wait: {self.settle.post_submit}s")
        logger.info("=" * 60)
