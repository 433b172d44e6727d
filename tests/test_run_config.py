"""
Tests for PortalRunConfig factories and settle budgets.
"""

from argparse import Namespace

from portal_agent.run_config import PortalRunConfig, SettleBudget


class TestDefaults:

    def test_portal_defaults(self):
        cfg = PortalRunConfig()
        assert cfg.entry_url.endswith("welcome.uni")
        assert cfg.menu_label == "요청내역관리"
        assert cfg.search_window_months == 6
        assert cfg.headless is True

    def test_lists_are_not_shared(self):
        a, b = PortalRunConfig(), PortalRunConfig()
        a.search_lexicon.append("찾기")
        assert "찾기" not in b.search_lexicon

    def test_immediate_budget(self):
        settle = SettleBudget.immediate()
        assert settle.post_submit == 0
        assert settle.readiness_attempts == 1
        assert settle.click_delay_ms == 0


class TestFromEnv:

    def test_overrides(self):
        cfg = PortalRunConfig.from_env({
            "PORTAL_ENTRY_URL": "https://portal.test/welcome.uni",
            "PORTAL_MENU_LABEL": "Requests",
            "PORTAL_HEADLESS": "false",
            "PORTAL_SEARCH_WINDOW_MONTHS": "3",
        })
        assert cfg.entry_url == "https://portal.test/welcome.uni"
        assert cfg.menu_label == "Requests"
        assert cfg.headless is False
        assert cfg.search_window_months == 3

    def test_bad_month_count_ignored(self, caplog):
        cfg = PortalRunConfig.from_env({"PORTAL_SEARCH_WINDOW_MONTHS": "six"})
        assert cfg.search_window_months == 6
        assert "PORTAL_SEARCH_WINDOW_MONTHS" in caplog.text

    def test_empty_values_keep_defaults(self):
        cfg = PortalRunConfig.from_env({"PORTAL_ENTRY_URL": "", "PORTAL_HEADLESS": ""})
        assert cfg.entry_url == PortalRunConfig().entry_url
        assert cfg.headless is True


class TestFromCliArgs:

    def test_show_browser_and_entry_url(self):
        args = Namespace(show_browser=True, entry_url="https://portal.test/welcome.uni")
        cfg = PortalRunConfig.from_cli_args(args, environ={})
        assert cfg.headless is False
        assert cfg.entry_url == "https://portal.test/welcome.uni"

    def test_missing_attributes(self):
        cfg = PortalRunConfig.from_cli_args(Namespace(), environ={})
        assert cfg.headless is True
