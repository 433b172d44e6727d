"""
Extraction Pipeline
===================
Pulls the request-history grid out of the portal's embedded widget.

Flow (``fetch_records``):
    1. Navigate to the list view unless already there       (settle)
    2. Activate the menu entry                               → MenuNotFound
    3. Wait for the tab's iframe to attach                   (settle)
    4. Resolve the sub-document via ``aria-controls``        → SubDocumentNotFound
    5. Compute the default search window
    6. Push filters through the in-page config API           (soft)
    7. Tick the "search by handler" toggle                   (soft)
    8. Fire the search trigger                               (soft)
    9. Wait for results                                      (settle)
   10. Harvest via the grid accessor                         → GridNotFound
   11. Map rows to ``ExtractedRecord``

Hard failures raise ``ExtractionError``; the engine turns them into a
``FetchResult``.  Soft steps only log: some deployments pre-filter
server-side and expose neither the API nor a usable trigger, in which
case whatever the grid already holds is the answer.

Concurrent calls are not serialized here and would race on the shared
surface.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ..models import ErrorKind, ExtractedRecord, ExtractionError
from ..run_config import PortalRunConfig
from ..session import Session
from ..surface import SurfaceHandle
from . import scripts
from .records import map_rows, sanitize_partition, search_window

logger = logging.getLogger(__name__)

# Selector for clickable controls inside the sub-document
TRIGGER_SELECTOR = 'button, input[type="button"], input[type="submit"], a'

_FRAME_ERRORS: Dict[str, str] = {
    "no_menu": "Menu tab for the request list not found",
    "no_tab": "Menu tab has no associated sub-document id",
    "no_frame": "Sub-document for the request list not found",
}


@dataclass(frozen=True)
class Trigger:
    """One way of starting the search, in priority order."""
    kind: str                # "function" | "control"
    strategy: str
    name: str = ""
    index: int = -1


def discover_triggers(probe: Optional[Dict[str, Any]], config: PortalRunConfig) -> List[Trigger]:
    """Rank every available search trigger.

    Priority:
        1. Named search functions on the sub-document window (lexicon order)
        2. Controls whose whole label is a search word (visible first)
        3. Controls whose label contains a search keyword
        4. Controls whose id looks like a search button
    """
    probe = probe or {}
    available = set(probe.get("functions") or [])
    triggers = [
        Trigger("function", "named_function", name=name)
        for name in config.search_function_names
        if name in available
    ]

    controls = sorted(
        probe.get("controls") or [], key=lambda c: not c.get("visible")
    )
    exact = {w.strip().lower() for w in config.search_lexicon}
    keywords = [w.lower() for w in config.search_keywords]
    ids = [i.lower() for i in config.search_control_ids]
    exact_hits: List[Trigger] = []
    keyword_hits: List[Trigger] = []
    seen = set()

    for control in controls:
        text = str(control.get("text") or control.get("value") or "").strip().lower()
        title = str(control.get("title") or "").strip().lower()
        trigger = Trigger("control", "labelled_control", index=int(control["index"]))
        if text in exact or title in exact:
            exact_hits.append(trigger)
        elif any(w in text or w in title for w in keywords):
            keyword_hits.append(trigger)
        else:
            continue
        seen.add(control["index"])
    triggers.extend(exact_hits + keyword_hits)

    for control in controls:
        if control["index"] in seen:
            continue
        control_id = str(control.get("id") or "").lower()
        if control_id and (control_id in ids or "search" in control_id):
            triggers.append(Trigger("control", "id_control", index=int(control["index"])))
            seen.add(control["index"])

    return triggers


class ExtractionPipeline:
    """Runs the extraction flow against an authenticated ``Session``."""

    def __init__(
        self,
        session: Session,
        config: Optional[PortalRunConfig] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.session = session
        self.config = config or PortalRunConfig()
        self.clock = clock

    @property
    def provider(self):
        return self.session.provider

    async def _inject(self, handle: SurfaceHandle, script: str, arg: Any = None) -> Any:
        return await self.provider.inject_script(handle, script, arg)

    async def fetch_records(
        self, filter_name: str, filter_partition: str = ""
    ) -> List[ExtractedRecord]:
        if not self.session.is_authenticated():
            raise ExtractionError(ErrorKind.NOT_AUTHENTICATED, "Not logged in to the portal")

        cfg = self.config
        settle = cfg.settle
        handle = self.session.surface
        label = cfg.menu_label

        # ── Step 1: List view ────────────────────────────────────────
        if cfg.list_view_marker not in self.provider.current_url(handle):
            logger.info(f"[EXTRACT] Navigating to list view: {cfg.list_view_url[:80]}")
            await self.provider.navigate(handle, cfg.list_view_url)
            await asyncio.sleep(settle.list_view)

        # ── Step 2: Menu ─────────────────────────────────────────────
        menu = await self._inject(handle, scripts.ACTIVATE_MENU, {
            "label": label, "selector": cfg.menu_selector,
        }) or {}
        if not menu.get("activated"):
            raise ExtractionError(ErrorKind.MENU_NOT_FOUND, f"Menu '{label}' not found")
        logger.info(f"[EXTRACT] Menu activated (<{menu.get('tag')}>)")

        # ── Step 3–4: Sub-document ───────────────────────────────────
        await asyncio.sleep(settle.sub_document)
        frame = await self._inject(handle, scripts.RESOLVE_SUB_DOCUMENT, {"label": label})
        self._require_frame(frame)

        # ── Step 5–7: Search settings ────────────────────────────────
        start, end = search_window(self.clock(), cfg.search_window_months)
        await self._configure_search(handle, filter_name, filter_partition, start, end)
        await self._check_toggle(handle)

        # ── Step 8–9: Trigger + settle ───────────────────────────────
        await self._trigger_search(handle)
        await asyncio.sleep(settle.search_results)

        # ── Step 10–11: Harvest + map ────────────────────────────────
        harvest = await self._inject(handle, scripts.HARVEST_GRID, {
            "label": label, "grid": cfg.grid_name, "accessor": cfg.grid_accessor,
        })
        self._require_frame(harvest)
        if not harvest.get("available"):
            raise ExtractionError(ErrorKind.GRID_NOT_FOUND, "Result grid not found")

        records = map_rows(harvest.get("rows") or [], cfg.detail_url_template)
        logger.info(f"[EXTRACT] Harvested {len(records)} records")
        return records

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_frame(result: Optional[Dict[str, Any]]) -> None:
        status = (result or {}).get("status", "no_frame")
        if status != "ok":
            raise ExtractionError(
                ErrorKind.SUB_DOCUMENT_NOT_FOUND,
                _FRAME_ERRORS.get(status, _FRAME_ERRORS["no_frame"]),
            )

    async def _configure_search(
        self,
        handle: SurfaceHandle,
        filter_name: str,
        filter_partition: str,
        start: str,
        end: str,
    ) -> None:
        cfg = self.config
        settings = [
            ["PROGRESSION_TYPE", cfg.status_filter],
            ["START_DATE", start],
            ["END_DATE", end],
            ["RECEIPT_INFO_SEARCH_TYPE", cfg.search_mode],
            ["RECEIPT_INFO_TEXT", filter_name or ""],
            ["UNIDOCU_PART_TYPE", sanitize_partition(filter_partition, cfg.partition_separator)],
        ]
        try:
            result = await self._inject(handle, scripts.CONFIGURE_SEARCH, {
                "label": cfg.menu_label,
                "namespace": cfg.config_api_namespace,
                "method": cfg.config_api_method,
                "settings": settings,
            }) or {}
        except Exception as e:
            logger.warning(f"[EXTRACT] Search configuration failed, continuing: {e}")
            return
        if result.get("apiAvailable"):
            logger.info(f"[EXTRACT] Search window {start} → {end} applied")
        else:
            logger.info("[EXTRACT] Config API not exposed — relying on server-side filter")

    async def _check_toggle(self, handle: SurfaceHandle) -> None:
        try:
            result = await self._inject(handle, scripts.CHECK_TOGGLE, {
                "label": self.config.menu_label, "name": self.config.handler_toggle_name,
            }) or {}
        except Exception as e:
            logger.warning(f"[EXTRACT] Handler toggle failed, continuing: {e}")
            return
        if not result.get("toggled"):
            logger.debug("[EXTRACT] No handler toggle present")

    async def _trigger_search(self, handle: SurfaceHandle) -> bool:
        cfg = self.config
        try:
            probe = await self._inject(handle, scripts.TRIGGER_PROBE, {
                "label": cfg.menu_label,
                "functionNames": cfg.search_function_names,
                "selector": TRIGGER_SELECTOR,
            })
        except Exception as e:
            logger.warning(f"[EXTRACT] Trigger probe failed: {e}")
            return False

        for trigger in discover_triggers(probe, cfg):
            try:
                result = await self._inject(handle, scripts.INVOKE_TRIGGER, {
                    "label": cfg.menu_label,
                    "kind": trigger.kind,
                    "name": trigger.name,
                    "index": trigger.index,
                    "selector": TRIGGER_SELECTOR,
                }) or {}
            except Exception as e:
                logger.debug(f"[EXTRACT] Trigger {trigger} raised: {e}")
                continue
            if result.get("invoked"):
                logger.info(
                    f"[EXTRACT] Search triggered via {trigger.strategy} ({result.get('via')})"
                )
                return True
            logger.debug(f"[EXTRACT] Trigger {trigger} did not fire: {result.get('error')}")

        logger.warning("[EXTRACT] No search trigger responded — reading existing grid content")
        return False
