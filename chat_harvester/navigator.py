# navigator.py
# Open one conversation by name and prove the right one is showing.
#
#   Idle -> Searching -> Clicking -> WaitingForPanel -> VerifyingIdentity -> Done | Failed
#
# Searching runs an ordered list of search strategies (forward sweep from the top, backward sweep
# from the bottom, per-row bring-into-view sweep), each stopping on the first matching row.
# Clicking fires every activation mechanism in order; the page may ignore one class of input
# depending on window visibility/focus. A loaded panel only proves *some* conversation opened;
# the header must then match the requested name at tiers 1-3 before we report success.

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple

from .config import HarvestConfig
from .errors import SurfaceUnavailable
from .list_harvester import Sleep, find_row
from .models import (
    HEADER_MISMATCH,
    NOT_FOUND,
    PANEL_NOT_LOADED,
    SURFACE_UNAVAILABLE,
    NavigationOutcome,
)
from .surface import RawItem, RenderingSurface
from .text_match import Match, is_verified_match, match_tier
from . import trace

IDLE = "Idle"
SEARCHING = "Searching"
CLICKING = "Clicking"
WAITING_FOR_PANEL = "WaitingForPanel"
VERIFYING_IDENTITY = "VerifyingIdentity"
DONE = "Done"
FAILED = "Failed"

Found = Optional[Tuple[RawItem, Match]]


class Navigator:
    def __init__(self, surface: RenderingSurface, config: Optional[HarvestConfig] = None, sleep: Optional[Sleep] = None):
        self.surface = surface
        self.cfg = config or HarvestConfig()
        self._sleep = sleep or asyncio.sleep
        self.state = IDLE
        self.search_strategies: List[Tuple[str, Callable[[str], Awaitable[Found]]]] = [
            ("forward sweep", self._search_forward),
            ("backward sweep", self._search_backward),
            ("bring-into-view sweep", self._search_bring_into_view),
        ]
        self.activation_strategies: List[Tuple[str, Callable[[str], Awaitable[bool]]]] = [
            ("activate", self._activate),
            ("pointer", self._pointer),
        ]

    def _enter(self, state: str) -> None:
        trace.debug("navigate", f"{self.state} -> {state}")
        self.state = state

    def _fail(self, reason: str, name: str) -> NavigationOutcome:
        self._enter(FAILED)
        trace.warn("navigate", f'"{name}": {reason}')
        return NavigationOutcome(success=False, reason=reason, state=FAILED)

    async def open(self, name: str) -> NavigationOutcome:
        self.state = IDLE
        trace.log("navigate", f'opening "{name}"')
        try:
            return await self._open(name)
        except SurfaceUnavailable as e:
            trace.warn("navigate", f"surface unavailable: {e}")
            return self._fail(SURFACE_UNAVAILABLE, name)

    async def _open(self, name: str) -> NavigationOutcome:
        if await self.surface.return_to_list():
            await self._sleep(self.cfg.nav_click_settle_sec)

        # ---- Searching ----
        self._enter(SEARCHING)
        if await self.surface.scroll_metrics() is None:
            return self._fail(NOT_FOUND, name)
        found = await self._search(name)
        if found is None:
            return self._fail(NOT_FOUND, name)
        row, match = found
        trace.log("navigate", f'found row "{row.name}" ({match.tier_name} match)')

        # ---- Clicking ----
        self._enter(CLICKING)
        if not await self.surface.bring_into_view(row.item_id):
            # Row was recycled between the search probe and now; look once more.
            refound = await self._find_rendered(name)
            if refound is None or not await self.surface.bring_into_view(refound[0].item_id):
                return self._fail(NOT_FOUND, name)
            row = refound[0]
        await self._sleep(self.cfg.nav_click_settle_sec)
        fired = []
        for label, strategy in self.activation_strategies:
            try:
                if await strategy(row.item_id):
                    fired.append(label)
            except SurfaceUnavailable:
                raise
            except Exception as e:
                trace.debug("navigate", f"{label} activation failed: {e!r}")
        trace.debug("navigate", f"activation fired: {', '.join(fired) or 'none'}")
        await self._sleep(self.cfg.nav_click_settle_sec)

        # ---- WaitingForPanel ----
        self._enter(WAITING_FOR_PANEL)
        if not await self._wait_for_panel():
            return self._fail(PANEL_NOT_LOADED, name)

        # ---- VerifyingIdentity ----
        self._enter(VERIFYING_IDENTITY)
        await self._sleep(self.cfg.header_settle_sec)
        headers = await self.surface.query_header_texts()
        verified = self._verified_header(name, headers)
        if verified is None:
            trace.debug("navigate", f"header candidates: {headers[:5]}")
            return self._fail(HEADER_MISMATCH, name)

        self._enter(DONE)
        trace.log("navigate", f'verified "{verified}" is open')
        return NavigationOutcome(success=True, matched_name=verified, state=DONE)

    # ---- searching ----

    async def _find_rendered(self, name: str) -> Found:
        return find_row(await self.surface.query_items(), name)

    async def _search(self, name: str) -> Found:
        found = await self._find_rendered(name)
        if found is not None:
            return found
        for label, strategy in self.search_strategies:
            trace.debug("navigate", f"searching with {label}")
            found = await strategy(name)
            if found is not None:
                return found
        return None

    async def _search_forward(self, name: str) -> Found:
        step = self.cfg.scroll_step
        position = 0.0
        await self.surface.set_scroll_top(0)
        await self._sleep(self.cfg.nav_settle_sec)
        seen = set()
        quiet = 0
        clamped = 0
        for _ in range(self.cfg.nav_max_probes):
            rows = await self.surface.query_items()
            found = find_row(rows, name)
            if found is not None:
                return found
            names = {r.name for r in rows}
            if names <= seen:
                quiet += 1
            else:
                quiet = 0
            seen |= names

            position += step
            await self.surface.set_scroll_top(position)
            await self._sleep(self.cfg.nav_settle_sec)
            metrics = await self.surface.scroll_metrics()
            if metrics is None:
                return None
            if abs(metrics.scroll_top - position) > self.cfg.clamp_tolerance_px:
                clamped += 1
                position = metrics.scroll_top
                if clamped >= self.cfg.edge_clamp_probes:
                    break
            else:
                clamped = 0
            if quiet >= self.cfg.stability_threshold:
                break
        return await self._find_rendered(name)

    async def _search_backward(self, name: str) -> Found:
        metrics = await self.surface.scroll_metrics()
        if metrics is None or not metrics.scrollable:
            return None
        position = metrics.scroll_height
        await self.surface.set_scroll_top(position)
        await self._sleep(self.cfg.nav_settle_sec)
        for _ in range(self.cfg.nav_reverse_max_probes):
            found = await self._find_rendered(name)
            if found is not None:
                return found
            if position <= 0:
                break
            position = max(0.0, position - self.cfg.scroll_step)
            await self.surface.set_scroll_top(position)
            await self._sleep(self.cfg.nav_settle_sec)
        return await self._find_rendered(name)

    async def _search_bring_into_view(self, name: str) -> Found:
        visited = set()
        for _ in range(self.cfg.max_fallback_visits):
            rows = await self.surface.query_items()
            pending = [r for r in rows if r.item_id not in visited]
            if not pending:
                break
            row = pending[0]
            visited.add(row.item_id)
            if not await self.surface.bring_into_view(row.item_id):
                continue
            await self._sleep(self.cfg.nav_sweep_settle_sec)
            found = await self._find_rendered(name)
            if found is not None:
                return found
        return None

    # ---- clicking ----

    async def _activate(self, item_id: str) -> bool:
        return await self.surface.activate_item(item_id)

    async def _pointer(self, item_id: str) -> bool:
        center = await self.surface.item_center(item_id)
        if center is None:
            return False
        x, y = center
        return await self.surface.dispatch_pointer_sequence(x, y)

    # ---- panel / verification ----

    async def _wait_for_panel(self) -> bool:
        for _ in range(self.cfg.panel_polls):
            if await self.surface.query_panel_marker():
                return True
            await self._sleep(self.cfg.panel_poll_sec)
        return await self.surface.query_panel_marker()

    @staticmethod
    def _verified_header(name: str, headers: List[str]) -> Optional[str]:
        best = None
        best_tier = None
        for text in headers or []:
            if not text or len(text.strip()) < 2:
                continue
            if not is_verified_match(name, text):
                continue
            tier = match_tier(name, text)
            if best_tier is None or tier < best_tier:
                best, best_tier = text.strip(), tier
        return best
