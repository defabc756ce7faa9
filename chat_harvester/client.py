# client.py
# ChatHarvester: the one object callers use. Owns nothing long-lived except the surface and
# config; every call builds a fresh harvester/navigator (and so a fresh HarvestSession).

import asyncio
import time
from datetime import date
from typing import List, Optional, Tuple

from .config import READY_TIMEOUT_SEC, HarvestConfig
from .errors import SurfaceUnavailable
from .history import HistoryHarvester
from .list_harvester import ListHarvester, Sleep
from .models import (
    EMPTY_MESSAGE,
    MESSAGE_NOT_SENT,
    SURFACE_UNAVAILABLE,
    HarvestResult,
    HistoryResult,
    MessageRecord,
    NavigationOutcome,
    ResolvedName,
)
from .navigator import Navigator
from .resolver import resolve_name
from .surface import RenderingSurface
from . import trace


class ChatHarvester:
    """
    Facade over a RenderingSurface.

    Callers must serialize calls: the surface has a single scroll position, so two harvests
    running at once would fight over it.
    """

    def __init__(self, surface: RenderingSurface, config: Optional[HarvestConfig] = None, sleep: Optional[Sleep] = None):
        self.surface = surface
        self.cfg = config or HarvestConfig()
        self._sleep = sleep or asyncio.sleep

    async def wait_until_ready(self, timeout: float = READY_TIMEOUT_SEC, poll: float = 1.0) -> bool:
        """Poll for the chat list container (login / first render can take a while)."""
        deadline = time.monotonic() + timeout
        attempts = max(1, int(timeout / poll)) if poll > 0 else 1
        for _ in range(attempts + 1):
            try:
                if await self.surface.is_ready():
                    trace.log("harvest", "chat list is ready")
                    return True
            except SurfaceUnavailable as e:
                trace.warn("harvest", f"surface unavailable while waiting: {e}")
                return False
            if time.monotonic() >= deadline:
                break
            await self._sleep(poll)
        trace.warn("harvest", f"chat list not ready after {timeout:.0f}s")
        return False

    async def harvest_all_item_names(self) -> HarvestResult:
        return await ListHarvester(self.surface, self.cfg, self._sleep).harvest()

    async def list_names(self) -> List[str]:
        return (await self.harvest_all_item_names()).names()

    async def open_item_by_name(self, name: str) -> NavigationOutcome:
        return await Navigator(self.surface, self.cfg, self._sleep).open(name)

    async def harvest_today_messages(self, reference_day: Optional[date] = None) -> List[MessageRecord]:
        result = await self.harvest_history(reference_day)
        return list(result.iter_reference_day())

    async def harvest_all_messages(self, reference_day: Optional[date] = None) -> List[MessageRecord]:
        result = await self.harvest_history(reference_day)
        return list(result.iter_all())

    async def harvest_history(self, reference_day: Optional[date] = None) -> HistoryResult:
        return await HistoryHarvester(self.surface, self.cfg, self._sleep).harvest(reference_day)

    async def harvest_messages_for_question(self, reference_day: Optional[date] = None) -> List[MessageRecord]:
        """Reference-day messages when there are any, otherwise everything that was loaded."""
        result = await self.harvest_history(reference_day)
        today = list(result.iter_reference_day())
        if today:
            return today
        trace.log("history", "no messages on the reference day; using all loaded messages")
        return list(result.iter_all())

    async def open_and_harvest(
        self, name: str, reference_day: Optional[date] = None
    ) -> Tuple[NavigationOutcome, Optional[HistoryResult]]:
        """Open `name` and harvest its history; history is None when navigation failed."""
        outcome = await self.open_item_by_name(name)
        if not outcome.success:
            return outcome, None
        return outcome, await self.harvest_history(reference_day)

    async def send_to(self, name: str, text: str) -> NavigationOutcome:
        """
        Open `name` and send `text` into it. Nothing is typed unless the header verified the
        right chat, so a failed or mismatched navigation comes back unchanged.
        """
        if not text or not text.strip():
            return NavigationOutcome(success=False, reason=EMPTY_MESSAGE)
        outcome = await self.open_item_by_name(name)
        if not outcome.success:
            trace.warn("send", f'not sending to "{name}": {outcome.reason}')
            return outcome
        await self._sleep(self.cfg.send_settle_sec)
        reason = None
        try:
            if not await self.surface.send_message(text):
                trace.warn("send", f'could not find the message composer in "{outcome.matched_name}"')
                reason = MESSAGE_NOT_SENT
        except SurfaceUnavailable as e:
            trace.warn("send", f"surface unavailable: {e}")
            reason = SURFACE_UNAVAILABLE
        if reason is not None:
            return NavigationOutcome(success=False, reason=reason, matched_name=outcome.matched_name, state=outcome.state)
        trace.log("send", f'sent {len(text)} chars to "{outcome.matched_name}"')
        return outcome

    @staticmethod
    def resolve_name(query: str, candidates: Optional[List[str]]) -> ResolvedName:
        return resolve_name(query, candidates)

    async def resolve_against_list(self, query: str) -> ResolvedName:
        """Harvest the list, then resolve `query` against it."""
        names = await self.list_names()
        return resolve_name(query, names)
