# list_harvester.py
# Harvest every row of a virtualized, lazily-rendered list.
#
# The list exposes no total count and no "end" event, and only mounts rows near the viewport,
# so completeness is decided from soft signals:
#   - N consecutive probes that add nothing new (stability threshold)
#   - scroll requests clamped far from the requested offset for several probes (edge)
#   - probe budget exhausted (reported as a timeout-completion, still returns what was seen)
# followed by a confirmation pass from the opposite end and, when the container claims it cannot
# scroll yet we saw implausibly few rows, a per-row bring-into-view sweep.

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .config import HarvestConfig
from .errors import SurfaceUnavailable
from .models import (
    COMPLETED_EDGE,
    COMPLETED_MAX_PROBES,
    COMPLETED_NOT_FOUND,
    COMPLETED_STABLE,
    COMPLETED_UNAVAILABLE,
    HarvestResult,
    Item,
)
from .surface import RawItem, RenderingSurface, ScrollMetrics
from .text_match import Match, base_form, find_best_match, normalize
from . import trace

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class HarvestSession:
    """
    Per-call accumulation state. Keys are identities (normalized name for rows, dedupe key for
    messages); re-observing a key overwrites the stored value and never adds an entry.
    """

    entries: Dict[str, Any] = field(default_factory=dict)
    probes: int = 0
    quiet_streak: int = 0
    clamp_streak: int = 0
    boundary_reached: bool = False
    fallback_used: bool = False
    completion: Optional[str] = None

    def merge(self, keyed: Iterable[tuple]) -> int:
        """Merge (key, value) pairs; returns how many keys were new. Last write wins."""
        new = 0
        for key, value in keyed:
            if key not in self.entries:
                new += 1
            self.entries[key] = value
        return new

    def note_probe(self, new_count: int) -> None:
        self.probes += 1
        if new_count:
            self.quiet_streak = 0
        else:
            self.quiet_streak += 1

    def values(self) -> List[Any]:
        return list(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)


def to_item(raw: RawItem) -> Optional[Item]:
    """Rendered row -> Item, or None for rows without a usable name."""
    try:
        norm = normalize(raw.name)
    except (TypeError, AttributeError):
        return None
    if len(norm) <= 1:
        return None
    return Item(display_name=raw.name.strip(), normalized_name=norm, base_name=base_form(norm), item_id=raw.item_id)


def keyed_items(raws: Iterable[RawItem]):
    for raw in raws or []:
        item = to_item(raw)
        if item is not None:
            yield item.normalized_name, item


def find_row(raws: List[RawItem], name: str, max_tier: int = 5) -> Optional[tuple]:
    """Row-finder: best-matching rendered row for `name` as (RawItem, Match)."""
    usable = [r for r in raws or [] if r and r.name]
    match: Optional[Match] = find_best_match(name, [r.name for r in usable], max_tier=max_tier)
    if match is None:
        return None
    return usable[match.index], match


class ListHarvester:
    def __init__(self, surface: RenderingSurface, config: Optional[HarvestConfig] = None, sleep: Optional[Sleep] = None):
        self.surface = surface
        self.cfg = config or HarvestConfig()
        self._sleep = sleep or asyncio.sleep

    async def harvest(self) -> HarvestResult:
        session = HarvestSession()
        try:
            await self._run(session)
        except SurfaceUnavailable as e:
            trace.warn("harvest", f"surface unavailable after {session.probes} probes: {e}")
            session.completion = COMPLETED_UNAVAILABLE

        result = HarvestResult(
            items=session.values(),
            completion=session.completion or COMPLETED_STABLE,
            probes=session.probes,
            fallback_used=session.fallback_used,
        )
        if result.timed_out:
            trace.warn("harvest", f"probe budget exhausted; returning {len(result.items)} rows seen so far")
        trace.log("harvest", f"{len(result.items)} unique rows ({result.completion}, {result.probes} probes)")
        return result

    async def _probe(self, session: HarvestSession) -> int:
        new = session.merge(keyed_items(await self.surface.query_items()))
        session.note_probe(new)
        return new

    async def _run(self, session: HarvestSession) -> None:
        metrics = await self.surface.scroll_metrics()
        if metrics is None:
            trace.warn("harvest", "list container not found (language/login state?)")
            session.completion = COMPLETED_NOT_FOUND
            return

        trace.debug("harvest", f"scrollHeight={metrics.scroll_height:.0f} clientHeight={metrics.client_height:.0f}")
        await self.surface.set_scroll_top(0)
        await self._sleep(self.cfg.initial_settle_sec)
        session.merge(keyed_items(await self.surface.query_items()))
        trace.debug("harvest", f"initial rows: {len(session)}")

        session.completion = await self._forward_pass(session)

        # Confirmation pass from the far end catches rows that only mount near the bottom.
        metrics = await self.surface.scroll_metrics()
        if metrics is not None and metrics.scrollable:
            await self._reverse_pass(session, metrics)

        metrics = await self.surface.scroll_metrics()
        if (
            metrics is not None
            and not metrics.scrollable
            and len(session) < self.cfg.min_expected_items
        ):
            await self._bring_into_view_sweep(session)

    async def _forward_pass(self, session: HarvestSession) -> str:
        step = self.cfg.scroll_step
        position = 0.0
        session.quiet_streak = 0
        session.clamp_streak = 0
        while session.probes < self.cfg.max_probes:
            position += step
            await self.surface.set_scroll_top(position)
            await self._sleep(self.cfg.settle_sec)

            new = await self._probe(session)
            metrics = await self.surface.scroll_metrics()
            actual = metrics.scroll_top if metrics else position
            trace.debug(
                "harvest",
                f"probe {session.probes} requested={position:.0f} actual={actual:.0f} total={len(session)} (+{new})",
            )

            if session.quiet_streak >= self.cfg.stability_threshold:
                trace.debug("harvest", f"no new rows for {session.quiet_streak} probes")
                return COMPLETED_STABLE

            if abs(actual - position) > self.cfg.clamp_tolerance_px:
                session.clamp_streak += 1
                # Resync so the next request is one step past where the surface actually is.
                position = actual
                if session.clamp_streak >= self.cfg.edge_clamp_probes:
                    trace.debug("harvest", f"scroll clamped {session.clamp_streak}x at {actual:.0f}px, at edge")
                    return COMPLETED_EDGE
            else:
                session.clamp_streak = 0
        return COMPLETED_MAX_PROBES

    async def _reverse_pass(self, session: HarvestSession, metrics: ScrollMetrics) -> None:
        step = self.cfg.scroll_step
        position = metrics.scroll_height
        await self.surface.set_scroll_top(position)
        await self._sleep(self.cfg.initial_settle_sec)
        before = len(session)
        session.quiet_streak = 0
        await self._probe(session)

        count = 0
        while position > 0 and count < self.cfg.reverse_max_probes:
            position = max(0.0, position - step)
            await self.surface.set_scroll_top(position)
            await self._sleep(self.cfg.settle_sec)
            await self._probe(session)
            count += 1
            if session.quiet_streak >= self.cfg.stability_threshold:
                break
        found = len(session) - before
        if found:
            trace.log("harvest", f"reverse pass found {found} more rows")

    async def _bring_into_view_sweep(self, session: HarvestSession) -> None:
        """
        Visit every known row individually. Scrolling a row into view makes the list mount its
        neighbours even when the container reports itself as non-scrollable.
        """
        session.fallback_used = True
        trace.log("harvest", f"container reports non-scrollable with only {len(session)} rows; visiting rows one by one")
        visited = set()
        visits = 0
        while visits < self.cfg.max_fallback_visits:
            pending = [it for it in session.values() if it.item_id and it.item_id not in visited]
            if not pending:
                break
            item = pending[0]
            visited.add(item.item_id)
            visits += 1
            if not await self.surface.bring_into_view(item.item_id):
                continue
            await self._sleep(self.cfg.fallback_settle_sec)
            session.merge(keyed_items(await self.surface.query_items()))
            if visits % 20 == 0:
                trace.debug("harvest", f"bring-into-view progress: {visits} rows, {len(session)} unique")
