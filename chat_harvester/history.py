# history.py
# Harvest the message history of the open conversation back to the start of a reference day.
#
# History loads backwards: every probe asks the panel to scroll to the top, waits, then reads the
# rendered messages. Rendering is virtualized, so messages are collected on every probe into a map
# keyed by their platform metadata string (the only identity that survives re-renders).
#
# Stop signals, in order of preference:
#   - earliest reference-day time unchanged for N probes  -> the day is exhausted
#   - oldest rendered message is before the reference day -> a few catch-up probes, then stop
#   - probe budget exhausted -> a couple of safety probes, only if the oldest rendered message is
#     still on the reference day (lazy loading has not caught up yet)

import asyncio
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .config import HarvestConfig
from .errors import SurfaceUnavailable
from .list_harvester import HarvestSession, Sleep
from .models import (
    COMPLETED_BOUNDARY,
    COMPLETED_MAX_PROBES,
    COMPLETED_NO_REFERENCE,
    COMPLETED_NOT_FOUND,
    COMPLETED_STABLE,
    COMPLETED_UNAVAILABLE,
    HistoryResult,
    MessageRecord,
)
from .surface import MessageRaw, RenderingSurface
from .timestamps import (
    RawDate,
    extract_date,
    is_before_reference,
    is_reference_day,
    resolve_reading,
    split_prefix,
    time_key,
    time_prefix,
)
from . import trace

UNKNOWN_TIME = "Unknown Time"
DEFAULT_SENDER = "You"


def parse_message(raw: MessageRaw, reference: date) -> Optional[MessageRecord]:
    """Rendered message -> MessageRecord; None when it has no metadata or no text."""
    if raw is None or not raw.prefix:
        return None
    timestamp, sender = split_prefix(raw.prefix)
    timestamp = timestamp or UNKNOWN_TIME

    text = (raw.text or "").replace(raw.prefix, "", 1).replace("\u200e", "").strip()
    shown_time = time_prefix(timestamp)
    if shown_time and text.endswith(shown_time):
        text = text[: -len(shown_time)].rstrip()
    if not text:
        return None

    return MessageRecord(
        sender=sender or DEFAULT_SENDER,
        timestamp=timestamp,
        text=text,
        is_from_reference_day=is_reference_day(extract_date(timestamp), reference),
        dedupe_key=raw.prefix,
    )


def sort_key(record: MessageRecord, reference: date) -> Tuple[Tuple[int, int, int], str]:
    d = resolve_reading(extract_date(record.timestamp), reference)
    return ((d.year, d.month, d.day) if d else (0, 0, 0), time_key(record.timestamp))


def ordered(records: Iterable[MessageRecord], reference: Optional[date] = None) -> List[MessageRecord]:
    """Ascending by (date, time). Ambiguous dates are read relative to `reference` (default today)."""
    reference = reference or date.today()
    # sorted() is stable: equal keys keep first-seen order
    return sorted(records, key=lambda r: sort_key(r, reference))


class HistoryHarvester:
    def __init__(
        self,
        surface: RenderingSurface,
        config: Optional[HarvestConfig] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.surface = surface
        self.cfg = config or HarvestConfig()
        self._sleep = sleep or asyncio.sleep

    async def harvest(self, reference_day: Optional[date] = None) -> HistoryResult:
        reference = reference_day or date.today()
        session = HarvestSession()
        try:
            await self._run(session, reference)
        except SurfaceUnavailable as e:
            trace.warn("history", f"surface unavailable after {session.probes} probes: {e}")
            session.completion = COMPLETED_UNAVAILABLE

        result = HistoryResult(
            items=ordered(session.values(), reference),
            completion=session.completion or COMPLETED_STABLE,
            probes=session.probes,
            reference_day=reference,
            boundary_reached=session.boundary_reached,
        )
        if result.timed_out:
            trace.warn("history", "probe budget exhausted before the reference day was confirmed complete")
        trace.log(
            "history",
            f"{len(result.items)} messages, {result.summary()['reference_day_count']} from "
            f"{reference.isoformat()} ({result.completion}, {result.probes} probes)",
        )
        return result

    # ---- probing ----

    def _collect(self, session: HarvestSession, raws: List[MessageRaw], reference: date) -> Optional[RawDate]:
        """Merge rendered messages; return the date of the oldest rendered one."""
        keyed = []
        oldest: Optional[RawDate] = None
        for raw in raws or []:
            # Text-less elements (media, stickers) still mark where the history has reached.
            if oldest is None and raw is not None and raw.prefix:
                oldest = extract_date(split_prefix(raw.prefix)[0])
            try:
                record = parse_message(raw, reference)
            except (TypeError, ValueError, AttributeError) as e:
                trace.debug("history", f"skipping malformed message: {e!r}")
                continue
            if record is None:
                continue
            keyed.append((record.dedupe_key, record))
        session.merge(keyed)
        return oldest

    async def _probe(self, session: HarvestSession, reference: date) -> Optional[RawDate]:
        await self.surface.scroll_history_to_top()
        await self._sleep(self.cfg.history_settle_sec)
        oldest = self._collect(session, await self.surface.query_message_elements(), reference)
        session.probes += 1
        return oldest

    @staticmethod
    def _reference_count(session: HarvestSession) -> int:
        return sum(1 for m in session.entries.values() if m.is_from_reference_day)

    @staticmethod
    def _earliest_reference_time(session: HarvestSession) -> Optional[str]:
        keys = [time_key(m.timestamp) for m in session.entries.values() if m.is_from_reference_day]
        return min(keys) if keys else None

    # ---- phases ----

    async def _run(self, session: HarvestSession, reference: date) -> None:
        if not await self.surface.query_panel_marker():
            trace.warn("history", "message panel not found")
            session.completion = COMPLETED_NOT_FOUND
            return

        self._collect(session, await self.surface.query_message_elements(), reference)
        trace.debug(
            "history",
            f"target {reference.isoformat()}: initial {len(session)} total, {self._reference_count(session)} on reference day",
        )

        previous_earliest = self._earliest_reference_time(session)
        unchanged = 0
        oldest: Optional[RawDate] = None

        while session.probes < self.cfg.history_max_probes:
            oldest = await self._probe(session, reference)
            earliest = self._earliest_reference_time(session)
            trace.debug(
                "history",
                f"probe {session.probes}: {len(session)} total, {self._reference_count(session)} on reference day, "
                f"earliest={earliest or 'None'}",
            )

            if earliest is None:
                session.completion = COMPLETED_NO_REFERENCE
                return
            if earliest == previous_earliest:
                unchanged += 1
                if unchanged >= self.cfg.history_unchanged_probes:
                    trace.debug("history", f"earliest time {earliest} unchanged for {unchanged} probes")
                    session.completion = COMPLETED_STABLE
                    return
            else:
                unchanged = 0
                previous_earliest = earliest

            if oldest is not None and is_before_reference(oldest, reference):
                session.boundary_reached = True
                trace.debug("history", f"date boundary reached (oldest rendered {oldest}); catching up")
                await self._catch_up(session, reference, self.cfg.history_catchup_probes)
                session.completion = COMPLETED_BOUNDARY
                return

        # Budget exhausted. More probing only helps if we have not crossed the boundary yet.
        session.completion = COMPLETED_MAX_PROBES
        oldest_is_reference = oldest is not None and is_reference_day(oldest, reference)
        if oldest_is_reference:
            trace.debug("history", "oldest rendered message still on the reference day; safety probes")
            await self._catch_up(session, reference, self.cfg.history_safety_probes, respect_budget=False)

    async def _catch_up(self, session: HarvestSession, reference: date, budget: int, respect_budget: bool = True) -> None:
        """Bounded extra probes; stop as soon as one adds no reference-day message."""
        previous_count = self._reference_count(session)
        previous_earliest = self._earliest_reference_time(session)
        for attempt in range(1, budget + 1):
            if respect_budget and session.probes >= self.cfg.history_max_probes:
                break
            await self._probe(session, reference)
            count = self._reference_count(session)
            earliest = self._earliest_reference_time(session)
            trace.debug("history", f"extra probe {attempt}/{budget}: {count} on reference day (was {previous_count})")
            if count == previous_count:
                break
            if earliest is not None and earliest == previous_earliest and attempt > 1:
                break
            previous_count = count
            previous_earliest = earliest
