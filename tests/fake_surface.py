"""
In-memory rendering surfaces for the tests.

FakeListSurface models a virtualized chat list: only the rows inside the viewport are
"mounted", scroll requests are clamped to the real scroll range, and opening a row shows a
panel whose header is looked up in `opens` (so a test can make a click open the wrong chat).

FakeHistorySurface models an open conversation that lazily loads `batch` older messages each
time the panel is scrolled to the top.
"""

from typing import Dict, List, Optional, Tuple

from chat_harvester.errors import SurfaceUnavailable
from chat_harvester.surface import MessageRaw, RawItem, RenderingSurface, ScrollMetrics


async def no_sleep(_seconds):
    return None


class FakeListSurface(RenderingSurface):
    def __init__(
        self,
        names: List[str],
        row_height: int = 50,
        viewport: int = 500,
        scrollable: bool = True,
        initial_mounted: int = 10,
        opens: Optional[Dict[str, Optional[str]]] = None,
        panel_delay: Optional[int] = 0,
        activate_works: bool = True,
        pointer_works: bool = True,
        has_container: bool = True,
        has_composer: bool = True,
    ):
        self.names = list(names)
        self.row_height = row_height
        self.viewport = viewport
        self.scrollable = scrollable
        self.opens = opens or {}
        self.panel_delay = panel_delay
        self.activate_works = activate_works
        self.pointer_works = pointer_works
        self.has_container = has_container
        self.has_composer = has_composer
        self.closed = False

        self.scroll_top = 0.0
        # Only used when the container claims it cannot scroll.
        self._window = (0, min(initial_mounted, len(self.names)))

        self.opened: Optional[str] = None
        self.panel_polls = 0
        self.bring_calls = 0
        self.activations: List[str] = []
        self.pointer_clicks: List[Tuple[float, float]] = []
        self.sent: List[Tuple[str, str]] = []
        self._centers: Dict[Tuple[float, float], int] = {}

    # ---- helpers ----

    def _check(self):
        if self.closed:
            raise SurfaceUnavailable("fake page closed")

    @property
    def _scroll_height(self) -> float:
        if not self.scrollable:
            return float(self.viewport)
        return float(max(self.viewport, len(self.names) * self.row_height))

    def _mounted(self) -> List[int]:
        if not self.scrollable:
            lo, hi = self._window
            return list(range(lo, hi))
        first = int(self.scroll_top // self.row_height)
        last = int((self.scroll_top + self.viewport) // self.row_height)
        return [i for i in range(first, last) if 0 <= i < len(self.names)]

    @staticmethod
    def _id(index: int) -> str:
        return f"row-{index}"

    def _index(self, item_id: str) -> Optional[int]:
        try:
            return int(item_id.split("-", 1)[1])
        except (IndexError, ValueError):
            return None

    def _open(self, index: int):
        name = self.names[index]
        self.opened = self.opens.get(name, name)
        self.panel_polls = 0

    # ---- conversation list ----

    async def query_items(self) -> List[RawItem]:
        self._check()
        if not self.has_container:
            return []
        return [RawItem(name=self.names[i], item_id=self._id(i)) for i in self._mounted()]

    async def query_item_by_id(self, item_id: str) -> Optional[RawItem]:
        for item in await self.query_items():
            if item.item_id == item_id:
                return item
        return None

    async def scroll_metrics(self) -> Optional[ScrollMetrics]:
        self._check()
        if not self.has_container:
            return None
        return ScrollMetrics(self.scroll_top, self._scroll_height, float(self.viewport))

    async def set_scroll_top(self, value: float) -> None:
        self._check()
        max_top = max(0.0, self._scroll_height - self.viewport)
        self.scroll_top = min(max(0.0, float(value)), max_top)

    async def bring_into_view(self, item_id: str) -> bool:
        self._check()
        self.bring_calls += 1
        index = self._index(item_id)
        if index is None or index not in self._mounted():
            return False
        if self.scrollable:
            await self.set_scroll_top(index * self.row_height - self.viewport / 2 + self.row_height / 2)
        else:
            size = self._window[1] - self._window[0]
            lo = max(0, index - size // 2)
            self._window = (lo, min(len(self.names), lo + size + 1))
        return True

    # ---- activation ----

    async def activate_item(self, item_id: str) -> bool:
        self._check()
        index = self._index(item_id)
        if index is None or index not in self._mounted():
            return False
        self.activations.append(item_id)
        if self.activate_works:
            self._open(index)
        return True

    async def item_center(self, item_id: str) -> Optional[Tuple[float, float]]:
        self._check()
        index = self._index(item_id)
        if index is None or index not in self._mounted():
            return None
        center = (100.0, float(index * self.row_height - self.scroll_top + self.row_height / 2))
        self._centers[center] = index
        return center

    async def dispatch_pointer_sequence(self, x: float, y: float) -> bool:
        self._check()
        self.pointer_clicks.append((x, y))
        index = self._centers.get((x, y))
        if index is not None and self.pointer_works:
            self._open(index)
        return True

    # ---- open conversation ----

    async def query_panel_marker(self) -> bool:
        self._check()
        if self.opened is None or self.panel_delay is None:
            return False
        self.panel_polls += 1
        return self.panel_polls > self.panel_delay

    async def query_header_texts(self) -> List[str]:
        self._check()
        return [self.opened] if self.opened else []

    async def query_message_elements(self) -> List[MessageRaw]:
        self._check()
        return []

    async def scroll_history_to_top(self) -> bool:
        self._check()
        return False

    async def send_message(self, text: str) -> bool:
        self._check()
        if self.opened is None or not self.has_composer:
            return False
        self.sent.append((self.opened, text))
        return True


def message(time: str, day: str, sender: Optional[str], body: str) -> MessageRaw:
    """A rendered message the way the web client exposes it (prefix + body + trailing time)."""
    prefix = f"[{time}, {day}] {sender}: " if sender else f"[{time}, {day}] "
    return MessageRaw(prefix=prefix, text=f"{prefix}{body}\u200e{time}")


class FakeHistorySurface(FakeListSurface):
    def __init__(self, messages: List[MessageRaw], initial: int = 2, batch: int = 2, has_panel: bool = True):
        super().__init__(names=[])
        self.messages = list(messages)  # oldest first
        self.loaded = min(initial, len(self.messages))
        self.batch = batch
        self.has_panel = has_panel
        self.top_requests = 0

    async def query_panel_marker(self) -> bool:
        self._check()
        return self.has_panel

    async def query_message_elements(self) -> List[MessageRaw]:
        self._check()
        if not self.has_panel:
            return []
        return self.messages[len(self.messages) - self.loaded:]

    async def scroll_history_to_top(self) -> bool:
        self._check()
        if not self.has_panel:
            return False
        self.top_requests += 1
        self.loaded = min(len(self.messages), self.loaded + self.batch)
        return True
