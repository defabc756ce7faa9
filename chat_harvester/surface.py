# surface.py
# The narrow boundary every harvesting algorithm talks to. Anything that can list rendered rows,
# report/set a scroll offset, click, and read a header can be harvested: a Playwright page
# (playwright_surface.py), an accessibility tree, or an in-memory fake in the tests.
#
# Implementations raise errors.SurfaceUnavailable when the underlying page/session is gone and
# otherwise answer with neutral values (empty list, None, False) when something is not rendered.

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass
class RawItem:
    """One rendered conversation row as seen in a single probe."""

    name: str
    item_id: str


@dataclass
class ScrollMetrics:
    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def scrollable(self) -> bool:
        return self.scroll_height > self.client_height

    @property
    def max_scroll_top(self) -> float:
        return max(0.0, self.scroll_height - self.client_height)


@dataclass
class MessageRaw:
    """
    One rendered message: `prefix` is the platform's "[time, date] Sender: " metadata string
    (also the dedupe key), `text` is the element's full text content.
    """

    prefix: Optional[str]
    text: str


class RenderingSurface(ABC):
    # ---- conversation list ----

    @abstractmethod
    async def query_items(self) -> List[RawItem]:
        ...

    @abstractmethod
    async def query_item_by_id(self, item_id: str) -> Optional[RawItem]:
        ...

    @abstractmethod
    async def scroll_metrics(self) -> Optional[ScrollMetrics]:
        """None when the list container cannot be found."""

    @abstractmethod
    async def set_scroll_top(self, value: float) -> None:
        ...

    @abstractmethod
    async def bring_into_view(self, item_id: str) -> bool:
        """Scroll one row to the middle of the viewport; False if it is no longer mounted."""

    # ---- activation ----

    @abstractmethod
    async def activate_item(self, item_id: str) -> bool:
        """High-level open action on a row."""

    @abstractmethod
    async def item_center(self, item_id: str) -> Optional[Tuple[float, float]]:
        ...

    @abstractmethod
    async def dispatch_pointer_sequence(self, x: float, y: float) -> bool:
        """Low-level pointer down/up/click at page coordinates."""

    async def return_to_list(self) -> bool:
        """Leave an open conversation if the layout hides the list behind it."""
        return False

    # ---- open conversation ----

    @abstractmethod
    async def query_panel_marker(self) -> bool:
        ...

    @abstractmethod
    async def query_header_texts(self) -> List[str]:
        """Every candidate title string currently shown in the conversation header."""

    @abstractmethod
    async def query_message_elements(self) -> List[MessageRaw]:
        """Rendered messages, oldest first."""

    @abstractmethod
    async def scroll_history_to_top(self) -> bool:
        """Ask the message panel to load older history; False if there is no panel."""

    @abstractmethod
    async def send_message(self, text: str) -> bool:
        """Type `text` into the open conversation's composer and submit it; False if there is no composer."""

    async def is_ready(self) -> bool:
        return (await self.scroll_metrics()) is not None
