import asyncio

import pytest
from playwright.async_api import Error as PWError

from chat_harvester.errors import SurfaceUnavailable
from chat_harvester.playwright_surface import (
    COMPOSER_SELECTORS,
    PANEL_SELECTORS,
    SEND_BUTTON_SELECTORS,
    PlaywrightSurface,
)


class StubMouse:
    def __init__(self):
        self.events = []

    async def move(self, x, y):
        self.events.append(("move", x, y))

    async def down(self):
        self.events.append(("down",))

    async def up(self):
        self.events.append(("up",))


class StubLocator:
    def __init__(self, selector, visible, events):
        self.selector = selector
        self.visible = list(visible)
        self.events = events
        self.index = None

    async def count(self):
        return len(self.visible)

    def nth(self, i):
        el = StubLocator(self.selector, self.visible, self.events)
        el.index = i
        return el

    async def is_visible(self):
        return self.visible[self.index]

    async def click(self):
        self.events.append(("click", self.selector))

    async def fill(self, value):
        self.events.append(("fill", self.selector, value))

    async def press(self, key):
        self.events.append(("press", self.selector, key))


class StubPage:
    """Answers page.evaluate() from a queue of canned results (or raises them)."""

    def __init__(self, *results, closed=False):
        self.results = list(results)
        self.calls = []
        self.closed = closed
        self.mouse = StubMouse()
        self.elements = {}
        self.events = []

    def is_closed(self):
        return self.closed

    def locator(self, selector):
        return StubLocator(selector, self.elements.get(selector, []), self.events)

    async def evaluate(self, js, args=None):
        self.calls.append((js, args))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_query_items_uses_row_name_as_id():
    page = StubPage([{"name": "Dana Levi"}, {"name": "Noa"}, {}])
    items = asyncio.run(PlaywrightSurface(page).query_items())
    assert [(i.name, i.item_id) for i in items] == [("Dana Levi", "Dana Levi"), ("Noa", "Noa")]
    _, args = page.calls[0]
    assert args["panelSels"] == PANEL_SELECTORS


def test_scroll_metrics_none_without_container():
    assert asyncio.run(PlaywrightSurface(StubPage(None)).scroll_metrics()) is None
    m = asyncio.run(PlaywrightSurface(StubPage({"scrollTop": 0, "scrollHeight": 900, "clientHeight": 500})).scroll_metrics())
    assert m.scrollable and m.max_scroll_top == 400


def test_dom_errors_become_neutral_values():
    page = StubPage(PWError("Cannot read properties of null"))
    assert asyncio.run(PlaywrightSurface(page).query_header_texts()) == []


def test_closed_page_raises_surface_unavailable():
    with pytest.raises(SurfaceUnavailable):
        asyncio.run(PlaywrightSurface(StubPage(closed=True)).query_items())
    page = StubPage(PWError("Target page, context or browser has been closed"))
    with pytest.raises(SurfaceUnavailable):
        asyncio.run(PlaywrightSurface(page).query_panel_marker())


def test_pointer_sequence_goes_through_the_mouse():
    page = StubPage()
    assert asyncio.run(PlaywrightSurface(page).dispatch_pointer_sequence(10, 20)) is True
    assert page.mouse.events == [("move", 10, 20), ("down",), ("up",)]


def test_messages_keep_prefix_and_text():
    page = StubPage([{"prefix": "[09:00, 23.1.2026] Dana: ", "text": "hello"}, {"prefix": None, "text": None}])
    raws = asyncio.run(PlaywrightSurface(page).query_message_elements())
    assert raws[0].prefix.startswith("[09:00")
    assert raws[1].text == ""


def test_send_message_types_and_clicks_send():
    page = StubPage()
    composer, button = COMPOSER_SELECTORS[2], SEND_BUTTON_SELECTORS[0]
    page.elements = {composer: [False, True], button: [True]}
    assert asyncio.run(PlaywrightSurface(page).send_message("hello")) is True
    assert page.events == [("click", composer), ("fill", composer, "hello"), ("click", button)]


def test_send_message_falls_back_to_enter():
    page = StubPage()
    composer = COMPOSER_SELECTORS[0]
    page.elements = {composer: [True]}
    assert asyncio.run(PlaywrightSurface(page).send_message("hello")) is True
    assert page.events[-1] == ("press", composer, "Enter")


def test_send_message_without_composer():
    page = StubPage()
    assert asyncio.run(PlaywrightSurface(page).send_message("hello")) is False
    assert page.events == []
