# playwright_surface.py
# RenderingSurface over a live Playwright page (web.whatsapp.com).
#
# All DOM probing goes through page.evaluate() with small JS snippets. Selectors are kept as
# ordered lists and tried first-to-last inside one generic JS helper, so a UI/language change
# means editing a list, not a code path.
#
# Rows carry no stable id, so a row's extracted display name doubles as its item_id.

from typing import Any, List, Optional, Tuple

from playwright.async_api import Error as PWError
from playwright.async_api import Locator, Page

from .errors import SurfaceUnavailable
from .surface import MessageRaw, RawItem, RenderingSurface, ScrollMetrics
from . import trace

# =========================
# Selector strategies (tried in order)
# =========================

CHAT_LIST_SELECTORS = [
    "[aria-label=\"רשימת צ'אטים\"]",
    '[aria-label="Chat list"]',
]
ROW_SELECTOR = '[role="row"]'
ROW_NAME_SELECTORS = [
    'div[role="gridcell"] span[title]',
    'div[role="gridcell"] div[title]',
    "span[title]",
    "div[title]",
]
PANEL_SELECTORS = [
    '[data-scrolltracepolicy="wa.web.conversation.messages"]',
    '[aria-label*="רשימת הודעות"]',
    '[aria-label*="Message list"]',
    '[role="log"]',
    'div[data-testid="conversation-panel-messages"]',
]
HEADER_SELECTORS = [
    "[data-testid='conversation-info-header-chat-title']",
    "header span[title]",
    "header div[title]",
    '[data-testid="conversation-header"] span[title]',
    '[data-testid="conversation-header"] div[title]',
    'div[role="main"] header span[title]',
    "header span[dir='auto']",
    "header h1",
]
BACK_SELECTORS = [
    'button[aria-label="Back"]',
    'button[aria-label="חזרה"]',
    'span[data-icon="back"]',
]
MESSAGE_SELECTOR = "div[data-pre-plain-text]"
COMPOSER_SELECTORS = [
    'footer div[contenteditable="true"][data-tab="10"]',
    'footer div[contenteditable="true"][role="textbox"]',
    'footer div[contenteditable="true"]',
    'div[contenteditable="true"][data-lexical-editor="true"]',
    'div[role="main"] div[contenteditable="true"]',
]
SEND_BUTTON_SELECTORS = [
    'footer button[aria-label*="Send"]',
    'footer button[aria-label*="שלח"]',
    'footer button:has(span[data-icon="send"])',
    'button:has(span[data-icon="send"])',
]


# Shared JS helpers; every snippet below is evaluated as `(args) => { PRELUDE ... }`.
_PRELUDE = r"""
const firstMatch = (sels, root) => {
  for (const s of sels) {
    try { const el = (root || document).querySelector(s); if (el) return el; } catch (e) {}
  }
  return null;
};
const listContainer = () => firstMatch(args.listSels);
const scroller = () => {
  const c = listContainer();
  if (!c) return null;
  if (c.scrollHeight > c.clientHeight) return c;
  for (const el of c.querySelectorAll('*')) {
    if (el.scrollHeight > el.clientHeight + 1) return el;
  }
  return c;
};
const rowName = (row) => {
  const el = firstMatch(args.nameSels, row);
  if (el) {
    const t = (el.getAttribute('title') || el.textContent || '').trim();
    if (t.length > 1) return t;
  }
  const cell = row.querySelector('div[role="gridcell"]');
  if (cell) {
    const line = (cell.textContent || '').trim().split(/\r?\n/)[0].trim();
    if (line.length > 1) return line;
  }
  return null;
};
const rows = () => {
  const c = listContainer();
  return c ? Array.from(c.querySelectorAll(args.rowSel)) : [];
};
const rowById = (id) => rows().find(r => rowName(r) === id) || null;
"""


def _snippet(body: str) -> str:
    return "(args) => {" + _PRELUDE + body + "}"


_JS_ITEMS = _snippet(r"""
  const out = [];
  for (const r of rows()) {
    const n = rowName(r);
    if (n) out.push({name: n});
  }
  return out;
""")

_JS_METRICS = _snippet(r"""
  const s = scroller();
  if (!s) return null;
  return {scrollTop: s.scrollTop, scrollHeight: s.scrollHeight, clientHeight: s.clientHeight};
""")

_JS_SET_SCROLL = _snippet(r"""
  const s = scroller();
  if (!s) return false;
  s.scrollTop = args.value;
  s.dispatchEvent(new Event('scroll', {bubbles: true}));
  return true;
""")

_JS_BRING_INTO_VIEW = _snippet(r"""
  const r = rowById(args.id);
  if (!r) return false;
  r.scrollIntoView({block: 'center'});
  return true;
""")

_JS_ACTIVATE = _snippet(r"""
  const r = rowById(args.id);
  if (!r) return false;
  const target = r.querySelector('div[role="gridcell"]') || r;
  target.scrollIntoView({block: 'center'});
  for (const type of ['mousedown', 'mouseup']) {
    target.dispatchEvent(new MouseEvent(type, {bubbles: true, cancelable: true, view: window}));
  }
  target.click();
  return true;
""")

_JS_CENTER = _snippet(r"""
  const r = rowById(args.id);
  if (!r) return null;
  const b = r.getBoundingClientRect();
  if (!b.width || !b.height) return null;
  return {x: b.left + b.width / 2, y: b.top + b.height / 2};
""")

_JS_BACK = _snippet(r"""
  const b = firstMatch(args.backSels);
  if (!b) return false;
  (b.closest('button') || b).click();
  return true;
""")

_JS_PANEL = _snippet(r"""
  return !!firstMatch(args.panelSels);
""")

_JS_HEADERS = _snippet(r"""
  const seen = [];
  for (const s of args.headerSels) {
    let els = [];
    try { els = document.querySelectorAll(s); } catch (e) { continue; }
    for (const el of els) {
      const t = (el.getAttribute('title') || el.textContent || '').trim();
      if (t && !seen.includes(t)) seen.push(t);
    }
  }
  return seen;
""")

_JS_MESSAGES = _snippet(r"""
  const out = [];
  for (const el of document.querySelectorAll(args.messageSel)) {
    out.push({prefix: el.getAttribute('data-pre-plain-text'), text: el.textContent || ''});
  }
  return out;
""")

_JS_HISTORY_TOP = _snippet(r"""
  const p = firstMatch(args.panelSels);
  if (!p) return false;
  p.scrollTop = 0;
  p.dispatchEvent(new Event('scroll', {bubbles: true}));
  return true;
""")


def _is_closed_error(e: Exception) -> bool:
    msg = str(e).lower()
    return "closed" in msg or "target crashed" in msg or "has been detached" in msg


class PlaywrightSurface(RenderingSurface):
    def __init__(self, page: Page):
        self.page = page
        self._args = {
            "listSels": CHAT_LIST_SELECTORS,
            "rowSel": ROW_SELECTOR,
            "nameSels": ROW_NAME_SELECTORS,
            "panelSels": PANEL_SELECTORS,
            "headerSels": HEADER_SELECTORS,
            "backSels": BACK_SELECTORS,
            "messageSel": MESSAGE_SELECTOR,
        }

    async def _eval(self, js: str, default: Any = None, **extra) -> Any:
        """Run one snippet; neutral default on DOM trouble, SurfaceUnavailable if the page is gone."""
        if self.page.is_closed():
            raise SurfaceUnavailable("page is closed")
        args = dict(self._args, **extra)
        try:
            return await self.page.evaluate(js, args)
        except PWError as e:
            if self.page.is_closed() or _is_closed_error(e):
                raise SurfaceUnavailable(str(e)) from e
            trace.debug("surface", f"evaluate failed: {e}")
            return default

    # ---- conversation list ----

    async def query_items(self) -> List[RawItem]:
        rows = await self._eval(_JS_ITEMS, default=[]) or []
        return [RawItem(name=r["name"], item_id=r["name"]) for r in rows if r.get("name")]

    async def query_item_by_id(self, item_id: str) -> Optional[RawItem]:
        for row in await self.query_items():
            if row.item_id == item_id:
                return row
        return None

    async def scroll_metrics(self) -> Optional[ScrollMetrics]:
        m = await self._eval(_JS_METRICS)
        if not m:
            return None
        return ScrollMetrics(
            scroll_top=float(m["scrollTop"]),
            scroll_height=float(m["scrollHeight"]),
            client_height=float(m["clientHeight"]),
        )

    async def set_scroll_top(self, value: float) -> None:
        await self._eval(_JS_SET_SCROLL, default=False, value=value)

    async def bring_into_view(self, item_id: str) -> bool:
        return bool(await self._eval(_JS_BRING_INTO_VIEW, default=False, id=item_id))

    # ---- activation ----

    async def activate_item(self, item_id: str) -> bool:
        return bool(await self._eval(_JS_ACTIVATE, default=False, id=item_id))

    async def item_center(self, item_id: str) -> Optional[Tuple[float, float]]:
        c = await self._eval(_JS_CENTER, id=item_id)
        if not c:
            return None
        return float(c["x"]), float(c["y"])

    async def dispatch_pointer_sequence(self, x: float, y: float) -> bool:
        if self.page.is_closed():
            raise SurfaceUnavailable("page is closed")
        try:
            await self.page.mouse.move(x, y)
            await self.page.mouse.down()
            await self.page.mouse.up()
            return True
        except PWError as e:
            if self.page.is_closed() or _is_closed_error(e):
                raise SurfaceUnavailable(str(e)) from e
            trace.debug("surface", f"pointer click failed at ({x:.0f},{y:.0f}): {e}")
            return False

    async def return_to_list(self) -> bool:
        return bool(await self._eval(_JS_BACK, default=False))

    # ---- open conversation ----

    async def query_panel_marker(self) -> bool:
        return bool(await self._eval(_JS_PANEL, default=False))

    async def query_header_texts(self) -> List[str]:
        return list(await self._eval(_JS_HEADERS, default=[]) or [])

    async def query_message_elements(self) -> List[MessageRaw]:
        raws = await self._eval(_JS_MESSAGES, default=[]) or []
        return [MessageRaw(prefix=r.get("prefix"), text=r.get("text") or "") for r in raws]

    async def scroll_history_to_top(self) -> bool:
        return bool(await self._eval(_JS_HISTORY_TOP, default=False))

    # ---- sending ----

    async def _first_visible(self, selectors: List[str]) -> Optional[Locator]:
        """Last visible match of the first selector that has one (the composer sits at the bottom)."""
        for sel in selectors:
            loc = self.page.locator(sel)
            count = await loc.count()
            for i in range(count - 1, -1, -1):
                el = loc.nth(i)
                if await el.is_visible():
                    return el
        return None

    async def send_message(self, text: str) -> bool:
        if self.page.is_closed():
            raise SurfaceUnavailable("page is closed")
        try:
            composer = await self._first_visible(COMPOSER_SELECTORS)
            if composer is None:
                trace.debug("surface", "no message composer found")
                return False
            await composer.click()
            await composer.fill(text)

            button = await self._first_visible(SEND_BUTTON_SELECTORS)
            if button is not None:
                await button.click()
            else:
                trace.debug("surface", "no send button; pressing Enter")
                await composer.press("Enter")
            return True
        except PWError as e:
            if self.page.is_closed() or _is_closed_error(e):
                raise SurfaceUnavailable(str(e)) from e
            trace.debug("surface", f"sending failed: {e}")
            return False
