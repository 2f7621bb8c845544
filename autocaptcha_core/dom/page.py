"""
Page backends.

``PageContext`` is what the orchestrator talks to: it snapshots the DOM,
resolves stored selectors, writes answers into inputs and rasterizes
challenge images. ``PlaywrightPage`` drives a real browser page;
``SnapshotPage`` works on an in-memory snapshot and is what tests and
offline fixtures use.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from urllib.parse import urlparse

from ..errors import UnsupportedElementError
from .selectors import select_one
from .snapshot import DomElement, PageSnapshot, capture_snapshot

logger = logging.getLogger(__name__)


class PageContext(ABC):
    """One page in one execution context."""

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @property
    def origin(self) -> str:
        return urlparse(self.url).hostname or ""

    @abstractmethod
    async def snapshot(self) -> PageSnapshot:
        """Capture the current element tree as a new scan generation."""

    async def resolve(self, selector: str, snapshot: PageSnapshot) -> Optional[DomElement]:
        """Resolve a stored selector to an element of ``snapshot``."""
        return select_one(snapshot.root, selector)

    @abstractmethod
    async def fill(self, element: DomElement, value: str) -> None:
        """Write ``value`` into an input and fire input/change/keyup."""

    @abstractmethod
    async def rasterize(self, element: DomElement) -> str:
        """Pixel data of an image-like element as a PNG data URI."""

    @abstractmethod
    def overlay_driver(self, snapshot: PageSnapshot):
        """Effect driver for the manual selection overlay."""


class SnapshotPage(PageContext):
    """
    In-memory page backed by a fixed snapshot.

    ``pixels`` maps selectors to data URIs; ``rasterize`` returns the entry
    whose selector resolves to the requested element.
    """

    def __init__(self, snapshot: PageSnapshot, pixels: Optional[Dict[str, str]] = None):
        self._snapshot = snapshot
        self.pixels = dict(pixels or {})
        self.events: List[tuple] = []

    @property
    def url(self) -> str:
        return self._snapshot.url

    async def snapshot(self) -> PageSnapshot:
        return self._snapshot

    def replace(self, snapshot: PageSnapshot) -> None:
        """Swap in a new page state, as after a navigation or DOM mutation."""
        self._snapshot = snapshot

    async def fill(self, element: DomElement, value: str) -> None:
        element.value = value
        for event in ("input", "change", "keyup"):
            self.events.append((event, element))

    async def rasterize(self, element: DomElement) -> str:
        for selector, data_uri in self.pixels.items():
            if select_one(self._snapshot.root, selector) is element:
                return data_uri
        raise UnsupportedElementError(f"No pixel data for <{element.tag}>")

    def overlay_driver(self, snapshot: PageSnapshot):
        from ..selection.overlay import SnapshotOverlayDriver
        return SnapshotOverlayDriver(snapshot)


ELEMENT_BY_PATH_JS = """
const __byPath = (path) => {
    let el = document.body;
    for (const i of path) {
        if (!el) return null;
        el = el.children[i];
    }
    return el || null;
};
"""

PATH_OF_SELECTOR_SCRIPT = """
(selector) => {
    let el;
    try {
        el = document.querySelector(selector);
    } catch (e) {
        return null;
    }
    if (!el) return null;
    if (el === document.body) return [];
    if (!document.body.contains(el)) return null;
    const path = [];
    while (el && el !== document.body) {
        path.unshift(Array.prototype.indexOf.call(el.parentElement.children, el));
        el = el.parentElement;
    }
    return path;
}
"""

FILL_SCRIPT = "(args) => {" + ELEMENT_BY_PATH_JS + """
    const input = __byPath(args.path);
    if (!input) return false;
    input.value = args.value;
    input.dispatchEvent(new Event('input', {bubbles: true}));
    input.dispatchEvent(new Event('change', {bubbles: true}));
    input.dispatchEvent(new KeyboardEvent('keyup', {bubbles: true}));
    return true;
}
"""


class PlaywrightPage(PageContext):
    """Live Playwright page."""

    def __init__(self, page, screenshot_fallback: bool = True):
        self.page = page
        self.screenshot_fallback = screenshot_fallback

    @property
    def url(self) -> str:
        return self.page.url or ""

    async def snapshot(self) -> PageSnapshot:
        return await capture_snapshot(self.page)

    async def resolve(self, selector: str, snapshot: PageSnapshot) -> Optional[DomElement]:
        path = await self.page.evaluate(PATH_OF_SELECTOR_SCRIPT, selector)
        if path is None:
            return None
        return snapshot.element_by_path(path)

    async def fill(self, element: DomElement, value: str) -> None:
        ok = await self.page.evaluate(FILL_SCRIPT, {"path": element.index_path(), "value": value})
        if not ok:
            raise UnsupportedElementError("Input element is no longer attached to the page")
        element.value = value

    async def rasterize(self, element: DomElement) -> str:
        from ..imaging import rasterize_element
        return await rasterize_element(self.page, element, screenshot_fallback=self.screenshot_fallback)

    def overlay_driver(self, snapshot: PageSnapshot):
        from ..selection.overlay import PlaywrightOverlayDriver
        return PlaywrightOverlayDriver(self.page, snapshot)
