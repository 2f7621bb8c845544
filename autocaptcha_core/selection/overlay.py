"""
Manual selection overlay.

``ManualSelector`` feeds pointer/click/key events through the pure machine
in ``machine.py`` and hands the resulting effects to a driver:

- ``SnapshotOverlayDriver`` applies them to an in-memory snapshot
  (tests, offline fixtures)
- ``PlaywrightOverlayDriver`` injects a capture layer and a banner into a
  live page and receives DOM events through ``page.expose_binding``
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from ..dom.page import ELEMENT_BY_PATH_JS
from ..dom.snapshot import DomElement, PageSnapshot, capture_snapshot
from .machine import (
    IDLE,
    OUTLINE_STYLE,
    Armed,
    ClearHighlight,
    Click,
    Deliver,
    Highlight,
    InstallOverlay,
    Key,
    PointerMove,
    SelectionMode,
    ShowBanner,
    Start,
    SuppressDefault,
    Teardown,
    Transition,
    step,
)

logger = logging.getLogger(__name__)


class SnapshotOverlayDriver:
    """Applies overlay effects to a ``PageSnapshot``."""

    def __init__(self, snapshot: PageSnapshot):
        self.snapshot = snapshot
        self.overlay_installed = False
        self.mode: Optional[SelectionMode] = None
        self.banner: Optional[str] = None
        self.highlighted: Optional[DomElement] = None
        self.suppressed = 0
        self.teardowns = 0

    def bind(self, dispatch) -> None:
        # Events are pushed by the caller (ManualSelector.move_to / click / key)
        return None

    def element_at(self, x: float, y: float) -> Optional[DomElement]:
        return self.snapshot.element_at(x, y)

    async def apply(self, effect) -> None:
        if isinstance(effect, InstallOverlay):
            self.overlay_installed = True
            self.mode = effect.mode
        elif isinstance(effect, ShowBanner):
            self.banner = effect.text
        elif isinstance(effect, Highlight):
            effect.element.style["outline"] = OUTLINE_STYLE
            self.highlighted = effect.element
        elif isinstance(effect, ClearHighlight):
            effect.element.style.pop("outline", None)
            if self.highlighted is effect.element:
                self.highlighted = None
        elif isinstance(effect, SuppressDefault):
            self.suppressed += 1
        elif isinstance(effect, Teardown):
            if self.highlighted is not None:
                self.highlighted.style.pop("outline", None)
                self.highlighted = None
            self.overlay_installed = False
            self.mode = None
            self.banner = None
            self.teardowns += 1


INSTALL_SCRIPT = r"""
(args) => {
    if (window.__autocaptchaSelector) return true;
    const pathOf = (el) => {
        const path = [];
        while (el && el !== document.body) {
            if (!el.parentElement) return null;
            path.unshift(Array.prototype.indexOf.call(el.parentElement.children, el));
            el = el.parentElement;
        }
        return el === document.body ? path : null;
    };
    const emit = window[args.binding];
    const state = {last: null};

    state.overlay = document.createElement('div');
    state.overlay.id = 'autocaptcha-selector-overlay';
    state.overlay.style.cssText = 'position:fixed;top:0;left:0;width:100%;height:100%;' +
        'z-index:2147483646;pointer-events:none;';
    document.body.appendChild(state.overlay);

    state.banner = document.createElement('div');
    state.banner.id = 'autocaptcha-selector-banner';
    state.banner.style.cssText = 'position:fixed;top:10px;left:50%;transform:translateX(-50%);' +
        'background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);color:white;' +
        'padding:12px 24px;border-radius:8px;font-size:14px;z-index:2147483647;' +
        'box-shadow:0 4px 20px rgba(0,0,0,0.3);pointer-events:none;';
    document.body.appendChild(state.banner);

    state.onMove = (e) => {
        const el = document.elementFromPoint(e.clientX, e.clientY);
        if (!el || el === state.last) return;
        const path = pathOf(el);
        if (path === null) return;
        state.last = el;
        emit({type: 'move', path, tag: el.tagName.toLowerCase()});
    };
    state.onClick = (e) => {
        e.preventDefault();
        e.stopPropagation();
        emit({type: 'click'});
    };
    state.onKey = (e) => {
        emit({type: 'key', key: e.key});
    };
    document.addEventListener('mousemove', state.onMove);
    document.addEventListener('click', state.onClick, true);
    document.addEventListener('keydown', state.onKey);
    window.__autocaptchaSelector = state;
    return true;
}
"""

BANNER_SCRIPT = """
(text) => {
    const state = window.__autocaptchaSelector;
    if (state && state.banner) state.banner.textContent = text;
}
"""

OUTLINE_SCRIPT = "(args) => {" + ELEMENT_BY_PATH_JS + """
    const el = __byPath(args.path);
    if (el) el.style.outline = args.outline;
    return !!el;
}
"""

TEARDOWN_SCRIPT = """
() => {
    const state = window.__autocaptchaSelector;
    if (!state) return false;
    document.removeEventListener('mousemove', state.onMove);
    document.removeEventListener('click', state.onClick, true);
    document.removeEventListener('keydown', state.onKey);
    if (state.overlay) state.overlay.remove();
    if (state.banner) state.banner.remove();
    delete window.__autocaptchaSelector;
    return true;
}
"""


class PlaywrightOverlayDriver:
    """
    Applies overlay effects to a live Playwright page.

    Page elements are addressed by their child-index path from body; a path
    whose tag no longer matches the snapshot triggers a fresh snapshot.
    """

    BINDING = "__autocaptchaSelectorEvent"

    def __init__(self, page, snapshot: PageSnapshot):
        self.page = page
        self.snapshot = snapshot
        self._dispatch: Optional[Callable] = None
        self._bound = False

    def bind(self, dispatch) -> None:
        self._dispatch = dispatch

    async def _ensure_binding(self) -> None:
        if self._bound:
            return
        await self.page.expose_binding(self.BINDING, self._on_event)
        self._bound = True

    async def _resolve(self, path: List[int], tag: str) -> Optional[DomElement]:
        element = self.snapshot.element_by_path(path)
        if element is not None and element.tag == tag:
            return element
        logger.debug(f"Snapshot out of date at path {path}, capturing again")
        self.snapshot = await capture_snapshot(self.page)
        element = self.snapshot.element_by_path(path)
        if element is not None and element.tag == tag:
            return element
        return None

    async def _on_event(self, source, payload: dict) -> None:
        if self._dispatch is None or not isinstance(payload, dict):
            return
        kind = payload.get("type")
        if kind == "move":
            element = await self._resolve(payload.get("path") or [], payload.get("tag") or "")
            await self._dispatch(PointerMove(element))
        elif kind == "click":
            await self._dispatch(Click())
        elif kind == "key":
            await self._dispatch(Key(str(payload.get("key") or "")))

    async def apply(self, effect) -> None:
        if isinstance(effect, InstallOverlay):
            await self._ensure_binding()
            await self.page.evaluate(INSTALL_SCRIPT, {"binding": self.BINDING})
        elif isinstance(effect, ShowBanner):
            await self.page.evaluate(BANNER_SCRIPT, effect.text)
        elif isinstance(effect, Highlight):
            await self.page.evaluate(OUTLINE_SCRIPT, {"path": effect.element.index_path(), "outline": OUTLINE_STYLE})
        elif isinstance(effect, ClearHighlight):
            await self.page.evaluate(OUTLINE_SCRIPT, {"path": effect.element.index_path(), "outline": ""})
        elif isinstance(effect, Teardown):
            await self.page.evaluate(TEARDOWN_SCRIPT)
        # SuppressDefault: the injected click listener always prevents the default


class ManualSelector:
    """
    One interactive selection session at a time.

    Usage:
        selector = ManualSelector(SnapshotOverlayDriver(snapshot))
        future = await selector.start("image")
        await selector.move_to(120, 40)
        await selector.click()
        selection = await future    # {"element", "selector", "mode"} or None
    """

    def __init__(self, driver):
        self.driver = driver
        self.state = IDLE
        self.last_outcome: Optional[str] = None
        self._future: Optional[asyncio.Future] = None
        self._callback: Optional[Callable[[Optional[dict]], Any]] = None
        driver.bind(self.dispatch)

    @property
    def active(self) -> bool:
        return isinstance(self.state, Armed)

    @property
    def highlighted(self) -> Optional[DomElement]:
        return self.state.highlighted if isinstance(self.state, Armed) else None

    async def start(self, mode, callback: Optional[Callable[[Optional[dict]], Any]] = None) -> asyncio.Future:
        """
        Arm the overlay. An active selection is cancelled first.

        Returns:
            Future resolving to the selection dict, or None when cancelled
        """
        transition = step(self.state, Start(SelectionMode(mode)))
        await self._run(transition)
        self._future = asyncio.get_running_loop().create_future()
        self._callback = callback
        logger.info(f"Manual selection started ({SelectionMode(mode).value})")
        return self._future

    async def dispatch(self, event) -> Transition:
        transition = step(self.state, event)
        await self._run(transition)
        return transition

    async def pointer_move(self, element: Optional[DomElement]) -> Transition:
        return await self.dispatch(PointerMove(element))

    async def move_to(self, x: float, y: float) -> Transition:
        return await self.dispatch(PointerMove(self.driver.element_at(x, y)))

    async def click(self) -> Transition:
        return await self.dispatch(Click())

    async def key(self, key: str) -> Transition:
        return await self.dispatch(Key(key))

    async def cancel(self) -> Transition:
        return await self.key("Escape")

    async def _run(self, transition: Transition) -> None:
        self.state = transition.state
        if transition.outcome:
            self.last_outcome = transition.outcome
        for effect in transition.effects:
            if isinstance(effect, Deliver):
                self._deliver(effect.selection)
            else:
                await self.driver.apply(effect)

    def _deliver(self, selection: Optional[dict]) -> None:
        future, callback = self._future, self._callback
        self._future, self._callback = None, None
        if selection is None:
            logger.info("Manual selection cancelled")
        else:
            logger.info(f"Manual selection: {selection['mode']} -> {selection['selector']}")
        if future is not None and not future.done():
            future.set_result(selection)
        if callback is not None:
            callback(selection)
