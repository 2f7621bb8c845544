"""
Manual selection state machine.

Pure transitions: ``step(state, event) -> Transition(state, effects, outcome)``.
Nothing here touches a page; effect drivers in ``overlay.py`` apply the
returned effects to a snapshot or a live Playwright page.

States:
    IDLE                       no selection active
    ARMED(mode, highlighted)   overlay installed, waiting for a click

Outcomes (recorded on the transition, machine is back at IDLE):
    "committed"   a highlighted element was clicked and delivered
    "cancelled"   Escape pressed or superseded by a new start
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from ..dom.selectors import unique_selector
from ..dom.snapshot import DomElement

# Ids of overlay elements injected into the page start with this prefix
OVERLAY_PREFIX = "autocaptcha-"

OUTLINE_STYLE = "3px solid #667eea"

COMMITTED = "committed"
CANCELLED = "cancelled"


class SelectionMode(str, Enum):
    IMAGE = "image"
    INPUT = "input"


BANNER_TEXT = {
    SelectionMode.IMAGE: "Selection mode: click the captcha image (Esc to cancel)",
    SelectionMode.INPUT: "Selection mode: click the captcha input box (Esc to cancel)",
}


# --- States ---

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Armed:
    mode: SelectionMode
    highlighted: Optional[DomElement] = None


State = Union[Idle, Armed]
IDLE = Idle()


# --- Events ---

@dataclass(frozen=True)
class Start:
    mode: SelectionMode


@dataclass(frozen=True)
class PointerMove:
    element: Optional[DomElement]


@dataclass(frozen=True)
class Click:
    pass


@dataclass(frozen=True)
class Key:
    key: str


# --- Effects ---

@dataclass(frozen=True)
class InstallOverlay:
    mode: SelectionMode


@dataclass(frozen=True)
class ShowBanner:
    text: str


@dataclass(frozen=True)
class Highlight:
    element: DomElement


@dataclass(frozen=True)
class ClearHighlight:
    element: DomElement


@dataclass(frozen=True)
class SuppressDefault:
    pass


@dataclass(frozen=True)
class Teardown:
    pass


@dataclass(frozen=True)
class Deliver:
    # {"element", "selector", "mode"} or None on cancel
    selection: Optional[dict]


@dataclass
class Transition:
    state: State
    effects: List[Any] = field(default_factory=list)
    outcome: Optional[str] = None


def is_overlay_element(element: DomElement) -> bool:
    return element.id.startswith(OVERLAY_PREFIX)


def is_valid_target(element: DomElement, mode: SelectionMode) -> bool:
    """Image mode takes img/canvas/background-image elements, input mode single-line text inputs."""
    if mode == SelectionMode.IMAGE:
        return element.is_image_like
    return element.is_text_input


def _cancel(state: Armed) -> List[Any]:
    effects: List[Any] = []
    if state.highlighted is not None:
        effects.append(ClearHighlight(state.highlighted))
    effects.append(Teardown())
    effects.append(Deliver(None))
    return effects


def step(state: State, event: Any) -> Transition:
    """Apply one event. Unknown events and events while IDLE change nothing."""
    if isinstance(event, Start):
        effects: List[Any] = []
        outcome = None
        if isinstance(state, Armed):
            effects.extend(_cancel(state))
            outcome = CANCELLED
        mode = SelectionMode(event.mode)
        effects.append(InstallOverlay(mode))
        effects.append(ShowBanner(BANNER_TEXT[mode]))
        return Transition(Armed(mode=mode), effects, outcome)

    if not isinstance(state, Armed):
        return Transition(state)

    if isinstance(event, PointerMove):
        element = event.element
        if element is None or element is state.highlighted:
            return Transition(state)
        if is_overlay_element(element) or not is_valid_target(element, state.mode):
            return Transition(state)
        effects = []
        if state.highlighted is not None:
            effects.append(ClearHighlight(state.highlighted))
        effects.append(Highlight(element))
        return Transition(Armed(mode=state.mode, highlighted=element), effects)

    if isinstance(event, Click):
        if state.highlighted is None:
            return Transition(state, [SuppressDefault()])
        element = state.highlighted
        selection = {
            "element": element,
            "selector": unique_selector(element),
            "mode": state.mode.value,
        }
        return Transition(
            IDLE,
            [SuppressDefault(), ClearHighlight(element), Teardown(), Deliver(selection)],
            COMMITTED,
        )

    if isinstance(event, Key):
        if event.key == "Escape":
            return Transition(IDLE, _cancel(state), CANCELLED)
        return Transition(state)

    return Transition(state)
