"""
Manual selection - pure state machine plus snapshot/Playwright overlay drivers.
"""

from .machine import (
    CANCELLED,
    COMMITTED,
    IDLE,
    OUTLINE_STYLE,
    OVERLAY_PREFIX,
    Armed,
    Click,
    Idle,
    Key,
    PointerMove,
    SelectionMode,
    Start,
    Transition,
    is_valid_target,
    step,
)
from .overlay import ManualSelector, PlaywrightOverlayDriver, SnapshotOverlayDriver

__all__ = [
    'CANCELLED',
    'COMMITTED',
    'IDLE',
    'OUTLINE_STYLE',
    'OVERLAY_PREFIX',
    'Armed',
    'Click',
    'Idle',
    'Key',
    'PointerMove',
    'SelectionMode',
    'Start',
    'Transition',
    'is_valid_target',
    'step',
    'ManualSelector',
    'PlaywrightOverlayDriver',
    'SnapshotOverlayDriver',
]
