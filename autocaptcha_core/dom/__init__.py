"""
DOM layer - page snapshots, unique-path selectors and page backends.
"""

from .snapshot import (
    DomElement,
    PageSnapshot,
    Rect,
    SNAPSHOT_SCRIPT,
    capture_snapshot,
    corner_distance,
    next_generation,
)
from .selectors import parse_selector, select, select_one, unique_selector
from .page import PageContext, PlaywrightPage, SnapshotPage

__all__ = [
    'DomElement',
    'PageSnapshot',
    'Rect',
    'SNAPSHOT_SCRIPT',
    'capture_snapshot',
    'corner_distance',
    'next_generation',
    'parse_selector',
    'select',
    'select_one',
    'unique_selector',
    'PageContext',
    'PlaywrightPage',
    'SnapshotPage',
]
