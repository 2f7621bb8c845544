"""
Page snapshot - a Python view of the rendered DOM.

The live page is serialised once per scan with a single ``page.evaluate``
call; everything downstream (scanner, namer, selector overlay) works on the
resulting ``DomElement`` tree. The same tree can be built from plain dicts,
which is how tests and offline fixtures describe pages.
"""

import itertools
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlparse


_generations = itertools.count(1)


def next_generation() -> int:
    return next(_generations)


@dataclass
class Rect:
    """Bounding client rect in CSS pixels"""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def corner_distance(a: Rect, b: Rect) -> float:
    """Euclidean distance between two top-left corners."""
    return math.hypot(a.x - b.x, a.y - b.y)


@dataclass(eq=False)
class DomElement:
    """One element of a page snapshot. Compared by identity."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    rect: Rect = field(default_factory=Rect)
    natural_width: int = 0
    natural_height: int = 0
    background_image: str = "none"
    text: str = ""
    value: str = ""
    children: List["DomElement"] = field(default_factory=list)
    parent: Optional["DomElement"] = field(default=None, repr=False)
    style: Dict[str, str] = field(default_factory=dict, repr=False)

    def get(self, name: str) -> str:
        return self.attrs.get(name) or ""

    @property
    def id(self) -> str:
        return self.get("id")

    @property
    def class_name(self) -> str:
        return self.get("class")

    @property
    def class_list(self) -> List[str]:
        return [c for c in self.class_name.split() if c]

    @property
    def input_type(self) -> str:
        return self.get("type").strip().lower()

    @property
    def is_text_input(self) -> bool:
        """Single-line free-text entry: <input> without a type or type=text."""
        return self.tag == "input" and self.input_type in ("", "text")

    @property
    def has_background_image(self) -> bool:
        bg = (self.background_image or "").strip().lower()
        return bool(bg) and bg != "none" and "url(" in bg

    @property
    def is_image_like(self) -> bool:
        return self.tag in ("img", "canvas") or self.has_background_image

    def iter(self) -> Iterator["DomElement"]:
        """Pre-order walk including this element."""
        yield self
        for child in self.children:
            yield from child.iter()

    def ancestors(self) -> Iterator["DomElement"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    @property
    def document_root(self) -> "DomElement":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def index_path(self) -> List[int]:
        """Child indices from the snapshot root down to this element."""
        path: List[int] = []
        node = self
        while node.parent is not None:
            path.append(node.parent.children.index(node))
            node = node.parent
        path.reverse()
        return path

    @classmethod
    def from_dict(cls, data: Dict[str, Any], parent: Optional["DomElement"] = None) -> "DomElement":
        rect = data.get("rect") or {}
        attrs = {str(k): "" if v is None else str(v) for k, v in (data.get("attrs") or {}).items()}
        el = cls(
            tag=str(data.get("tag") or "div").lower(),
            attrs=attrs,
            rect=Rect(
                x=float(rect.get("x", 0) or 0),
                y=float(rect.get("y", 0) or 0),
                width=float(rect.get("width", 0) or 0),
                height=float(rect.get("height", 0) or 0),
            ),
            natural_width=int(data.get("naturalWidth", 0) or 0),
            natural_height=int(data.get("naturalHeight", 0) or 0),
            background_image=str(data.get("backgroundImage") or "none"),
            text=str(data.get("text") or ""),
            value=str(data.get("value") or ""),
            parent=parent,
        )
        el.children = [cls.from_dict(child, el) for child in data.get("children") or []]
        return el


@dataclass
class PageSnapshot:
    """The element tree of one page at one moment (one scan generation)."""
    root: DomElement
    url: str = ""
    generation: int = 0

    @property
    def origin(self) -> str:
        return urlparse(self.url).hostname or ""

    def iter_elements(self) -> Iterator[DomElement]:
        return self.root.iter()

    def element_at(self, x: float, y: float) -> Optional[DomElement]:
        """Topmost element under a viewport point (last match in document order)."""
        hit = None
        for el in self.iter_elements():
            if el is self.root or el.rect.is_empty:
                continue
            if el.rect.contains(x, y):
                hit = el
        return hit

    def element_by_path(self, path: List[int]) -> Optional[DomElement]:
        node = self.root
        for index in path:
            if index < 0 or index >= len(node.children):
                return None
            node = node.children[index]
        return node

    @classmethod
    def from_dict(cls, data: Dict[str, Any], url: str = "", generation: Optional[int] = None) -> "PageSnapshot":
        """Build a snapshot from ``{url, root}`` or from a bare root element dict."""
        root_data = data.get("root", data)
        if "root" not in data and not root_data.get("tag"):
            root_data = dict(root_data, tag="body")
        return cls(
            root=DomElement.from_dict(root_data),
            url=url or str(data.get("url") or ""),
            generation=next_generation() if generation is None else generation,
        )


SNAPSHOT_SCRIPT = r"""
() => {
    const LEAF_ONLY = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE']);
    const walk = (el) => {
        const r = el.getBoundingClientRect();
        const attrs = {};
        for (const a of Array.from(el.attributes || [])) {
            attrs[a.name] = a.value;
        }
        const tag = el.tagName.toLowerCase();
        const node = {
            tag,
            attrs,
            rect: {x: r.left, y: r.top, width: r.width, height: r.height},
            naturalWidth: 0,
            naturalHeight: 0,
            backgroundImage: 'none',
            text: '',
            value: '',
            children: []
        };
        if (tag === 'img') {
            node.naturalWidth = el.naturalWidth || 0;
            node.naturalHeight = el.naturalHeight || 0;
        } else if (tag === 'canvas') {
            node.naturalWidth = el.width || 0;
            node.naturalHeight = el.height || 0;
        }
        if (LEAF_ONLY.has(el.tagName)) {
            return node;
        }
        try {
            node.backgroundImage = window.getComputedStyle(el).backgroundImage || 'none';
        } catch (e) {}
        if (tag === 'input' || tag === 'textarea') {
            node.value = el.value || '';
        }
        if (tag === 'label' || el.children.length === 0) {
            node.text = (el.textContent || '').trim().slice(0, 200);
        }
        node.children = Array.from(el.children).map(walk);
        return node;
    };
    return {url: location.href, root: walk(document.body)};
}
"""


async def capture_snapshot(page) -> PageSnapshot:
    """
    Serialise the live DOM of a Playwright page.

    Args:
        page: Playwright page

    Returns:
        PageSnapshot with a fresh generation number
    """
    data = await page.evaluate(SNAPSHOT_SCRIPT)
    return PageSnapshot.from_dict(data or {"root": {"tag": "body"}}, url=getattr(page, "url", "") or "")
