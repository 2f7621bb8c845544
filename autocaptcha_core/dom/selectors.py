"""
Unique-path naming and selector resolution over page snapshots.

``unique_selector`` derives a CSS selector that re-identifies one element;
``select`` resolves the same selector grammar against a snapshot tree so
stored site rules can be checked without a browser. Live pages resolve the
same strings with ``page.query_selector``.

Supported grammar: type selectors, ``*``, ``#id``, ``.class``,
``[attr]``/``[attr="value"]``, ``:nth-of-type(n)``, joined by the child
(``>``) or descendant (whitespace) combinator.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .snapshot import DomElement

logger = logging.getLogger(__name__)

IDENT_RE = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")

_TOKEN_RE = re.compile(
    r"""
      (?P<tag>\*|[A-Za-z][A-Za-z0-9-]*)
    | \#(?P<id>-?[A-Za-z_][A-Za-z0-9_-]*)
    | \.(?P<cls>-?[A-Za-z_][A-Za-z0-9_-]*)
    | \[\s*(?P<attr>[A-Za-z_:][-A-Za-z0-9_:.]*)\s*
        (?:=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\]\s]+))\s*)?\]
    | :nth-of-type\(\s*(?P<nth>\d+)\s*\)
    """,
    re.VERBOSE,
)


@dataclass
class Compound:
    tag: Optional[str] = None
    ids: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    attrs: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    nth_of_type: Optional[int] = None
    # Combinator joining this compound to the previous one: ">" or " "
    combinator: str = " "


def is_identifier(value: str) -> bool:
    return bool(value) and IDENT_RE.match(value) is not None


def _nth_of_type(element: DomElement) -> int:
    if element.parent is None:
        return 1
    same = [c for c in element.parent.children if c.tag == element.tag]
    return same.index(element) + 1


def unique_selector(element: DomElement) -> str:
    """
    Derive a selector that resolves to exactly this element.

    ``#id`` when the id is a plain identifier used once in the document,
    otherwise a ``body > ...`` path of tag, classes and ``:nth-of-type``.
    """
    root = element.document_root
    if is_identifier(element.id):
        if sum(1 for el in root.iter() if el.id == element.id) == 1:
            return f"#{element.id}"

    steps = []
    node = element
    while node.parent is not None:
        step = node.tag
        classes = [c for c in node.class_list if is_identifier(c)]
        if classes:
            step += "." + ".".join(classes)
        siblings = [c for c in node.parent.children if c.tag == node.tag]
        if len(siblings) > 1:
            step += f":nth-of-type({siblings.index(node) + 1})"
        steps.append(step)
        node = node.parent
    steps.append(node.tag)
    return " > ".join(reversed(steps))


def parse_selector(selector: str) -> List[Compound]:
    """Parse a selector into compounds. Raises ValueError on unsupported syntax."""
    text = (selector or "").strip()
    if not text:
        raise ValueError("Empty selector")

    compounds: List[Compound] = []
    pos = 0
    combinator = " "
    while pos < len(text):
        current = Compound(combinator=combinator)
        started = pos
        while pos < len(text):
            m = _TOKEN_RE.match(text, pos)
            if not m:
                break
            if m.group("tag") is not None:
                if pos != started:
                    raise ValueError(f"Unexpected type selector in {selector!r} at {pos}")
                current.tag = m.group("tag").lower()
            elif m.group("id") is not None:
                current.ids.append(m.group("id"))
            elif m.group("cls") is not None:
                current.classes.append(m.group("cls"))
            elif m.group("attr") is not None:
                value = next((v for v in (m.group("dq"), m.group("sq"), m.group("bare")) if v is not None), None)
                current.attrs.append((m.group("attr").lower(), value))
            else:
                current.nth_of_type = int(m.group("nth"))
            pos = m.end()
        if pos == started:
            raise ValueError(f"Unsupported selector syntax in {selector!r} at {pos}")
        compounds.append(current)

        # Combinator
        gap_start = pos
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos < len(text) and text[pos] == ">":
            combinator = ">"
            pos += 1
            while pos < len(text) and text[pos].isspace():
                pos += 1
            if pos >= len(text):
                raise ValueError(f"Dangling combinator in {selector!r}")
        elif pos > gap_start:
            combinator = " "
        elif pos < len(text):
            raise ValueError(f"Unsupported selector syntax in {selector!r} at {pos}")
    return compounds


def _match_compound(element: DomElement, compound: Compound) -> bool:
    if compound.tag and compound.tag != "*" and element.tag != compound.tag:
        return False
    if any(element.id != i for i in compound.ids):
        return False
    classes = element.class_list
    if any(c not in classes for c in compound.classes):
        return False
    for name, value in compound.attrs:
        if name not in element.attrs:
            return False
        if value is not None and element.attrs[name] != value:
            return False
    if compound.nth_of_type is not None and _nth_of_type(element) != compound.nth_of_type:
        return False
    return True


def _matches(element: DomElement, compounds: List[Compound], index: int) -> bool:
    compound = compounds[index]
    if not _match_compound(element, compound):
        return False
    if index == 0:
        return True
    if compound.combinator == ">":
        return element.parent is not None and _matches(element.parent, compounds, index - 1)
    return any(_matches(anc, compounds, index - 1) for anc in element.ancestors())


def select(root: DomElement, selector: str) -> List[DomElement]:
    """All elements under ``root`` (inclusive) matching ``selector``, in document order."""
    compounds = parse_selector(selector)
    last = len(compounds) - 1
    return [el for el in root.iter() if _matches(el, compounds, last)]


def select_one(root: DomElement, selector: str) -> Optional[DomElement]:
    matches = select(root, selector)
    return matches[0] if matches else None
