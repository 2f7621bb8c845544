"""
Candidate Scanner - classify page elements as challenge images or inputs.

No hardcoded site selectors: every element of the snapshot is judged by
keyword, size and proximity heuristics from a ``DetectionVocabulary``.

Image rules (any match qualifies):
1. identifying text (src, id, class, alt, name) contains a keyword
2. size inside the challenge envelope AND within proximity of a text input

<img>, <canvas> and background-image elements all use both rules; canvas
and background elements use rendered pixel sizes.

Input rules (single-line text inputs only, any match qualifies):
keyword in id/name/class, placeholder phrase, or label text.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..dom.snapshot import DomElement, corner_distance
from .vocabulary import DEFAULT_VOCABULARY, DetectionVocabulary

logger = logging.getLogger(__name__)

# How far up the tree to look for a wrapping or sibling label
LABEL_ANCESTOR_LEVELS = 3


class ImageKind(str, Enum):
    RASTER_IMAGE = "raster-image"
    CANVAS_SURFACE = "canvas-surface"
    STYLED_BACKGROUND = "styled-background"


@dataclass(eq=False)
class CandidateImage:
    element: DomElement
    kind: ImageKind
    identifying_text: str
    width: float
    height: float
    reason: str
    generation: int = 0


@dataclass(eq=False)
class CandidateInput:
    element: DomElement
    identifying_text: str
    label_text: str
    reason: str
    generation: int = 0


@dataclass
class ScanResult:
    images: List[CandidateImage] = field(default_factory=list)
    inputs: List[CandidateInput] = field(default_factory=list)
    generation: int = 0

    @property
    def empty(self) -> bool:
        return not self.images and not self.inputs


def find_label(element: DomElement) -> Optional[DomElement]:
    """
    Label associated with an input.

    ``label[for=id]`` first, then up to three ancestor levels: an ancestor
    that is itself a label, or the first label inside it.
    """
    root = element.document_root
    if element.id:
        for el in root.iter():
            if el.tag == "label" and el.get("for") == element.id:
                return el

    parent = element.parent
    for _ in range(LABEL_ANCESTOR_LEVELS):
        if parent is None:
            break
        if parent.tag == "label":
            return parent
        for el in parent.iter():
            if el is not parent and el.tag == "label":
                return el
        parent = parent.parent
    return None


def label_text(label: DomElement) -> str:
    parts = [el.text for el in label.iter() if el.text]
    return " ".join(parts).strip()


def image_kind_of(element: DomElement) -> Optional[ImageKind]:
    if element.tag == "img":
        return ImageKind.RASTER_IMAGE
    if element.tag == "canvas":
        return ImageKind.CANVAS_SURFACE
    if element.has_background_image and element.tag not in ("body", "html"):
        return ImageKind.STYLED_BACKGROUND
    return None


class CandidateScanner:
    """
    Walks a snapshot tree and returns challenge image/input candidates.

    Usage:
        scanner = CandidateScanner()
        result = scanner.scan(snapshot.root, generation=snapshot.generation)
    """

    def __init__(self, vocabulary: DetectionVocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def scan(self, root: DomElement, generation: int = 0) -> ScanResult:
        elements = list(root.iter())
        text_inputs = [el for el in elements if el.is_text_input]

        inputs = []
        for el in text_inputs:
            candidate = self.classify_input(el, generation)
            if candidate:
                inputs.append(candidate)

        images = []
        for el in elements:
            candidate = self.classify_image(el, text_inputs, generation)
            if candidate:
                images.append(candidate)

        logger.debug(
            f"Scan generation {generation}: {len(images)} image(s), {len(inputs)} input(s) "
            f"out of {len(elements)} element(s)"
        )
        return ScanResult(images=images, inputs=inputs, generation=generation)

    # --- Images ---

    def classify_image(
        self,
        element: DomElement,
        text_inputs: List[DomElement],
        generation: int = 0,
    ) -> Optional[CandidateImage]:
        kind = image_kind_of(element)
        if kind is None:
            return None

        text = self._image_identifying_text(element, kind)
        width, height = self._image_size(element, kind)

        keyword = self.vocabulary.image_keyword_in(text)
        if keyword:
            reason = f"keyword:{keyword}"
        elif self.vocabulary.size.contains(width, height) and self._near_input(element, text_inputs):
            reason = "size+proximity"
        else:
            return None

        return CandidateImage(
            element=element,
            kind=kind,
            identifying_text=text,
            width=width,
            height=height,
            reason=reason,
            generation=generation,
        )

    def _image_identifying_text(self, element: DomElement, kind: ImageKind) -> str:
        parts = [
            element.get("src"),
            element.id,
            element.class_name,
            element.get("alt"),
            element.get("name"),
        ]
        if kind == ImageKind.STYLED_BACKGROUND:
            parts.append(element.background_image)
        return " ".join(parts).lower()

    def _image_size(self, element: DomElement, kind: ImageKind):
        if kind == ImageKind.RASTER_IMAGE:
            width = element.natural_width or _int_attr(element, "width") or element.rect.width
            height = element.natural_height or _int_attr(element, "height") or element.rect.height
        elif kind == ImageKind.CANVAS_SURFACE:
            width = element.natural_width or element.rect.width
            height = element.natural_height or element.rect.height
        else:
            width, height = element.rect.width, element.rect.height
        return float(width), float(height)

    def _near_input(self, element: DomElement, text_inputs: List[DomElement]) -> bool:
        return any(
            corner_distance(element.rect, inp.rect) < self.vocabulary.proximity
            for inp in text_inputs
        )

    # --- Inputs ---

    def classify_input(self, element: DomElement, generation: int = 0) -> Optional[CandidateInput]:
        if not element.is_text_input:
            return None

        text = f"{element.id} {element.get('name')} {element.class_name}".lower()
        label = find_label(element)
        label_str = label_text(label) if label is not None else ""

        keyword = self.vocabulary.input_keyword_in(text)
        placeholder = self.vocabulary.placeholder_in(element.get("placeholder"))
        if keyword:
            reason = f"keyword:{keyword}"
        elif placeholder:
            reason = f"placeholder:{placeholder}"
        else:
            hit = self.vocabulary.input_keyword_in(label_str) or self.vocabulary.placeholder_in(label_str)
            if not hit:
                return None
            reason = f"label:{hit}"

        return CandidateInput(
            element=element,
            identifying_text=text,
            label_text=label_str,
            reason=reason,
            generation=generation,
        )


def _int_attr(element: DomElement, name: str) -> int:
    try:
        value = float(element.get(name))
    except (TypeError, ValueError):
        return 0
    # "Infinity", "1e999" and "NaN" all parse as floats
    return int(value) if math.isfinite(value) else 0


def scan(root: DomElement, vocabulary: DetectionVocabulary = DEFAULT_VOCABULARY, generation: int = 0) -> ScanResult:
    """Shortcut for ``CandidateScanner(vocabulary).scan(root, generation)``."""
    return CandidateScanner(vocabulary).scan(root, generation=generation)
