"""
Pairing Engine - match candidate images to candidate inputs by distance.
"""

import logging
from dataclasses import dataclass
from typing import List

from ..dom.selectors import unique_selector
from ..dom.snapshot import corner_distance
from .scanner import CandidateImage, CandidateInput

logger = logging.getLogger(__name__)

MAX_PAIR_DISTANCE = 500.0


@dataclass(eq=False)
class Pairing:
    image: CandidateImage
    input: CandidateInput
    distance: float
    rank: int = 0
    generation: int = 0

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "distance": round(self.distance, 1),
            "imageSelector": unique_selector(self.image.element),
            "inputSelector": unique_selector(self.input.element),
            "imageKind": self.image.kind.value,
            "imageReason": self.image.reason,
            "inputReason": self.input.reason,
        }


def _distance(image: CandidateImage, inp: CandidateInput) -> float:
    return corner_distance(image.element.rect, inp.element.rect)


def _ranked(pairs: List[Pairing]) -> List[Pairing]:
    pairs.sort(key=lambda p: p.distance)
    for rank, p in enumerate(pairs):
        p.rank = rank
    return pairs


def pair(
    images: List[CandidateImage],
    inputs: List[CandidateInput],
    max_distance: float = MAX_PAIR_DISTANCE,
) -> List[Pairing]:
    """
    Pair every image with its nearest input of the same scan generation.

    An input may serve several images. Pairs at or beyond ``max_distance``
    are dropped.

    Returns:
        Pairings sorted by ascending distance, ranked from 0
    """
    pairs: List[Pairing] = []
    for image in images:
        best = None
        best_distance = float("inf")
        for inp in inputs:
            if inp.generation != image.generation:
                continue
            d = _distance(image, inp)
            if d < best_distance:
                best, best_distance = inp, d
        if best is not None and best_distance < max_distance:
            pairs.append(Pairing(image=image, input=best, distance=best_distance, generation=image.generation))

    logger.debug(f"Paired {len(pairs)} of {len(images)} image(s) with {len(inputs)} input(s)")
    return _ranked(pairs)


def pair_exclusive(
    images: List[CandidateImage],
    inputs: List[CandidateInput],
    max_distance: float = MAX_PAIR_DISTANCE,
) -> List[Pairing]:
    """
    One-to-one pairing: shortest edges first, each image and input used once.

    The best pair is the same as with ``pair``.
    """
    edges = []
    for image in images:
        for inp in inputs:
            if inp.generation != image.generation:
                continue
            d = _distance(image, inp)
            if d < max_distance:
                edges.append((d, image, inp))
    edges.sort(key=lambda e: e[0])

    used_images, used_inputs = set(), set()
    pairs: List[Pairing] = []
    for d, image, inp in edges:
        if id(image) in used_images or id(inp) in used_inputs:
            continue
        used_images.add(id(image))
        used_inputs.add(id(inp))
        pairs.append(Pairing(image=image, input=inp, distance=d, generation=image.generation))
    return _ranked(pairs)
