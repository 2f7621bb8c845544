"""
Detection vocabulary - keyword and phrase tables for the candidate scanner.

The tables are plain immutable data handed to ``CandidateScanner``; nothing
reads them as module state, so tests can scan with synthetic vocabularies.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SizeEnvelope:
    """Plausible rendered size of a challenge image, inclusive bounds in px"""
    min_width: int = 50
    max_width: int = 300
    min_height: int = 20
    max_height: int = 100

    def contains(self, width: float, height: float) -> bool:
        return (
            self.min_width <= width <= self.max_width
            and self.min_height <= height <= self.max_height
        )


@dataclass(frozen=True)
class DetectionVocabulary:
    image_keywords: Tuple[str, ...]
    input_keywords: Tuple[str, ...]
    placeholders: Tuple[str, ...]
    size: SizeEnvelope = SizeEnvelope()
    # Max top-left corner distance (px) between an unlabelled image and a text input
    proximity: float = 300.0

    def image_keyword_in(self, text: str) -> str:
        """First image keyword contained in ``text`` (lower-cased), or ''."""
        return _first_hit(self.image_keywords, text)

    def input_keyword_in(self, text: str) -> str:
        return _first_hit(self.input_keywords, text)

    def placeholder_in(self, text: str) -> str:
        return _first_hit(self.placeholders, text)


def _first_hit(needles: Tuple[str, ...], text: str) -> str:
    haystack = (text or "").lower()
    for needle in needles:
        if needle.lower() in haystack:
            return needle
    return ""


DEFAULT_VOCABULARY = DetectionVocabulary(
    image_keywords=(
        'captcha', 'verify', 'code', 'vcode', 'checkcode', 'authcode',
        'seccode', 'validcode', 'imgcode', 'piccode', 'yzm', 'yanzhengma',
        'verification', 'security',
    ),
    input_keywords=(
        'captcha', 'verify', 'code', 'vcode', 'checkcode', 'authcode',
        'seccode', 'validcode', 'yzm', 'yanzhengma', 'verification',
    ),
    placeholders=(
        '驗證碼', '验证码', 'captcha', 'verification code', '請輸入驗證碼',
        '请输入验证码', 'enter code', 'security code',
    ),
)
