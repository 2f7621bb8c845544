"""
Challenge detection - candidate scanning and image/input pairing.
"""

from .vocabulary import DEFAULT_VOCABULARY, DetectionVocabulary, SizeEnvelope
from .scanner import (
    CandidateImage,
    CandidateInput,
    CandidateScanner,
    ImageKind,
    ScanResult,
    find_label,
    image_kind_of,
    scan,
)
from .pairing import MAX_PAIR_DISTANCE, Pairing, pair, pair_exclusive

__all__ = [
    'DEFAULT_VOCABULARY',
    'DetectionVocabulary',
    'SizeEnvelope',
    'CandidateImage',
    'CandidateInput',
    'CandidateScanner',
    'ImageKind',
    'ScanResult',
    'find_label',
    'image_kind_of',
    'scan',
    'MAX_PAIR_DISTANCE',
    'Pairing',
    'pair',
    'pair_exclusive',
]
