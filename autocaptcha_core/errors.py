"""
Error taxonomy for detection, rasterization and recognition.

Every failure that reaches the user is one of these kinds. The provider
adapter and the orchestrator turn them into failure results, never into
raised exceptions past their own boundary.
"""

from enum import Enum
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CONFIGURATION = "ConfigurationError"
    NETWORK = "NetworkError"
    VENDOR = "VendorError"
    CROSS_ORIGIN = "CrossOriginError"
    UNSUPPORTED_ELEMENT = "UnsupportedElementError"
    NO_CANDIDATE = "NoCandidateError"
    BUSY = "Busy"
    UNKNOWN = "UnknownError"


class CaptchaError(Exception):
    """Base exception for autocaptcha"""
    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ConfigurationError(CaptchaError):
    """Required credential, endpoint or model is missing"""
    kind = ErrorKind.CONFIGURATION


class NetworkError(CaptchaError):
    """Transport failure or non-2xx status"""
    kind = ErrorKind.NETWORK


class VendorError(CaptchaError):
    """2xx response with an unexpected shape"""
    kind = ErrorKind.VENDOR


class CrossOriginError(CaptchaError):
    """Pixel read blocked by the same-origin policy"""
    kind = ErrorKind.CROSS_ORIGIN


class UnsupportedElementError(CaptchaError):
    """Element cannot be rasterized by any known strategy"""
    kind = ErrorKind.UNSUPPORTED_ELEMENT


class NoCandidateError(CaptchaError):
    """No pairing found and no usable site rule"""
    kind = ErrorKind.NO_CANDIDATE


ERROR_HINTS: Dict[ErrorKind, str] = {
    ErrorKind.CONFIGURATION: "Check the provider endpoint, model and API key in the settings",
    ErrorKind.NETWORK: "Check that the provider is reachable and the API key is valid, then try again",
    ErrorKind.VENDOR: "The provider answered in an unexpected format; try another model",
    ErrorKind.CROSS_ORIGIN: "The captcha image is served from another origin; select it manually or enable screenshots",
    ErrorKind.UNSUPPORTED_ELEMENT: "Select the captcha image manually",
    ErrorKind.NO_CANDIDATE: "Select the captcha image and input manually to create a site rule",
    ErrorKind.BUSY: "A recognition is already running; wait for it to finish",
    ErrorKind.UNKNOWN: "Check the logs and try again",
}


def error_kind_of(error: BaseException) -> ErrorKind:
    if isinstance(error, CaptchaError):
        return error.kind
    return ErrorKind.UNKNOWN


def format_user_friendly_error(kind: ErrorKind, message: str) -> Dict[str, str]:
    """
    Convert a failure into a notification payload.

    Returns:
        {"message": str, "suggestion": str, "kind": str}
    """
    hint = ERROR_HINTS.get(kind, ERROR_HINTS[ErrorKind.UNKNOWN])
    logger.debug(f"Mapped {kind.value} to hint: {hint}")
    return {"message": message, "suggestion": hint, "kind": kind.value}
