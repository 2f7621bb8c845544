"""
Provider Adapter - one entry point over every recognition provider.

    result = await recognize(image, provider_config)
    if result.success:
        print(result.text)

``recognize`` and ``test_connection`` never raise: every failure comes back
as a result carrying an ``ErrorKind``. ``list_models`` raises CaptchaError
subclasses for its callers to report.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Union

import aiohttp

from ..config import config as app_config
from ..errors import CaptchaError, ConfigurationError, ErrorKind
from ..imaging import to_base64
from .base import TEST_IMAGE_B64, Provider
from .custom import CustomProvider
from .gemini import GeminiProvider
from .lmstudio import LMStudioProvider
from .ollama import OllamaProvider
from .openai_chat import OpenAIChatProvider
from .settings import ConnectionTestResult, ProviderConfig, ProviderKind, RecognitionResult

logger = logging.getLogger(__name__)

PROVIDERS: Dict[ProviderKind, Provider] = {
    provider.kind: provider
    for provider in (
        OpenAIChatProvider(),
        GeminiProvider(),
        OllamaProvider(),
        LMStudioProvider(),
        CustomProvider(),
    )
}

_WHITESPACE_RE = re.compile(r"\s+")


def get_provider(kind: str) -> Provider:
    try:
        return PROVIDERS[ProviderKind(kind)]
    except (ValueError, KeyError):
        raise ConfigurationError(f"Unsupported provider type: {kind}", provider=str(kind))


def clean_text(text: str) -> str:
    """Strip and remove all whitespace, including between characters."""
    return _WHITESPACE_RE.sub("", (text or "").strip())


@asynccontextmanager
async def open_session(session=None, timeout: Optional[float] = None):
    """Yield ``session`` as is, or a fresh ClientSession bounded by the request timeout."""
    if session is not None:
        yield session
        return
    timeout_obj = aiohttp.ClientTimeout(total=timeout or app_config.request_timeout)
    async with aiohttp.ClientSession(timeout=timeout_obj) as owned:
        yield owned


async def recognize(
    image: Union[str, bytes],
    provider_config: ProviderConfig,
    session=None,
    timeout: Optional[float] = None,
) -> RecognitionResult:
    """
    Recognize the text of a challenge image with the active provider.

    Args:
        image: data URI, raw base64 or PNG bytes
        provider_config: active kind plus per-kind settings
        session: optional aiohttp-compatible session (tests inject one)
        timeout: total seconds, defaults to Config.request_timeout

    Returns:
        RecognitionResult; success text has all whitespace removed
    """
    kind = provider_config.kind
    try:
        provider = get_provider(kind)
        settings = provider_config.settings_for(provider.kind)
        image_b64 = to_base64(image)
        async with open_session(session, timeout) as s:
            text = await provider.recognize(image_b64, settings, s)
    except CaptchaError as e:
        logger.warning(f"Recognition failed ({e.kind.value}): {e}")
        return RecognitionResult.failure(e.kind, str(e), provider=kind)
    except Exception as e:
        logger.error(f"Recognition failed unexpectedly: {e}", exc_info=True)
        return RecognitionResult.failure(ErrorKind.UNKNOWN, str(e), provider=kind)

    cleaned = clean_text(text)
    logger.info(f"Recognized {len(cleaned)} character(s) with {kind}")
    return RecognitionResult.ok(cleaned, provider=kind)


async def test_connection(provider_config: ProviderConfig, session=None) -> ConnectionTestResult:
    """Recognize a 1x1 PNG to check endpoint, model and credential."""
    result = await recognize(TEST_IMAGE_B64, provider_config, session=session)
    if result.success:
        return ConnectionTestResult(True, "API connection succeeded")
    return ConnectionTestResult(False, f"API connection failed: {result.message}")


# Keep pytest from collecting the public coroutine above as a test
test_connection.__test__ = False


async def list_models(provider_config: ProviderConfig, session=None) -> List[Dict[str, str]]:
    """
    Models available for the active provider as ``[{"id", "name"}]``.

    Raises:
        ConfigurationError, NetworkError, VendorError
    """
    provider = get_provider(provider_config.kind)
    settings = provider_config.settings_for(provider.kind)
    async with open_session(session) as s:
        models = await provider.list_models(settings, s)
    logger.info(f"Listed {len(models)} model(s) for {provider.name}")
    return models
