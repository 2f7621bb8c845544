"""
Recognition providers.

Adding a provider means one ``Provider`` subclass plus an entry in
``adapter.PROVIDERS``.
"""

from .settings import (
    DEFAULT_PROVIDER_SETTINGS,
    ConnectionTestResult,
    ProviderConfig,
    ProviderKind,
    ProviderSettings,
    RecognitionResult,
    RequestFormat,
)
from .base import OCR_PROMPT, TEST_IMAGE_B64, Provider, ProviderRequest, normalize_endpoint
from .adapter import PROVIDERS, clean_text, get_provider, list_models, recognize, test_connection

__all__ = [
    'DEFAULT_PROVIDER_SETTINGS',
    'ConnectionTestResult',
    'ProviderConfig',
    'ProviderKind',
    'ProviderSettings',
    'RecognitionResult',
    'RequestFormat',
    'OCR_PROMPT',
    'TEST_IMAGE_B64',
    'Provider',
    'ProviderRequest',
    'normalize_endpoint',
    'PROVIDERS',
    'clean_text',
    'get_provider',
    'list_models',
    'recognize',
    'test_connection',
]
