"""
autocaptcha - locate image captchas on web pages and solve them with vision models.

Public entry points:
    RecognitionOrchestrator   detect / select / recognize / fill on one page
    recognize                 provider adapter over five vision APIs
    JsonStore                 provider config, site rules, general settings
"""

from .config import Config, config
from .errors import CaptchaError, ErrorKind
from .orchestrator import DetectionResult, RecognitionOrchestrator
from .providers import ProviderConfig, RecognitionResult, recognize, test_connection
from .storage import GeneralSettings, JsonStore, SiteRule

__version__ = "0.1.0"

__all__ = [
    'Config',
    'config',
    'CaptchaError',
    'ErrorKind',
    'DetectionResult',
    'RecognitionOrchestrator',
    'ProviderConfig',
    'RecognitionResult',
    'recognize',
    'test_connection',
    'GeneralSettings',
    'JsonStore',
    'SiteRule',
]
