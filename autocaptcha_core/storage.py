#!/usr/bin/env python3
"""
JSON-file storage for provider config, per-site rules and general settings.

File layout (``Config.store_path``):

    {
        "apiConfig": {...},                 # ProviderConfig.to_dict()
        "siteRules": {"<hostname>": {...}}, # SiteRule.to_dict()
        "generalSettings": {...}            # GeneralSettings.to_dict()
    }

Reads merge stored values over the defaults, so a partial or missing file
always yields complete objects.
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config import config
from .providers.settings import ProviderConfig

logger = logging.getLogger(__name__)

API_CONFIG_KEY = "apiConfig"
SITE_RULES_KEY = "siteRules"
GENERAL_SETTINGS_KEY = "generalSettings"


def now_ms() -> int:
    return int(time.time() * 1000)


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


@dataclass
class SiteRule:
    """Manually chosen selectors for one hostname."""
    origin: str
    image_selector: str = ""
    input_selector: str = ""
    url: str = ""
    created_at: int = 0
    updated_at: int = 0

    @property
    def is_complete(self) -> bool:
        return bool(self.image_selector and self.input_selector)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageSelector": self.image_selector,
            "inputSelector": self.input_selector,
            "url": self.url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, origin: str, data: Optional[Dict[str, Any]]) -> "SiteRule":
        data = data or {}
        return cls(
            origin=origin,
            image_selector=str(data.get("imageSelector") or ""),
            input_selector=str(data.get("inputSelector") or ""),
            url=str(data.get("url") or ""),
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
        )


@dataclass
class GeneralSettings:
    """
    Behaviour switches read by the orchestrator.

    ``show_refresh_button`` and ``debug_mode`` have no behaviour here; they
    are stored and served so settings written by other clients survive a
    round trip through this store.
    """
    auto_detect: bool = True
    auto_fill: bool = True
    auto_recognize: bool = False
    show_refresh_button: bool = True
    show_notifications: bool = True
    debug_mode: bool = False

    _FIELDS = {
        "autoDetect": "auto_detect",
        "autoFill": "auto_fill",
        "autoRecognize": "auto_recognize",
        "showRefreshButton": "show_refresh_button",
        "showNotifications": "show_notifications",
        "debugMode": "debug_mode",
    }

    def to_dict(self) -> Dict[str, bool]:
        return {key: getattr(self, attr) for key, attr in self._FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GeneralSettings":
        settings = cls()
        for key, attr in cls._FIELDS.items():
            if data and key in data:
                value = _as_bool(data[key])
                if value is None:
                    logger.warning(f"Ignoring non-boolean {key}={data[key]!r}")
                else:
                    setattr(settings, attr, value)
        return settings


class JsonStore:
    """
    Synchronous store backed by one JSON file.

    Writes go through a temp file and ``os.replace``; a lock serialises
    access from server worker threads.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else config.store_path
        self._lock = threading.RLock()

    # --- File access ---

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def _update(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    # --- Provider config ---

    def get_api_config(self) -> ProviderConfig:
        with self._lock:
            return ProviderConfig.from_dict(self._load().get(API_CONFIG_KEY))

    def save_api_config(self, api_config: Union[ProviderConfig, Dict[str, Any]]) -> ProviderConfig:
        if not isinstance(api_config, ProviderConfig):
            api_config = ProviderConfig.from_dict(api_config)
        self._update(API_CONFIG_KEY, api_config.to_dict())
        logger.info(f"Saved provider config (active: {api_config.kind})")
        return api_config

    # --- Site rules ---

    def get_site_rules(self) -> Dict[str, SiteRule]:
        with self._lock:
            raw = self._load().get(SITE_RULES_KEY) or {}
        return {origin: SiteRule.from_dict(origin, data) for origin, data in raw.items()}

    def get_site_rule(self, origin: str) -> Optional[SiteRule]:
        return self.get_site_rules().get(origin)

    def save_site_rule(self, origin: str, rule: Union[SiteRule, Dict[str, Any]]) -> SiteRule:
        """Store a rule for ``origin``; ``updated_at`` is always refreshed."""
        if not isinstance(rule, SiteRule):
            rule = SiteRule.from_dict(origin, rule)
        rule.origin = origin
        rule.updated_at = now_ms()
        if not rule.created_at:
            rule.created_at = rule.updated_at
        with self._lock:
            data = self._load()
            rules = data.get(SITE_RULES_KEY) or {}
            rules[origin] = rule.to_dict()
            data[SITE_RULES_KEY] = rules
            self._save(data)
        logger.info(f"Saved site rule for {origin}")
        return rule

    def delete_site_rule(self, origin: str) -> bool:
        with self._lock:
            data = self._load()
            rules = data.get(SITE_RULES_KEY) or {}
            if origin not in rules:
                return False
            del rules[origin]
            data[SITE_RULES_KEY] = rules
            self._save(data)
        logger.info(f"Deleted site rule for {origin}")
        return True

    # --- General settings ---

    def get_general_settings(self) -> GeneralSettings:
        with self._lock:
            return GeneralSettings.from_dict(self._load().get(GENERAL_SETTINGS_KEY))

    def save_general_settings(self, settings: Union[GeneralSettings, Dict[str, Any]]) -> GeneralSettings:
        if not isinstance(settings, GeneralSettings):
            settings = GeneralSettings.from_dict(settings)
        self._update(GENERAL_SETTINGS_KEY, settings.to_dict())
        return settings
