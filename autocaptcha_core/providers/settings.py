#!/usr/bin/env python3
"""
Provider configuration and result types.

Stored form (camelCase, one block per provider kind):

    {
        "type": "openai",
        "openai":   {"apiKey": "", "endpoint": "...", "model": "gpt-4o-mini"},
        "gemini":   {...},
        "ollama":   {"endpoint": "http://localhost:11434", "model": "llava"},
        "lmstudio": {...},
        "custom":   {"endpoint": "", "apiKey": "", "model": "", "requestFormat": "openai"}
    }

Only the block named by ``type`` is ever read.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ErrorKind


class ProviderKind(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    CUSTOM = "custom"


class RequestFormat(str, Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"


@dataclass
class ProviderSettings:
    endpoint: str = ""
    api_key: str = ""
    model: str = ""
    request_format: str = ""

    def to_dict(self) -> Dict[str, str]:
        data = {"endpoint": self.endpoint, "apiKey": self.api_key, "model": self.model}
        if self.request_format:
            data["requestFormat"] = self.request_format
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], defaults: Optional["ProviderSettings"] = None) -> "ProviderSettings":
        base = defaults or cls()
        data = data or {}
        return cls(
            endpoint=str(data.get("endpoint", base.endpoint) or ""),
            api_key=str(data.get("apiKey", base.api_key) or ""),
            model=str(data.get("model", base.model) or ""),
            request_format=str(data.get("requestFormat", base.request_format) or ""),
        )


DEFAULT_PROVIDER_SETTINGS: Dict[ProviderKind, ProviderSettings] = {
    ProviderKind.OPENAI: ProviderSettings(
        endpoint="https://api.openai.com/v1/chat/completions",
        model="gpt-4o-mini",
    ),
    ProviderKind.GEMINI: ProviderSettings(
        endpoint="https://generativelanguage.googleapis.com/v1beta/models",
        model="gemini-1.5-flash",
    ),
    ProviderKind.OLLAMA: ProviderSettings(
        endpoint="http://localhost:11434",
        model="llava",
    ),
    ProviderKind.LMSTUDIO: ProviderSettings(
        endpoint="http://localhost:1234/v1",
        model="local-model",
    ),
    ProviderKind.CUSTOM: ProviderSettings(
        request_format=RequestFormat.OPENAI.value,
    ),
}


def _default_providers() -> Dict[ProviderKind, ProviderSettings]:
    return {
        kind: ProviderSettings(**vars(settings))
        for kind, settings in DEFAULT_PROVIDER_SETTINGS.items()
    }


@dataclass
class ProviderConfig:
    """
    Active provider kind plus per-kind settings.

    ``kind`` is kept as the raw stored string so an unknown value surfaces as
    a ConfigurationError at recognition time, not when loading settings.
    """
    kind: str = ProviderKind.OPENAI.value
    providers: Dict[ProviderKind, ProviderSettings] = field(default_factory=_default_providers)

    @property
    def active(self) -> Optional[ProviderSettings]:
        try:
            return self.providers.get(ProviderKind(self.kind))
        except ValueError:
            return None

    def settings_for(self, kind: ProviderKind) -> ProviderSettings:
        return self.providers.get(kind) or ProviderSettings(**vars(DEFAULT_PROVIDER_SETTINGS[kind]))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind}
        for kind in ProviderKind:
            data[kind.value] = self.settings_for(kind).to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProviderConfig":
        """Merge a stored/partial config over the defaults."""
        data = data or {}
        providers = {
            kind: ProviderSettings.from_dict(data.get(kind.value), DEFAULT_PROVIDER_SETTINGS[kind])
            for kind in ProviderKind
        }
        return cls(kind=str(data.get("type") or ProviderKind.OPENAI.value), providers=providers)


@dataclass
class RecognitionResult:
    success: bool
    text: str = ""
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    provider: str = ""

    @classmethod
    def ok(cls, text: str, provider: str = "") -> "RecognitionResult":
        return cls(success=True, text=text, provider=provider)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, provider: str = "") -> "RecognitionResult":
        return cls(success=False, error_kind=kind, message=message, provider=provider)

    def to_dict(self) -> Dict[str, Any]:
        """Message form: {success, result} or {success, error, errorKind}."""
        if self.success:
            return {"success": True, "result": self.text, "provider": self.provider}
        return {
            "success": False,
            "error": self.message,
            "errorKind": self.error_kind.value if self.error_kind else ErrorKind.UNKNOWN.value,
            "provider": self.provider,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognitionResult":
        if data.get("success"):
            return cls.ok(str(data.get("result") or ""), str(data.get("provider") or ""))
        try:
            kind = ErrorKind(data.get("errorKind") or ErrorKind.UNKNOWN.value)
        except ValueError:
            kind = ErrorKind.UNKNOWN
        return cls.failure(kind, str(data.get("error") or ""), str(data.get("provider") or ""))


@dataclass
class ConnectionTestResult:
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}
