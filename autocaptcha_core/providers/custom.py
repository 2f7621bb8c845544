"""
User-defined endpoint speaking either the OpenAI chat or the Ollama generate shape.
"""

from typing import Any

from ..errors import ConfigurationError
from .base import (
    Provider,
    ProviderRequest,
    chat_payload,
    chat_text,
    generate_payload,
    generate_text,
    json_headers,
)
from .settings import ProviderKind, ProviderSettings, RequestFormat


class CustomProvider(Provider):
    kind = ProviderKind.CUSTOM

    def request_format(self, settings: ProviderSettings) -> RequestFormat:
        try:
            return RequestFormat(settings.request_format)
        except ValueError:
            raise ConfigurationError(
                f"custom: unsupported request format {settings.request_format!r}", provider=self.name
            )

    def validate(self, settings: ProviderSettings) -> None:
        super().validate(settings)
        self.request_format(settings)

    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        if self.request_format(settings) == RequestFormat.OPENAI:
            payload = chat_payload(settings.model, image_b64)
        else:
            payload = generate_payload(settings.model, image_b64)
        # Endpoint is used exactly as configured
        return ProviderRequest(url=settings.endpoint, headers=json_headers(settings.api_key), payload=payload)

    def parse_response(self, data: Any, settings: ProviderSettings) -> str:
        if self.request_format(settings) == RequestFormat.OPENAI:
            return chat_text(data)
        return generate_text(data)
