"""
OpenAI chat-completions vision provider.
"""

from typing import Any, Dict, List

from .base import Provider, ProviderRequest, chat_payload, chat_text, json_headers, normalize_endpoint
from .settings import ProviderKind, ProviderSettings

CHAT_SUFFIX = "/chat/completions"

# Model ids containing one of these are vision-capable
VISION_MODEL_MARKERS = ("gpt-4", "vision")


def models_base(endpoint: str) -> str:
    return (endpoint or "").replace(CHAT_SUFFIX, "").rstrip("/")


class OpenAIChatProvider(Provider):
    kind = ProviderKind.OPENAI
    requires_api_key = True

    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        return ProviderRequest(
            url=normalize_endpoint(settings.endpoint, CHAT_SUFFIX),
            headers=json_headers(settings.api_key),
            payload=chat_payload(settings.model, image_b64),
        )

    def parse_response(self, data: Any, settings: ProviderSettings) -> str:
        return chat_text(data)

    def models_request(self, settings: ProviderSettings) -> ProviderRequest:
        self.require_api_key(settings)
        return ProviderRequest(
            url=f"{models_base(settings.endpoint)}/models",
            headers=json_headers(settings.api_key),
            method="GET",
        )

    def parse_models(self, data: Any) -> List[Dict[str, str]]:
        ids = [m["id"] for m in data["data"]]
        vision = [i for i in ids if any(marker in i for marker in VISION_MODEL_MARKERS)]
        chosen = vision or ids[:20]
        return [{"id": i, "name": i} for i in chosen]
