"""
LM Studio local server (OpenAI-compatible, no credential).
"""

import re
from typing import Any, Dict, List

from .base import ProviderRequest, chat_payload, json_headers, normalize_endpoint
from .openai_chat import CHAT_SUFFIX, OpenAIChatProvider
from .settings import ProviderKind, ProviderSettings


class LMStudioProvider(OpenAIChatProvider):
    kind = ProviderKind.LMSTUDIO
    requires_api_key = False

    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        return ProviderRequest(
            url=normalize_endpoint(settings.endpoint, CHAT_SUFFIX),
            headers=json_headers(),
            payload=chat_payload(settings.model, image_b64, stream=False),
        )

    def models_request(self, settings: ProviderSettings) -> ProviderRequest:
        base = re.sub(r"/chat.*$", "", settings.endpoint or "").rstrip("/")
        return ProviderRequest(url=f"{base}/models", headers=json_headers(), method="GET")

    def parse_models(self, data: Any) -> List[Dict[str, str]]:
        return [{"id": m["id"], "name": m["id"]} for m in data["data"]]
