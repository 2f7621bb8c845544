"""
Google Gemini generateContent provider.

The API key travels as the ``key`` query parameter, never as a header.
"""

from typing import Any, Dict, List

from .base import MAX_OUTPUT_TOKENS, OCR_PROMPT, Provider, ProviderRequest, json_headers
from .settings import ProviderKind, ProviderSettings

GEMINI_MIME_TYPE = "image/png"


class GeminiProvider(Provider):
    kind = ProviderKind.GEMINI
    requires_api_key = True

    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        endpoint = (settings.endpoint or "").rstrip("/")
        return ProviderRequest(
            url=f"{endpoint}/{settings.model}:generateContent",
            headers=json_headers(),
            params={"key": settings.api_key},
            payload={
                "contents": [{
                    "parts": [
                        {"text": OCR_PROMPT},
                        {"inline_data": {"mime_type": GEMINI_MIME_TYPE, "data": image_b64}},
                    ],
                }],
                "generationConfig": {"maxOutputTokens": MAX_OUTPUT_TOKENS},
            },
        )

    def parse_response(self, data: Any, settings: ProviderSettings) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]

    def models_request(self, settings: ProviderSettings) -> ProviderRequest:
        self.require_api_key(settings)
        return ProviderRequest(
            url=(settings.endpoint or "").rstrip("/"),
            params={"key": settings.api_key},
            method="GET",
        )

    def parse_models(self, data: Any) -> List[Dict[str, str]]:
        models = []
        for model in data["models"]:
            if "generateContent" not in (model.get("supportedGenerationMethods") or []):
                continue
            model_id = model["name"].replace("models/", "")
            models.append({"id": model_id, "name": model.get("displayName") or model_id})
        return models
