"""
Ollama local generate provider.
"""

import re
from typing import Any, Dict, List

from .base import Provider, ProviderRequest, generate_payload, generate_text, json_headers, normalize_endpoint
from .settings import ProviderKind, ProviderSettings


def generate_endpoint(endpoint: str) -> str:
    """``/api/generate`` is appended unless the endpoint already names an API path."""
    return normalize_endpoint(endpoint, "/api/generate", marker="/api/")


def format_size(size: int) -> str:
    gib = 1024 ** 3
    if size < gib:
        return f"{size / 1024 ** 2:.0f} MB"
    return f"{size / gib:.1f} GB"


class OllamaProvider(Provider):
    kind = ProviderKind.OLLAMA

    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        return ProviderRequest(
            url=generate_endpoint(settings.endpoint),
            headers=json_headers(),
            payload=generate_payload(settings.model, image_b64),
        )

    def parse_response(self, data: Any, settings: ProviderSettings) -> str:
        return generate_text(data)

    def models_request(self, settings: ProviderSettings) -> ProviderRequest:
        base = re.sub(r"/api.*$", "", settings.endpoint or "").rstrip("/")
        return ProviderRequest(url=f"{base}/api/tags", method="GET")

    def parse_models(self, data: Any) -> List[Dict[str, str]]:
        models = []
        for model in data["models"]:
            name = model["name"]
            size = model.get("size")
            label = f"{name} ({format_size(int(size))})" if size else name
            models.append({"id": name, "name": label})
        return models
