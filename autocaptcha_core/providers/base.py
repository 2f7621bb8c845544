"""
Provider base - request building, HTTP transport and error mapping.

Each vendor subclass only says how to build its request and where the text
sits in the response; transport, status handling and error mapping live
here.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from ..errors import ConfigurationError, NetworkError, VendorError
from ..imaging import ensure_data_uri
from .settings import ProviderKind, ProviderSettings

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Read the text or digits in this captcha image. Reply with the plain text "
    "result only, without any explanation. If there are several characters, "
    "output them consecutively without spaces."
)

MAX_OUTPUT_TOKENS = 100

# 1x1 PNG used for connectivity tests
TEST_IMAGE_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


@dataclass
class ProviderRequest:
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    payload: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, str]] = None
    method: str = "POST"

    @property
    def body(self) -> Optional[str]:
        if self.payload is None:
            return None
        return dumps(self.payload)


def dumps(payload: Dict[str, Any]) -> str:
    """Compact JSON, same bytes as JSON.stringify."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def normalize_endpoint(endpoint: str, suffix: str, marker: Optional[str] = None) -> str:
    """
    Drop one trailing slash and append ``suffix`` unless ``marker`` (default:
    the suffix itself) already occurs in the endpoint.
    """
    url = re.sub(r"/$", "", endpoint or "")
    if (marker or suffix) not in url:
        url = f"{url}{suffix}"
    return url


def json_headers(api_key: str = "") -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def chat_payload(model: str, image_b64: str, **extra) -> Dict[str, Any]:
    """OpenAI chat-completions vision body."""
    payload = {
        "model": model,
        "messages": [{
            "role": "user",
            "content": [
                {"type": "text", "text": OCR_PROMPT},
                {"type": "image_url", "image_url": {"url": ensure_data_uri(image_b64)}},
            ],
        }],
        "max_tokens": MAX_OUTPUT_TOKENS,
    }
    payload.update(extra)
    return payload


def chat_text(data: Any) -> str:
    return data["choices"][0]["message"]["content"]


def generate_payload(model: str, image_b64: str) -> Dict[str, Any]:
    """Ollama generate body."""
    return {
        "model": model,
        "prompt": OCR_PROMPT,
        "images": [image_b64],
        "stream": False,
    }


def generate_text(data: Any) -> str:
    return data["response"]


def extract_error_message(data: Any, reason: str) -> str:
    """``error.message``, then a string ``error``, then ``message``, then the status reason."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
    return reason or ""


async def send_request(session, request: ProviderRequest, provider: str) -> Any:
    """
    Perform one HTTP call and return the decoded JSON body.

    Raises:
        NetworkError: transport failure, timeout or non-2xx status
        VendorError: 2xx with a body that is not JSON
    """
    logger.debug(f"{provider} {request.method} {request.url}")
    try:
        async with session.request(
            request.method,
            request.url,
            headers=request.headers,
            params=request.params,
            data=request.body,
        ) as resp:
            if resp.status < 200 or resp.status >= 300:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                message = extract_error_message(data, resp.reason or "")
                raise NetworkError(
                    f"{provider} API error: {resp.status} - {message}",
                    provider=provider,
                    status=resp.status,
                )
            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise VendorError(f"{provider} returned a non-JSON body: {e}", provider=provider, status=resp.status)
    except aiohttp.ClientError as e:
        raise NetworkError(f"{provider} request failed: {e}", provider=provider)
    except asyncio.TimeoutError:
        raise NetworkError(f"{provider} request timed out", provider=provider)


class Provider(ABC):
    """One vendor request/response contract."""

    kind: ProviderKind
    requires_api_key = False

    @property
    def name(self) -> str:
        return self.kind.value

    def validate(self, settings: ProviderSettings) -> None:
        if not settings.endpoint:
            raise ConfigurationError(f"{self.name}: endpoint is not configured", provider=self.name)
        if not settings.model:
            raise ConfigurationError(f"{self.name}: model is not configured", provider=self.name)
        self.require_api_key(settings)

    def require_api_key(self, settings: ProviderSettings) -> None:
        if self.requires_api_key and not settings.api_key:
            raise ConfigurationError(f"{self.name}: API key is not configured", provider=self.name)

    @abstractmethod
    def build_request(self, image_b64: str, settings: ProviderSettings) -> ProviderRequest:
        """Request for one recognition of a raw base64 PNG."""

    @abstractmethod
    def parse_response(self, data: Any, settings: ProviderSettings) -> str:
        """Extract the recognized text from a decoded 2xx body."""

    def models_request(self, settings: ProviderSettings) -> ProviderRequest:
        raise ConfigurationError(f"{self.name}: model listing is not supported", provider=self.name)

    def parse_models(self, data: Any) -> List[Dict[str, str]]:
        return []

    async def recognize(self, image_b64: str, settings: ProviderSettings, session) -> str:
        self.validate(settings)
        request = self.build_request(image_b64, settings)
        data = await send_request(session, request, self.name)
        try:
            text = self.parse_response(data, settings)
        except (KeyError, IndexError, TypeError) as e:
            raise VendorError(f"{self.name}: unexpected response shape ({type(e).__name__}: {e})", provider=self.name)
        if text is None:
            return ""
        if not isinstance(text, str):
            raise VendorError(f"{self.name}: response text is not a string", provider=self.name)
        return text

    async def list_models(self, settings: ProviderSettings, session) -> List[Dict[str, str]]:
        request = self.models_request(settings)
        data = await send_request(session, request, self.name)
        try:
            return self.parse_models(data)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise VendorError(f"{self.name}: unexpected model list shape ({e})", provider=self.name)
