"""
Command surface between execution contexts.

Messages are plain dicts with an ``action`` key:

    BackgroundService   recognition, connectivity, storage, model listing
    PageCommands        detection, recognition and selection on one page

Unknown actions answer ``{"error": "Unknown action: <name>"}``; a handler
exception answers ``{"success": False, "error": "<message>"}``.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import Config, config as default_config
from .imaging import fetch_image_as_data_uri
from .orchestrator import RecognitionOrchestrator
from .providers import ProviderConfig, list_models, recognize, test_connection
from .selection import SelectionMode
from .storage import JsonStore

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


class CommandRouter:
    """Dispatch ``message["action"]`` to ``self.handlers``."""

    def __init__(self):
        self.handlers: Dict[str, Handler] = {}

    async def handle_message(self, message: Dict[str, Any]) -> Any:
        action = (message or {}).get("action")
        handler = self.handlers.get(action)
        if handler is None:
            logger.warning(f"Unknown action: {action}")
            return {"error": f"Unknown action: {action}"}
        try:
            return await handler(message)
        except Exception as e:
            logger.error(f"Action {action} failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}


class BackgroundService(CommandRouter):
    """Background role: owns provider access and storage."""

    def __init__(self, store: Optional[JsonStore] = None, config: Optional[Config] = None, session=None):
        super().__init__()
        self.store = store if store is not None else JsonStore()
        self.config = config or default_config
        # Optional aiohttp-compatible session shared by provider calls
        self.session = session
        self.handlers = {
            "recognizeCaptcha": self.recognize_captcha,
            "recognizeWithImage": self.recognize_captcha,
            "testApiConnection": self.test_api_connection,
            "testProviderConnection": self.test_api_connection,
            "listModels": self.list_models,
            "getApiConfig": self.get_api_config,
            "saveApiConfig": self.save_api_config,
            "getSiteRule": self.get_site_rule,
            "saveSiteRule": self.save_site_rule,
            "deleteSiteRule": self.delete_site_rule,
            "getSiteRules": self.get_site_rules,
            "getGeneralSettings": self.get_general_settings,
            "saveGeneralSettings": self.save_general_settings,
            "fetchImageAsBase64": self.fetch_image,
        }

    def _provider_config(self, message: Dict[str, Any]) -> ProviderConfig:
        if message.get("config"):
            return ProviderConfig.from_dict(message["config"])
        return self.store.get_api_config()

    async def recognize_captcha(self, message: Dict[str, Any]) -> Dict[str, Any]:
        image = message.get("imageData") or message.get("image") or ""
        result = await recognize(
            image,
            self._provider_config(message),
            session=self.session,
            timeout=self.config.request_timeout,
        )
        return result.to_dict()

    async def test_api_connection(self, message: Dict[str, Any]) -> Dict[str, Any]:
        result = await test_connection(self._provider_config(message), session=self.session)
        return result.to_dict()

    async def list_models(self, message: Dict[str, Any]) -> Dict[str, Any]:
        provider_config = self._provider_config(message)
        if message.get("type"):
            provider_config.kind = str(message["type"])
        models = await list_models(provider_config, session=self.session)
        return {"success": True, "models": models}

    async def get_api_config(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.get_api_config().to_dict()

    async def save_api_config(self, message: Dict[str, Any]) -> Dict[str, Any]:
        self.store.save_api_config(message.get("config") or {})
        return {"success": True}

    async def get_site_rule(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rule = self.store.get_site_rule(message.get("hostname") or "")
        return rule.to_dict() if rule else None

    async def save_site_rule(self, message: Dict[str, Any]) -> Dict[str, Any]:
        hostname = message.get("hostname")
        if not hostname:
            raise ValueError("hostname is required")
        self.store.save_site_rule(hostname, message.get("rule") or {})
        return {"success": True}

    async def delete_site_rule(self, message: Dict[str, Any]) -> Dict[str, Any]:
        deleted = self.store.delete_site_rule(message.get("hostname") or "")
        return {"success": True, "deleted": deleted}

    async def get_site_rules(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return {origin: rule.to_dict() for origin, rule in self.store.get_site_rules().items()}

    async def get_general_settings(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.get_general_settings().to_dict()

    async def save_general_settings(self, message: Dict[str, Any]) -> Dict[str, Any]:
        self.store.save_general_settings(message.get("settings") or {})
        return {"success": True}

    async def fetch_image(self, message: Dict[str, Any]) -> str:
        url = message.get("url")
        if not url:
            raise ValueError("url is required")
        return await fetch_image_as_data_uri(url, session=self.session)


class PageCommands(CommandRouter):
    """Page role: forwards commands to one page's orchestrator."""

    def __init__(self, orchestrator: RecognitionOrchestrator):
        super().__init__()
        self.orchestrator = orchestrator
        self.handlers = {
            "detect": self.detect,
            "recognize": self.recognize,
            "startSelectImage": self.start_select_image,
            "startSelectInput": self.start_select_input,
            "startManualSelection": self.start_manual_selection,
            "setInputSelector": self.start_select_input,
            "setImageSelector": self.set_image_selector,
            "getStatus": self.get_status,
            "captchaResult": self.captcha_result,
        }

    async def detect(self, message: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.orchestrator.detect()
        return {"found": result.found, "count": len(result.pairs), "source": result.source}

    async def recognize(self, message: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.orchestrator.recognize_and_fill()
        return result.to_dict()

    async def _start(self, mode: SelectionMode) -> Dict[str, Any]:
        await self.orchestrator.start_manual_selection(mode)
        return {"success": True, "mode": mode.value}

    async def start_select_image(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self._start(SelectionMode.IMAGE)

    async def start_select_input(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self._start(SelectionMode.INPUT)

    async def start_manual_selection(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self._start(SelectionMode(message.get("mode") or SelectionMode.IMAGE.value))

    async def set_image_selector(self, message: Dict[str, Any]) -> Dict[str, Any]:
        rule = await self.orchestrator.set_image_from_source(message.get("srcUrl") or "")
        return {"success": rule is not None}

    async def get_status(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return self.orchestrator.get_status()

    async def captcha_result(self, message: Dict[str, Any]) -> Dict[str, Any]:
        filled = await self.orchestrator.handle_captcha_result(message.get("result") or {})
        return {"success": True, "filled": filled}
