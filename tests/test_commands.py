import asyncio

import pytest

from autocaptcha_core.commands import BackgroundService, PageCommands
from autocaptcha_core.config import Config
from autocaptcha_core.orchestrator import RecognitionOrchestrator
from autocaptcha_core.providers import RecognitionResult

from conftest import PNG_DATA_URI, FakeResponse

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(store):
    return BackgroundService(store=store, config=Config())


async def test_unknown_action(service):
    assert await service.handle_message({"action": "launchRockets"}) == {"error": "Unknown action: launchRockets"}
    assert await service.handle_message({}) == {"error": "Unknown action: None"}


async def test_recognize_message_uses_stored_config(service, make_session):
    service.store.save_api_config({"type": "ollama"})
    service.session = make_session(FakeResponse(body={"response": "Q 1 2"}))
    reply = await service.handle_message({"action": "recognizeCaptcha", "imageData": PNG_DATA_URI})
    assert reply == {"success": True, "result": "Q12", "provider": "ollama"}
    assert service.session.last["url"] == "http://localhost:11434/api/generate"


async def test_recognize_message_with_inline_config(service, make_session):
    service.session = make_session()
    reply = await service.handle_message({
        "action": "recognizeWithImage",
        "image": PNG_DATA_URI,
        "config": {"type": "gemini", "gemini": {"apiKey": ""}},
    })
    assert reply["success"] is False
    assert reply["errorKind"] == "ConfigurationError"
    assert reply["provider"] == "gemini"


async def test_connection_message(service, make_session):
    service.session = make_session(FakeResponse(body={"response": "x"}))
    reply = await service.handle_message({"action": "testApiConnection", "config": {"type": "ollama"}})
    assert reply == {"success": True, "message": "API connection succeeded"}


async def test_list_models_errors_become_failure_replies(service, make_session):
    service.session = make_session()
    reply = await service.handle_message({"action": "listModels", "type": "custom"})
    assert reply["success"] is False
    assert "not supported" in reply["error"]


async def test_storage_messages(service):
    assert await service.handle_message({"action": "getSiteRule", "hostname": "a.example"}) is None
    await service.handle_message({
        "action": "saveSiteRule",
        "hostname": "a.example",
        "rule": {"imageSelector": "#i", "inputSelector": "#t"},
    })
    rule = await service.handle_message({"action": "getSiteRule", "hostname": "a.example"})
    assert rule["imageSelector"] == "#i"
    assert set(await service.handle_message({"action": "getSiteRules"})) == {"a.example"}
    assert await service.handle_message({"action": "deleteSiteRule", "hostname": "a.example"}) == {
        "success": True, "deleted": True,
    }

    await service.handle_message({"action": "saveGeneralSettings", "settings": {"debugMode": True}})
    settings = await service.handle_message({"action": "getGeneralSettings"})
    assert settings["debugMode"] is True

    await service.handle_message({"action": "saveApiConfig", "config": {"type": "lmstudio"}})
    assert (await service.handle_message({"action": "getApiConfig"}))["type"] == "lmstudio"


async def test_save_site_rule_requires_hostname(service):
    reply = await service.handle_message({"action": "saveSiteRule", "rule": {}})
    assert reply == {"success": False, "error": "hostname is required"}


@pytest.fixture
def page_commands(login_page, store):
    async def recognizer(image, provider_config):
        return RecognitionResult.ok("zz9", provider="ollama")

    orchestrator = RecognitionOrchestrator(login_page, recognizer=recognizer, store=store, config=Config())
    return PageCommands(orchestrator)


async def test_page_detect_and_recognize(page_commands, login_page):
    assert await page_commands.handle_message({"action": "detect"}) == {"found": True, "count": 1, "source": "heuristic"}
    reply = await page_commands.handle_message({"action": "recognize"})
    assert reply == {"success": True, "result": "zz9", "provider": "ollama"}
    status = await page_commands.handle_message({"action": "getStatus"})
    assert status["pairCount"] == 1


async def test_page_selection_and_results(page_commands, store):
    assert await page_commands.handle_message({"action": "startSelectImage"}) == {"success": True, "mode": "image"}
    assert page_commands.orchestrator.selector.active
    assert await page_commands.handle_message({"action": "startManualSelection", "mode": "input"}) == {
        "success": True, "mode": "input",
    }
    assert await page_commands.handle_message({"action": "setImageSelector", "srcUrl": "/captcha.jpg?t=1"}) == {
        "success": True,
    }
    assert store.get_site_rule("shop.example.com").image_selector == "#vcode-img"

    reply = await page_commands.handle_message({"action": "captchaResult", "result": {"success": True, "result": "k2"}})
    assert reply == {"success": True, "filled": True}

    await page_commands.orchestrator.selector.cancel()
    await asyncio.sleep(0)
