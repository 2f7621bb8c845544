import asyncio

import pytest

from autocaptcha_core.config import Config
from autocaptcha_core.dom.page import SnapshotPage
from autocaptcha_core.dom.snapshot import PageSnapshot
from autocaptcha_core.errors import ErrorKind
from autocaptcha_core.orchestrator import RecognitionOrchestrator
from autocaptcha_core.providers import RecognitionResult
from autocaptcha_core.run_logger import RunLogger

from conftest import PNG_DATA_URI, login_page_dict

pytestmark = pytest.mark.asyncio

HOST = "shop.example.com"


class FakeRecognizer:
    def __init__(self, result=None):
        self.result = result or RecognitionResult.ok("AB3c", provider="openai")
        self.calls = []

    async def __call__(self, image, provider_config):
        self.calls.append((image, provider_config))
        return self.result


@pytest.fixture
def notes():
    return []


@pytest.fixture
def make_orchestrator(login_page, store, notes):
    def factory(page=None, recognizer=None, **kwargs):
        return RecognitionOrchestrator(
            page or login_page,
            recognizer=recognizer or FakeRecognizer(),
            store=store,
            config=Config(detect_delay_ms=0),
            notifier=lambda message, error=None: notes.append((message, error)),
            **kwargs,
        )
    return factory


def _input(page, element_id="vcode-input"):
    return next(el for el in page._snapshot.iter_elements() if el.id == element_id)


async def test_heuristic_detection(make_orchestrator):
    result = await make_orchestrator().detect()
    assert result.found
    assert result.source == "heuristic"
    best = result.pairs[0]
    assert best.image.element.id == "vcode-img"
    assert best.input.element.id == "vcode-input"
    assert best.distance == 80


async def test_recognize_fills_best_input(make_orchestrator, login_page):
    recognizer = FakeRecognizer()
    orchestrator = make_orchestrator(recognizer=recognizer)
    result = await orchestrator.recognize_and_fill()

    assert result.success and result.text == "AB3c"
    assert recognizer.calls[0][0] == PNG_DATA_URI
    assert recognizer.calls[0][1].kind == "openai"
    target = _input(login_page)
    assert target.value == "AB3c"
    assert [(event, el.id) for event, el in login_page.events] == [
        ("input", "vcode-input"), ("change", "vcode-input"), ("keyup", "vcode-input"),
    ]


async def test_auto_fill_override_and_stored_setting(make_orchestrator, login_page, store):
    result = await make_orchestrator(auto_fill=False).recognize_and_fill()
    assert result.success
    assert login_page.events == []

    store.save_general_settings({"autoFill": False})
    await make_orchestrator().recognize_and_fill()
    assert login_page.events == []


async def test_no_candidate(make_orchestrator, notes):
    empty = SnapshotPage(PageSnapshot.from_dict({"tag": "body"}, url="https://blank.example/"))
    recognizer = FakeRecognizer()
    result = await make_orchestrator(page=empty, recognizer=recognizer).recognize_and_fill()

    assert not result.success
    assert result.error_kind == ErrorKind.NO_CANDIDATE
    assert recognizer.calls == []
    message, error = notes[-1]
    assert error["kind"] == "NoCandidateError"
    assert "manually" in error["suggestion"]


async def test_empty_scan_is_logged(make_orchestrator, caplog):
    empty = SnapshotPage(PageSnapshot.from_dict({"tag": "body"}, url="https://blank.example/"))
    with caplog.at_level("DEBUG", logger="autocaptcha_core.orchestrator"):
        result = await make_orchestrator(page=empty).detect()
    assert not result.found
    assert "no candidate images or inputs" in caplog.text


async def test_rasterize_failure_is_reported(make_orchestrator, login_snapshot):
    page = SnapshotPage(login_snapshot)
    result = await make_orchestrator(page=page).recognize_and_fill()
    assert result.error_kind == ErrorKind.UNSUPPORTED_ELEMENT


async def test_provider_failure_leaves_input_alone(make_orchestrator, login_page, notes):
    failure = RecognitionResult.failure(ErrorKind.NETWORK, "openai API error: 401 - bad key", provider="openai")
    result = await make_orchestrator(recognizer=FakeRecognizer(failure)).recognize_and_fill()
    assert result is failure
    assert login_page.events == []
    assert notes[-1][1]["kind"] == "NetworkError"


async def test_concurrent_trigger_is_busy(make_orchestrator):
    release = asyncio.Event()
    entered = asyncio.Event()

    async def slow(image, provider_config):
        entered.set()
        await release.wait()
        return RecognitionResult.ok("ok")

    orchestrator = make_orchestrator(recognizer=slow)
    first = asyncio.ensure_future(orchestrator.recognize_and_fill())
    await entered.wait()

    second = await orchestrator.recognize_and_fill()
    assert second.error_kind == ErrorKind.BUSY

    release.set()
    assert (await first).success


async def test_complete_rule_takes_precedence(make_orchestrator, store):
    store.save_site_rule(HOST, {"imageSelector": "img.logo", "inputSelector": "#user"})
    result = await make_orchestrator().detect()
    assert result.source == "rule"
    assert len(result.pairs) == 1
    assert result.pairs[0].image.element.get("src") == "/logo.png"
    assert result.pairs[0].input.element.id == "user"


@pytest.mark.parametrize("rule", [
    {"imageSelector": "#gone", "inputSelector": "#user"},
    {"imageSelector": "a:hover", "inputSelector": "#user"},
    {"imageSelector": "img.logo", "inputSelector": ""},
])
async def test_unusable_rule_falls_back_to_heuristics(make_orchestrator, store, rule):
    store.save_site_rule(HOST, rule)
    result = await make_orchestrator().detect()
    assert result.source == "heuristic"
    assert result.pairs[0].image.element.id == "vcode-img"


async def test_manual_selection_saves_rule(make_orchestrator, store):
    orchestrator = make_orchestrator()
    delivered = []
    task = await orchestrator.start_manual_selection("image", callback=delivered.append)
    await orchestrator.selector.move_to(150, 210)
    await orchestrator.selector.click()
    selection = await asyncio.wait_for(task, 1)

    assert selection["selector"] == "#vcode-img"
    assert delivered == [selection]
    rule = store.get_site_rule(HOST)
    assert rule.image_selector == "#vcode-img"
    assert rule.url == "https://shop.example.com/login"
    assert not rule.is_complete

    task = await orchestrator.start_manual_selection("input")
    await orchestrator.selector.move_to(250, 210)
    await orchestrator.selector.click()
    await asyncio.wait_for(task, 1)
    assert store.get_site_rule(HOST).is_complete
    assert orchestrator.result.source == "rule"


async def test_cancelled_selection_saves_nothing(make_orchestrator, store):
    orchestrator = make_orchestrator()
    task = await orchestrator.start_manual_selection("image")
    await orchestrator.selector.cancel()
    assert await asyncio.wait_for(task, 1) is None
    assert store.get_site_rule(HOST) is None


async def test_set_image_from_source(make_orchestrator, store):
    orchestrator = make_orchestrator()
    rule = await orchestrator.set_image_from_source("/captcha.jpg?t=1")
    assert rule.image_selector == "#vcode-img"
    assert await orchestrator.set_image_from_source("/nope.png") is None


async def test_external_result_fills_input(make_orchestrator, login_page):
    orchestrator = make_orchestrator()
    assert await orchestrator.handle_captcha_result({"success": True, "result": "77ab"})
    assert _input(login_page).value == "77ab"
    assert not await orchestrator.handle_captcha_result({"success": False, "error": "x", "errorKind": "VendorError"})


async def test_page_change_after_detection_detects_again(make_orchestrator, login_page):
    orchestrator = make_orchestrator()
    stale = await orchestrator.detect()
    old_input = stale.pairs[0].input.element

    login_page.replace(PageSnapshot.from_dict(login_page_dict()))
    result = await orchestrator.recognize_and_fill()

    assert result.success and result.text == "AB3c"
    assert orchestrator.result.generation == login_page._snapshot.generation != stale.generation
    assert _input(login_page).value == "AB3c"
    assert old_input.value == ""


async def test_external_result_after_page_change_fills_new_input(make_orchestrator, login_page):
    orchestrator = make_orchestrator()
    await orchestrator.detect()
    login_page.replace(PageSnapshot.from_dict(login_page_dict()))

    assert await orchestrator.handle_captcha_result({"success": True, "result": "77ab"})
    assert _input(login_page).value == "77ab"


async def test_notifications_can_be_disabled(make_orchestrator, store, notes):
    store.save_general_settings({"showNotifications": False})
    await make_orchestrator().recognize_and_fill()
    assert notes == []


async def test_auto_run(make_orchestrator, store, login_page):
    assert await make_orchestrator().auto_run() is None

    store.save_general_settings({"autoRecognize": True})
    result = await make_orchestrator().auto_run()
    assert result.success
    assert _input(login_page).value == "AB3c"

    store.save_general_settings({"autoDetect": False, "autoRecognize": True})
    assert await make_orchestrator().auto_run() is None


async def test_status(make_orchestrator):
    orchestrator = make_orchestrator()
    assert orchestrator.get_status()["found"] is False
    await orchestrator.detect()
    assert orchestrator.get_status() == {"found": True, "pairCount": 1, "hasRule": False, "hostname": HOST}


async def test_run_log_written(make_orchestrator, tmp_path):
    run_logger = RunLogger(url="https://shop.example.com/login", log_dir=tmp_path / "logs", session_id="t1")
    await make_orchestrator(run_logger=run_logger).recognize_and_fill()
    text = (tmp_path / "logs" / "run-t1.md").read_text(encoding="utf-8")
    assert "## Detection" in text
    assert "#vcode-img" in text
    assert "`AB3c`" in text
    assert "- [Summary](#summary)" in text
