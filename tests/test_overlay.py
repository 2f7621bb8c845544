import asyncio

import pytest

from autocaptcha_core.selection import (
    CANCELLED,
    COMMITTED,
    OUTLINE_STYLE,
    ManualSelector,
    SelectionMode,
    SnapshotOverlayDriver,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def selector(login_snapshot):
    return ManualSelector(SnapshotOverlayDriver(login_snapshot))


async def test_hover_outlines_and_click_delivers(selector, login_snapshot):
    delivered = []
    future = await selector.start(SelectionMode.IMAGE, callback=delivered.append)
    driver = selector.driver
    assert driver.overlay_installed
    assert "captcha image" in driver.banner

    # Over the captcha image (x=100..220, y=200..240), left of the input
    await selector.move_to(150, 210)
    img = selector.highlighted
    assert img is not None and img.id == "vcode-img"
    assert img.style["outline"] == OUTLINE_STYLE

    await selector.click()
    selection = await asyncio.wait_for(future, 1)
    assert selection["selector"] == "#vcode-img"
    assert selection["mode"] == "image"
    assert delivered == [selection]
    assert "outline" not in img.style
    assert not driver.overlay_installed
    assert selector.last_outcome == COMMITTED
    assert not selector.active


async def test_input_mode_skips_images(selector):
    await selector.start("input")
    await selector.move_to(150, 210)
    assert selector.highlighted is None
    await selector.move_to(250, 210)
    assert selector.highlighted.id == "vcode-input"


async def test_escape_resolves_none(selector):
    future = await selector.start("image")
    await selector.move_to(150, 210)
    await selector.cancel()
    assert await future is None
    assert selector.last_outcome == CANCELLED
    assert selector.driver.teardowns == 1


async def test_escape_calls_back_with_none_once(selector):
    delivered = []
    future = await selector.start("image", callback=delivered.append)
    await selector.move_to(150, 210)
    await selector.key("Escape")
    await selector.key("Escape")

    assert delivered == [None]
    assert future.result() is None
    assert selector.driver.teardowns == 1
    assert not selector.active


async def test_second_start_cancels_first(selector):
    first = await selector.start("image")
    second = await selector.start("input")
    assert first.done() and first.result() is None
    assert not second.done()
    assert selector.active
    assert selector.driver.mode == SelectionMode.INPUT
