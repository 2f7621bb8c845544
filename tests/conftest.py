"""Shared fixtures: page snapshots, a temp store and a scripted HTTP session."""

import json

import pytest

from autocaptcha_core.dom.page import SnapshotPage
from autocaptcha_core.dom.snapshot import PageSnapshot
from autocaptcha_core.storage import JsonStore

PNG_DATA_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)


def login_page_dict():
    """Login form: keyword-named captcha image 80px left of its input, plus a password field."""
    return {
        "url": "https://shop.example.com/login",
        "root": {
            "tag": "body",
            "rect": {"x": 0, "y": 0, "width": 1280, "height": 800},
            "children": [
                {
                    "tag": "form",
                    "attrs": {"id": "login"},
                    "rect": {"x": 0, "y": 0, "width": 600, "height": 400},
                    "children": [
                        {"tag": "input", "attrs": {"id": "user", "type": "text", "name": "username"},
                         "rect": {"x": 100, "y": 60, "width": 200, "height": 30}},
                        {"tag": "input", "attrs": {"id": "pass", "type": "password"},
                         "rect": {"x": 100, "y": 100, "width": 200, "height": 30}},
                        {"tag": "img", "attrs": {"id": "vcode-img", "src": "/captcha.jpg?t=1"},
                         "rect": {"x": 100, "y": 200, "width": 120, "height": 40},
                         "naturalWidth": 120, "naturalHeight": 40},
                        {"tag": "input", "attrs": {"id": "vcode-input", "type": "text", "name": "vcode"},
                         "rect": {"x": 180, "y": 200, "width": 100, "height": 30}},
                        {"tag": "img", "attrs": {"src": "/logo.png", "class": "logo"},
                         "rect": {"x": 10, "y": 10, "width": 400, "height": 120},
                         "naturalWidth": 400, "naturalHeight": 120},
                    ],
                },
            ],
        },
    }


@pytest.fixture
def login_snapshot():
    return PageSnapshot.from_dict(login_page_dict())


@pytest.fixture
def login_page(login_snapshot):
    return SnapshotPage(login_snapshot, pixels={"#vcode-img": PNG_DATA_URI})


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path / "autocaptcha.json")


class FakeResponse:
    def __init__(self, status=200, body=None, reason="OK"):
        self.status = status
        self.reason = reason
        self._body = body

    async def json(self, content_type=None):
        if isinstance(self._body, (dict, list)):
            return self._body
        return json.loads(self._body or "")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """
    Stands in for aiohttp.ClientSession: returns queued responses in order
    and records every request.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, headers=None, params=None, data=None):
        self.calls.append({
            "method": method,
            "url": url,
            "headers": headers or {},
            "params": params,
            "json": json.loads(data) if data else None,
        })
        if isinstance(self.responses[0], Exception):
            raise self.responses.pop(0)
        return self.responses.pop(0)

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture
def make_session():
    def factory(*responses):
        return FakeSession(*responses)
    return factory
