"""Shared background service and event-loop helper for request handlers"""

import asyncio
from typing import Any, Dict

from flask import current_app

from autocaptcha_core.commands import BackgroundService

EXTENSION_KEY = "autocaptcha"


def get_service() -> BackgroundService:
    return current_app.extensions[EXTENSION_KEY]


def run_async(coro) -> Any:
    """Run a coroutine in a fresh event loop per request to avoid loop state issues"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        asyncio.set_event_loop(None)


def dispatch(message: Dict[str, Any]) -> Any:
    """Send one command message to the background service"""
    return run_async(get_service().handle_message(message))
