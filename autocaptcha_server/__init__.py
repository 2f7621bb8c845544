"""
autocaptcha_server - HTTP API for recognition, provider checks and rule storage
"""

from autocaptcha_server.app import app, create_app

__all__ = [
    'app',
    'create_app',
]
