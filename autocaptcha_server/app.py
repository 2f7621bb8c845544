"""Flask application setup for the autocaptcha server"""

import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from autocaptcha_core.commands import BackgroundService
from autocaptcha_server.routes.config import config_bp
from autocaptcha_server.routes.health import health_bp
from autocaptcha_server.routes.models import models_bp
from autocaptcha_server.routes.recognize import recognize_bp
from autocaptcha_server.routes.rules import rules_bp
from autocaptcha_server.service import EXTENSION_KEY

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def create_app(service: Optional[BackgroundService] = None) -> Flask:
    """Build the app around one BackgroundService (a store-backed default if omitted)"""
    app = Flask(__name__)
    CORS(app)
    app.extensions[EXTENSION_KEY] = service or BackgroundService()

    # Register blueprints
    app.register_blueprint(health_bp)
    app.register_blueprint(recognize_bp)
    app.register_blueprint(models_bp)
    app.register_blueprint(config_bp)
    app.register_blueprint(rules_bp)
    return app


app = create_app()
