"""Routes module for Flask endpoints"""

from autocaptcha_server.routes.config import config_bp
from autocaptcha_server.routes.health import health_bp
from autocaptcha_server.routes.models import models_bp
from autocaptcha_server.routes.recognize import recognize_bp
from autocaptcha_server.routes.rules import rules_bp

__all__ = ['config_bp', 'health_bp', 'models_bp', 'recognize_bp', 'rules_bp']
