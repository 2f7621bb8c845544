"""Health check endpoint"""

from flask import Blueprint, jsonify

from autocaptcha_core import __version__
from autocaptcha_server.service import get_service

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    provider_config = get_service().store.get_api_config()
    return jsonify({
        "status": "healthy",
        "provider": provider_config.kind,
        "version": __version__
    })
