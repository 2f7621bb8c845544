"""Provider config and general settings endpoints"""

from flask import Blueprint, jsonify, request

from autocaptcha_server.service import dispatch

config_bp = Blueprint('config', __name__)


@config_bp.route('/api/config', methods=['GET'])
def get_api_config():
    return jsonify(dispatch({"action": "getApiConfig"}))


@config_bp.route('/api/config', methods=['PUT'])
def save_api_config():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON object body required"}), 400
    return jsonify(dispatch({"action": "saveApiConfig", "config": data}))


@config_bp.route('/api/settings', methods=['GET'])
def get_general_settings():
    return jsonify(dispatch({"action": "getGeneralSettings"}))


@config_bp.route('/api/settings', methods=['PUT'])
def save_general_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON object body required"}), 400
    return jsonify(dispatch({"action": "saveGeneralSettings", "settings": data}))
