"""Models endpoint for listing provider models"""

from flask import Blueprint, jsonify, request

from autocaptcha_server.service import dispatch

models_bp = Blueprint('models', __name__)


@models_bp.route('/api/models', methods=['GET'])
def list_models():
    """List models of the active provider, or of ?type=<kind>"""
    result = dispatch({"action": "listModels", "type": request.args.get('type')})
    if not result.get("success"):
        return jsonify(result), 502
    return jsonify(result)
