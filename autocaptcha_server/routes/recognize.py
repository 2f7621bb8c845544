"""Recognition and provider connectivity endpoints"""

from flask import Blueprint, jsonify, request

from autocaptcha_server.service import dispatch

recognize_bp = Blueprint('recognize', __name__)


@recognize_bp.route('/api/recognize', methods=['POST'])
def recognize_captcha():
    """
    Recognize a captcha image.

    Body: {"imageData": "<data URI or base64>", "config": {...optional provider config}}
    """
    data = request.get_json(silent=True) or {}
    image = data.get('imageData') or data.get('image')
    if not image:
        return jsonify({"success": False, "error": "imageData is required"}), 400

    result = dispatch({
        "action": "recognizeCaptcha",
        "imageData": image,
        "config": data.get('config'),
    })
    return jsonify(result)


@recognize_bp.route('/api/test-connection', methods=['POST'])
def test_connection():
    """Recognize a 1x1 test image with the stored or given provider config"""
    data = request.get_json(silent=True) or {}
    result = dispatch({"action": "testApiConnection", "config": data.get('config')})
    return jsonify(result)
