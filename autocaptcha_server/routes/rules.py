"""Site rule endpoints, keyed by hostname"""

from flask import Blueprint, jsonify, request

from autocaptcha_server.service import dispatch

rules_bp = Blueprint('rules', __name__)


@rules_bp.route('/api/site-rules', methods=['GET'])
def list_site_rules():
    return jsonify(dispatch({"action": "getSiteRules"}))


@rules_bp.route('/api/site-rules/<hostname>', methods=['GET'])
def get_site_rule(hostname):
    rule = dispatch({"action": "getSiteRule", "hostname": hostname})
    if rule is None:
        return jsonify({"error": f"No rule for {hostname}"}), 404
    return jsonify(rule)


@rules_bp.route('/api/site-rules/<hostname>', methods=['PUT'])
def save_site_rule(hostname):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON object body required"}), 400
    dispatch({"action": "saveSiteRule", "hostname": hostname, "rule": data})
    return jsonify(dispatch({"action": "getSiteRule", "hostname": hostname}))


@rules_bp.route('/api/site-rules/<hostname>', methods=['DELETE'])
def delete_site_rule(hostname):
    result = dispatch({"action": "deleteSiteRule", "hostname": hostname})
    if not result.get("deleted"):
        return jsonify({"success": False, "error": f"No rule for {hostname}"}), 404
    return jsonify(result)
