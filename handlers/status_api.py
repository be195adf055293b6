"""Status endpoints for gemini-bridge: configuration, call history and diagnostics."""

import logging
from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__)


@status_bp.route('/api/config', methods=['GET'])
def get_configuration():
    """Get current configuration (secrets redacted)."""
    return jsonify(current_app.config['BRIDGE_CONFIG'].to_dict())


@status_bp.route('/api/logs', methods=['GET'])
def get_logs():
    """Get recent API calls and translation diagnostics."""
    log_manager = current_app.config['LOG_MANAGER']
    limit = request.args.get('limit', 50, type=int)

    return jsonify({
        'apiCalls': log_manager.get_api_calls(limit),
        'diagnostics': log_manager.get_diagnostics(limit),
    })


@status_bp.route('/api/logs', methods=['DELETE'])
def clear_logs():
    current_app.config['LOG_MANAGER'].clear_logs()
    return jsonify({'cleared': True})


@status_bp.route('/api/usage', methods=['GET'])
def get_usage():
    return jsonify(current_app.config['LOG_MANAGER'].get_usage_stats())
