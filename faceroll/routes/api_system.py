"""
API routes for system status
Các API cho trạng thái hệ thống
"""
from flask import Blueprint, jsonify, current_app

from faceroll import globals as app_globals

system_api_bp = Blueprint('system_api', __name__, url_prefix='/api')


@system_api_bp.route('/status')
def api_system_status():
    """API trạng thái hệ thống"""
    try:
        enrolled = app_globals.database.count_enrolled_faces()
        database_ok = True
    except Exception as e:
        current_app.logger.error(f"Database status check failed: {e}")
        enrolled = None
        database_ok = False

    return jsonify({
        'status': 'ok' if database_ok else 'degraded',
        'database': database_ok,
        'enrolledFaces': enrolled,
        'matchThreshold': current_app.config['MATCH_THRESHOLD'],
    })
