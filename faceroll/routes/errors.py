"""
Error responses
Định dạng JSON chung cho các lỗi API
"""
from flask import jsonify, current_app, request

from logging_config import api_logger


def error_response(message, status_code):
    return jsonify({'success': False, 'error': message}), status_code


def server_error(message, exc=None):
    """Lỗi 500; chỉ kèm chi tiết khi chạy debug."""
    body = {'success': False, 'error': message}
    if exc is not None and current_app.debug:
        body['detail'] = str(exc)
    return jsonify(body), 500


def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return error_response('Not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response('Method not allowed', 405)

    @app.errorhandler(413)
    def request_too_large(e):
        return error_response('Request body too large', 413)

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.error(f"Unhandled error: {e}", exc_info=True)
        api_logger.log_error(request.path, str(e))
        return server_error('Internal server error', e)
