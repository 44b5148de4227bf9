"""
App package initialization
Khởi tạo Flask application và cấu hình
"""
import os
import time

from flask import Flask, g, request

from database import DatabaseManager
from logging_config import setup_logging, log_request_info, api_logger
from faceroll import config
from faceroll import globals as app_globals
from faceroll.models import AttendanceTracker, FaceEnrollmentService, RecognitionService


def _register_request_logging(app):
    """Log mỗi request khi vào và khi trả về"""

    @app.before_request
    def _log_request():
        g.request_started = time.perf_counter()
        log_request_info(request)

    @app.after_request
    def _log_response(response):
        started = getattr(g, 'request_started', None)
        duration = time.perf_counter() - started if started is not None else None
        api_logger.log_response(request.endpoint or request.path, response.status_code, duration)
        return response


def create_app(test_config=None):
    """Factory function để tạo Flask application"""
    app = Flask(__name__)

    # Cấu hình cơ bản, sau đó ghi đè bằng test_config (nếu có)
    app.config.from_mapping(config.as_flask_config())
    if test_config:
        app.config.update(test_config)

    # Thiết lập logging
    setup_logging(app, app.config['LOG_LEVEL'], app.config['LOG_DIR'])

    app.logger.info(f"[STARTUP] Working directory: {os.getcwd()}")
    app.logger.info(f"[STARTUP] Database path: {os.path.abspath(app.config['DATABASE_PATH'])}")

    # 1. Database
    app_globals.database = DatabaseManager(app.config['DATABASE_PATH'])

    # 2. AttendanceTracker
    app_globals.attendance_tracker = AttendanceTracker(
        database=app_globals.database,
        logger=app.logger
    )

    # 3. FaceEnrollmentService
    app_globals.face_enrollment_service = FaceEnrollmentService(
        database=app_globals.database,
        upload_folder=app.config['UPLOAD_FOLDER'],
        url_prefix=app.config['UPLOAD_URL_PREFIX'],
        max_samples=app.config['MAX_ENROLL_SAMPLES'],
        max_image_bytes=app.config['MAX_FACE_IMAGE_BYTES'],
        logger=app.logger
    )

    # 4. RecognitionService
    app_globals.recognition_service = RecognitionService(
        database=app_globals.database,
        attendance_tracker=app_globals.attendance_tracker,
        threshold=app.config['MATCH_THRESHOLD']
    )
    app.logger.info("[STARTUP] All services initialized")

    _register_request_logging(app)

    # Đăng ký blueprints
    from faceroll.routes import register_blueprints
    register_blueprints(app)

    return app
