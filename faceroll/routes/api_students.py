"""
API routes for students
Các API endpoint cho đăng ký khuôn mặt học sinh
"""
from flask import Blueprint, jsonify, current_app

from faceroll import globals as app_globals
from faceroll.models import (
    FaceImageTooLargeError,
    InvalidFaceDataError,
    InvalidFaceImageError,
    StudentNotFoundError,
)
from faceroll.utils import get_request_data
from .errors import error_response, server_error

student_api_bp = Blueprint('student_api', __name__, url_prefix='/api/students')


@student_api_bp.route('/<student_id>/enroll-face', methods=['POST'])
def enroll_face(student_id):
    """Lưu mẫu khuôn mặt (descriptors) và ảnh tham chiếu của học sinh."""
    student_id = (student_id or '').strip()
    if not student_id:
        return error_response('Invalid student id', 400)

    data = get_request_data()
    try:
        result = app_globals.face_enrollment_service.enroll(
            student_id,
            data.get('descriptors'),
            data.get('faceImage'),
        )
        return jsonify({'success': True, **result})
    except FaceImageTooLargeError as e:
        return error_response(str(e), 413)
    except (InvalidFaceDataError, InvalidFaceImageError) as e:
        return error_response(str(e), 400)
    except StudentNotFoundError as e:
        return error_response(str(e), 404)
    except Exception as e:
        current_app.logger.error(f"Error enrolling face for {student_id}: {e}", exc_info=True)
        return server_error('Could not save face data', e)


@student_api_bp.route('/<student_id>/face', methods=['GET'])
def face_status(student_id):
    """Trạng thái đăng ký khuôn mặt."""
    try:
        return jsonify({'success': True, **app_globals.face_enrollment_service.status(student_id)})
    except StudentNotFoundError as e:
        return error_response(str(e), 404)
