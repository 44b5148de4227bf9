"""
API routes for attendance
Các API endpoint cho nhận diện và điểm danh
"""
from flask import Blueprint, jsonify, request, current_app

from faceroll import globals as app_globals
from faceroll.models import (
    AlreadyRecordedError,
    ClassNotFoundError,
    FaceNotEnrolledError,
    InvalidAttendanceStatusError,
    InvalidFaceDataError,
    StudentNotFoundError,
    serialize_attendance,
)
from logging_config import face_recognition_logger
from faceroll.utils import get_request_data, parse_bool, parse_date_safe
from .errors import error_response, server_error

attendance_api_bp = Blueprint('attendance_api', __name__, url_prefix='/api/attendance')


def _conflict_response(err):
    body = {'success': False, 'error': 'Attendance already recorded today'}
    if err.match is not None:
        body['match'] = err.match
    return jsonify(body), 409


@attendance_api_bp.route('', methods=['GET'])
def class_attendance():
    """Danh sách lớp và trạng thái điểm danh theo ngày."""
    class_id = (request.args.get('classId') or '').strip()
    if not class_id:
        return error_response('classId is required', 400)

    date_param = request.args.get('date')
    attendance_date = None
    if date_param:
        attendance_date = parse_date_safe(date_param)
        if attendance_date is None:
            return error_response('Invalid date', 400)

    try:
        roster = app_globals.attendance_tracker.class_roster(class_id, attendance_date)
        return jsonify({'success': True, **roster})
    except ClassNotFoundError as e:
        return error_response(str(e), 404)


@attendance_api_bp.route('/recognize', methods=['POST'])
def recognize():
    """Nhận diện khuôn mặt trong phạm vi một lớp."""
    data = get_request_data()
    student_id = data.get('studentId')
    if student_id is not None and not isinstance(student_id, str):
        return error_response('studentId must be a string', 400)

    try:
        result = app_globals.recognition_service.recognize(
            data.get('classId'),
            data.get('descriptor'),
            student_id=(student_id or '').strip() or None,
            mark=parse_bool(data.get('mark'), default=False),
        )
        return jsonify({'success': True, **result})
    except InvalidFaceDataError as e:
        return error_response(str(e), 400)
    except (ClassNotFoundError, StudentNotFoundError, FaceNotEnrolledError) as e:
        return error_response(str(e), 404)
    except AlreadyRecordedError as e:
        return _conflict_response(e)
    except Exception as e:
        current_app.logger.error(f"Error recognizing face: {e}", exc_info=True)
        face_recognition_logger.log_recognition_error(str(e))
        return server_error('Recognition failed', e)


@attendance_api_bp.route('/mark', methods=['POST'])
def mark_attendance():
    """Điểm danh thủ công (hoặc sau khi nhận diện thành công)."""
    data = get_request_data()
    student_id = data.get('studentId')
    class_id = data.get('classId')
    if not isinstance(student_id, str) or not student_id.strip():
        return error_response('studentId is required', 400)
    if not isinstance(class_id, str) or not class_id.strip():
        return error_response('classId is required', 400)

    try:
        record = app_globals.attendance_tracker.mark_for_class(
            student_id.strip(),
            class_id.strip(),
            data.get('status'),
        )
        return jsonify({'success': True, 'attendance': serialize_attendance(record)})
    except InvalidAttendanceStatusError as e:
        return error_response(str(e), 400)
    except (ClassNotFoundError, StudentNotFoundError) as e:
        return error_response(str(e), 404)
    except AlreadyRecordedError as e:
        return _conflict_response(e)
    except Exception as e:
        current_app.logger.error(f"Error marking attendance: {e}", exc_info=True)
        return server_error('Could not save attendance', e)
