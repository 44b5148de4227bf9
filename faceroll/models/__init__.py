"""
Models Package - Business logic models
Centralized business logic separated from Flask routes
"""

from .errors import (
    AlreadyRecordedError,
    ClassNotFoundError,
    FaceImageTooLargeError,
    FaceNotEnrolledError,
    InvalidAttendanceStatusError,
    InvalidFaceDataError,
    InvalidFaceImageError,
    StudentNotFoundError,
)
from .attendance_tracker import AttendanceTracker, serialize_attendance
from .face_enrollment import FaceEnrollmentService
from .recognition_service import RecognitionService

__all__ = [
    'AlreadyRecordedError',
    'ClassNotFoundError',
    'FaceImageTooLargeError',
    'FaceNotEnrolledError',
    'InvalidAttendanceStatusError',
    'InvalidFaceDataError',
    'InvalidFaceImageError',
    'StudentNotFoundError',
    'AttendanceTracker',
    'serialize_attendance',
    'FaceEnrollmentService',
    'RecognitionService',
]
