"""
Attendance Tracker - Quản lý logic điểm danh
Business logic for attendance writes (one record per student per day) and
the daily class roster.
"""
from datetime import date
from typing import Any, Dict, Optional

from database import ATTENDANCE_STATUSES, DuplicateAttendanceError
from facecore.inference.templates import parse_template
from logging_config import face_recognition_logger
from faceroll.utils import format_check_in_time

from .errors import (
    AlreadyRecordedError,
    ClassNotFoundError,
    InvalidAttendanceStatusError,
    StudentNotFoundError,
)


def serialize_attendance(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Chuyển bản ghi điểm danh sang JSON (camelCase)"""
    if not record:
        return None
    return {
        'id': record.get('id'),
        'studentId': record.get('student_id'),
        'classId': record.get('class_code') or record.get('class_id'),
        'date': record.get('attendance_date'),
        'status': record.get('status'),
        'checkInTime': record.get('check_in_time'),
        'confidence': record.get('confidence_score'),
        'source': record.get('source'),
    }


class AttendanceTracker:
    """Service quản lý logic điểm danh"""

    def __init__(self, database, logger=None):
        self.db = database
        self.logger = logger

    @staticmethod
    def today() -> date:
        """Ngày điểm danh theo giờ địa phương"""
        return date.today()

    def existing(self, student_id: str, attendance_date: Optional[date] = None):
        return self.db.get_attendance(student_id, attendance_date or self.today())

    def mark(
        self,
        student: Dict[str, Any],
        class_row: Dict[str, Any],
        status: str = 'PRESENT',
        confidence: Optional[float] = None,
        source: str = 'manual',
        match: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Ghi điểm danh cho hôm nay.
        Kiểm tra trước, sau đó dựa vào ràng buộc UNIQUE của database cho các request đồng thời.
        """
        student_id = student['student_id']
        attendance_date = self.today()

        if self.existing(student_id, attendance_date):
            face_recognition_logger.log_duplicate_attendance(student_id, attendance_date)
            raise AlreadyRecordedError(student_id, attendance_date, match=match)

        try:
            record = self.db.mark_attendance(
                student_id,
                class_row['id'],
                status=status,
                attendance_date=attendance_date,
                confidence_score=confidence,
                source=source,
            )
        except DuplicateAttendanceError as exc:
            face_recognition_logger.log_duplicate_attendance(student_id, attendance_date)
            raise AlreadyRecordedError(student_id, attendance_date, match=match) from exc

        record['class_code'] = class_row.get('class_code')
        face_recognition_logger.log_attendance_marked(student.get('full_name'), student_id, status, confidence)
        if self.logger:
            self.logger.info(f"[AttendanceTracker] {student_id} marked {status}")
        return record

    def mark_for_class(self, student_id: str, class_code: str, status: Optional[str] = None) -> Dict[str, Any]:
        """Điểm danh thủ công: kiểm tra trạng thái, học sinh và lớp trước khi ghi."""
        if status is None or (isinstance(status, str) and not status.strip()):
            resolved_status = 'PRESENT'
        elif isinstance(status, str) and status.strip().upper() in ATTENDANCE_STATUSES:
            resolved_status = status.strip().upper()
        else:
            raise InvalidAttendanceStatusError(
                f"status must be one of {', '.join(ATTENDANCE_STATUSES)}"
            )

        class_row = self.db.get_class(class_code)
        if not class_row:
            raise ClassNotFoundError(f"Class {class_code} not found")
        student = self.db.get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")
        if student.get('class_id') != class_row['id']:
            raise StudentNotFoundError(f"Student {student_id} is not in class {class_code}")

        return self.mark(student, class_row, status=resolved_status, source='manual')

    def class_roster(self, class_code: str, attendance_date: Optional[date] = None) -> Dict[str, Any]:
        """Danh sách lớp kèm trạng thái điểm danh và cờ đã đăng ký khuôn mặt"""
        class_row = self.db.get_class(class_code)
        if not class_row:
            raise ClassNotFoundError(f"Class {class_code} not found")
        attendance_date = attendance_date or self.today()

        students = []
        for row in self.db.get_class_attendance(class_row['id'], attendance_date):
            students.append({
                'id': row['student_id'],
                'fullName': row['full_name'],
                'studentNumber': row.get('student_number'),
                'gender': row.get('gender'),
                'faceImageUrl': row.get('face_image_url'),
                'hasFace': parse_template(row.get('face_embedding')) is not None,
                'status': row.get('status'),
                'checkInTime': format_check_in_time(row.get('check_in_time')),
            })

        return {
            'class': {'id': class_row['class_code'], 'name': class_row['class_name']},
            'date': attendance_date.isoformat(),
            'students': students,
        }
