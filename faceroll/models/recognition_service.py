"""
Recognition Service - Nhận diện học sinh từ descriptor khuôn mặt
Matches a probe descriptor against the enrolled templates of a class roster.
"""
import math
from numbers import Real
from typing import Any, Dict, List, Optional

from facecore.inference.matcher import DEFAULT_MATCH_THRESHOLD, Candidate, match_probe
from facecore.inference.templates import parse_template
from logging_config import face_recognition_logger

from .attendance_tracker import serialize_attendance
from .errors import (
    AlreadyRecordedError,
    ClassNotFoundError,
    FaceNotEnrolledError,
    InvalidFaceDataError,
    StudentNotFoundError,
)


def validate_descriptor(raw: Any) -> List[float]:
    if not isinstance(raw, list) or not raw:
        raise InvalidFaceDataError("descriptor must be a non-empty list of numbers")
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            raise InvalidFaceDataError("descriptor contains non-numeric values")
    return [float(value) for value in raw]


def serialize_match(student: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': student['student_id'],
        'fullName': student.get('full_name'),
        'studentNumber': student.get('student_number'),
        'gender': student.get('gender'),
        'className': student.get('class_name'),
    }


class RecognitionService:
    """Khớp descriptor với danh sách lớp và (tùy chọn) ghi điểm danh"""

    def __init__(self, database, attendance_tracker, threshold=DEFAULT_MATCH_THRESHOLD):
        self.db = database
        self.tracker = attendance_tracker
        self.threshold = threshold

    def _candidates(self, roster):
        candidates = []
        for student in roster:
            template = parse_template(student.get('face_embedding'))
            if template is not None:
                candidates.append(Candidate(student['student_id'], template, payload=student))
        return candidates

    def recognize(self, class_code: Any, descriptor: Any, student_id: Optional[str] = None,
                  mark: bool = False) -> Dict[str, Any]:
        """
        Nhận diện trong phạm vi lớp ``class_code``.

        Nếu có ``student_id`` thì chỉ so với học sinh đó (phải thuộc lớp).
        Trả về ``{match, distance}``; ``match`` là None khi không ai đủ gần.
        Raises AlreadyRecordedError nếu học sinh chỉ định (trước khi so khớp)
        hoặc học sinh khớp đã điểm danh hôm nay.
        """
        if not isinstance(class_code, str) or not class_code.strip():
            raise InvalidFaceDataError("classId is required")
        probe = validate_descriptor(descriptor)

        class_row = self.db.get_class(class_code)
        if not class_row:
            raise ClassNotFoundError(f"Class {class_code} not found")

        roster = self.db.get_students_by_class(class_row['id'])
        if student_id:
            roster = [student for student in roster if student['student_id'] == student_id]
            if not roster:
                raise StudentNotFoundError(f"Student {student_id} is not in class {class_code}")
            if self.tracker.existing(student_id):
                match = serialize_match(roster[0])
                face_recognition_logger.log_duplicate_attendance(student_id, self.tracker.today())
                raise AlreadyRecordedError(student_id, self.tracker.today(), match=match)

        candidates = self._candidates(roster)
        if not candidates:
            raise FaceNotEnrolledError(f"No enrolled faces in class {class_code}")

        result = match_probe(probe, candidates, self.threshold)
        if not result.matched:
            face_recognition_logger.log_face_unmatched(class_code, result.distance)
            return {'match': None, 'distance': result.distance}

        student = result.candidate.payload
        match = serialize_match(student)
        face_recognition_logger.log_face_recognized(student.get('full_name'), result.distance, student['student_id'])

        if self.tracker.existing(student['student_id']):
            face_recognition_logger.log_duplicate_attendance(student['student_id'], self.tracker.today())
            raise AlreadyRecordedError(student['student_id'], self.tracker.today(), match=match)

        response = {'match': match, 'distance': result.distance}
        if mark:
            record = self.tracker.mark(
                student,
                class_row,
                status='PRESENT',
                confidence=result.distance,
                source='face',
                match=match,
            )
            response['attendance'] = serialize_attendance(record)
        return response
