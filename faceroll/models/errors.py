"""
Service-layer exceptions
Các lỗi nghiệp vụ, được route chuyển thành mã HTTP tương ứng
"""


class InvalidFaceDataError(ValueError):
    """Mẫu khuôn mặt (descriptor) không hợp lệ -> 400"""


class InvalidFaceImageError(ValueError):
    """Ảnh khuôn mặt sai định dạng -> 400"""


class FaceImageTooLargeError(ValueError):
    """Ảnh khuôn mặt vượt quá giới hạn dung lượng -> 413"""


class InvalidAttendanceStatusError(ValueError):
    """Trạng thái điểm danh không thuộc PRESENT/ABSENT/SICK/PERMIT -> 400"""


class StudentNotFoundError(LookupError):
    """Không tìm thấy học sinh (hoặc học sinh không thuộc lớp) -> 404"""


class ClassNotFoundError(LookupError):
    """Không tìm thấy lớp -> 404"""


class FaceNotEnrolledError(LookupError):
    """Lớp chưa có học sinh nào đăng ký khuôn mặt -> 404"""


class AlreadyRecordedError(Exception):
    """Học sinh đã được điểm danh trong ngày -> 409"""

    def __init__(self, student_id, attendance_date, match=None):
        super().__init__(f"Attendance for {student_id} on {attendance_date} already recorded")
        self.student_id = student_id
        self.attendance_date = attendance_date
        self.match = match
