"""
Face Enrollment - Lưu mẫu khuôn mặt của học sinh
Validates submitted descriptor samples, stores the aggregated template and
the optional reference photo.
"""
import base64
import binascii
import math
import os
import re
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, List, Optional

from facecore.inference.templates import build_template, parse_template
from logging_config import face_recognition_logger
from faceroll.utils import safe_delete_file, save_face_image, verify_image_bytes

from .errors import (
    FaceImageTooLargeError,
    InvalidFaceDataError,
    InvalidFaceImageError,
    StudentNotFoundError,
)

DATA_URL_PATTERN = re.compile(r'^data:(image/(png|jpeg|jpg|webp));base64,(.+)$', re.DOTALL)
WHITESPACE_PATTERN = re.compile(r'\s+')
IMAGE_EXTENSIONS = {'png': 'png', 'jpeg': 'jpg', 'jpg': 'jpg', 'webp': 'webp'}


@dataclass
class DecodedImage:
    mime_type: str
    extension: str
    data: bytes


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def normalize_samples(raw: Any, max_samples: int = 15) -> List[List[float]]:
    """
    Kiểm tra danh sách descriptor gửi lên.
    Chỉ giữ tối đa ``max_samples`` mẫu đầu tiên; mọi mẫu phải cùng độ dài và là số.
    """
    if not isinstance(raw, list) or not raw:
        raise InvalidFaceDataError("descriptors must be a non-empty list of vectors")
    samples = raw[:max_samples]
    first = samples[0]
    if not isinstance(first, list) or not first:
        raise InvalidFaceDataError("Descriptor 0 must be a non-empty list of numbers")
    length = len(first)

    normalized = []
    for index, sample in enumerate(samples):
        if not isinstance(sample, list) or len(sample) != length:
            raise InvalidFaceDataError(f"Descriptor {index} must have length {length}")
        if not all(_is_number(value) for value in sample):
            raise InvalidFaceDataError(f"Descriptor {index} contains non-numeric values")
        normalized.append([float(value) for value in sample])
    return normalized


def decode_face_image(data_url: Any, max_bytes: int = 2 * 1024 * 1024) -> DecodedImage:
    """Giải mã ảnh data URL (png/jpeg/jpg/webp), kiểm tra dung lượng và định dạng."""
    if not isinstance(data_url, str) or not data_url.strip():
        raise InvalidFaceImageError("Invalid face image format")
    match = DATA_URL_PATTERN.match(data_url.strip())
    if not match:
        raise InvalidFaceImageError("Invalid face image format")

    try:
        # MIME-style payloads may be wrapped across lines
        payload = WHITESPACE_PATTERN.sub('', match.group(3))
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidFaceImageError("Invalid face image format") from exc
    if len(data) > max_bytes:
        raise FaceImageTooLargeError(f"Face image must be at most {max_bytes // (1024 * 1024)}MB")

    ok, error_msg = verify_image_bytes(data)
    if not ok:
        raise InvalidFaceImageError(error_msg)
    return DecodedImage(mime_type=match.group(1), extension=IMAGE_EXTENSIONS[match.group(2)], data=data)


class FaceEnrollmentService:
    """Service lưu mẫu khuôn mặt (ghi đè toàn bộ mẫu cũ)"""

    def __init__(self, database, upload_folder, url_prefix='/uploads', max_samples=15,
                 max_image_bytes=2 * 1024 * 1024, logger=None):
        self.db = database
        self.upload_folder = upload_folder
        self.url_prefix = url_prefix.rstrip('/')
        self.max_samples = max_samples
        self.max_image_bytes = max_image_bytes
        self.logger = logger

    def _upload_path(self, url: str) -> Optional[str]:
        """Đường dẫn file của một URL ảnh do service này cấp (None nếu không phải)."""
        prefix = f"{self.url_prefix}/"
        if not url.startswith(prefix):
            return None
        filename = os.path.basename(url[len(prefix):])
        return os.path.join(self.upload_folder, filename) if filename else None

    def enroll(self, student_id: str, descriptors: Any, face_image: Any = None) -> Dict[str, Any]:
        samples = normalize_samples(descriptors, self.max_samples)

        image: Optional[DecodedImage] = None
        if face_image is not None:
            image = decode_face_image(face_image, self.max_image_bytes)

        student = self.db.get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")

        template = build_template(samples)

        file_path = None
        face_image_url = None
        if image is not None:
            file_path, filename = save_face_image(image.data, image.extension, self.upload_folder)
            face_image_url = f"{self.url_prefix}/{filename}"

        try:
            updated = self.db.save_face_template(student_id, template.to_json(), face_image_url)
        except Exception:
            safe_delete_file(file_path)
            raise
        if not updated:
            safe_delete_file(file_path)
            raise StudentNotFoundError(f"Student {student_id} not found")

        previous_url = student.get('face_image_url')
        if face_image_url and previous_url and previous_url != face_image_url:
            safe_delete_file(self._upload_path(previous_url))

        face_recognition_logger.log_enrollment(student_id, template.sample_count, has_image=image is not None)
        if self.logger:
            self.logger.info(f"[FaceEnrollment] Stored {template.sample_count} samples for {student_id}")

        return {
            'id': student_id,
            'faceImageUrl': face_image_url or student.get('face_image_url'),
            'sampleCount': template.sample_count,
        }

    def status(self, student_id: str) -> Dict[str, Any]:
        """Trạng thái đăng ký khuôn mặt của học sinh"""
        student = self.db.get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")
        template = parse_template(student.get('face_embedding'))
        return {
            'id': student_id,
            'hasFace': template is not None,
            'templateKind': template.kind if template else None,
            'sampleCount': template.sample_count if template else 0,
            'faceImageUrl': student.get('face_image_url'),
            'enrolledAt': student.get('face_enrolled_at'),
        }
