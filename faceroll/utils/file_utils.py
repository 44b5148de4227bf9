"""
File utilities
Lưu ảnh khuôn mặt tham chiếu và kiểm tra ảnh hợp lệ
"""
import io
import logging
import os
import uuid
from datetime import datetime

from PIL import Image
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


def safe_delete_file(path):
    """Cố gắng xóa một file mà không báo lỗi nếu thất bại."""
    if not path:
        return
    try:
        os.remove(path)
    except OSError:
        logger.debug("Could not remove file %s", path)


def verify_image_bytes(data):
    """
    Kiểm tra dữ liệu có phải ảnh hợp lệ không.
    Returns: (success: bool, error_message: str)
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        return True, ""
    except Exception as e:
        return False, f"Invalid face image: {e}"


def _generate_face_image_filename(extension, timestamp=None):
    """Tạo tên file ảnh khuôn mặt duy nhất."""
    timestamp = timestamp or datetime.now().strftime('%Y%m%d%H%M%S%f')
    return secure_filename(f"{timestamp}-{uuid.uuid4().hex}.{extension}")


def save_face_image(image_bytes, extension, upload_folder):
    """
    Ghi ảnh khuôn mặt xuống thư mục upload.
    Returns: (file_path, filename)
    """
    os.makedirs(upload_folder, exist_ok=True)
    filename = _generate_face_image_filename(extension)
    file_path = os.path.join(upload_folder, filename)
    with open(file_path, 'wb') as fp:
        fp.write(image_bytes)
    return file_path, filename
