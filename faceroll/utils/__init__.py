"""
Utils package
"""
from .file_utils import (
    safe_delete_file,
    save_face_image,
    verify_image_bytes,
)
from .data_utils import (
    get_request_data,
    parse_bool,
    parse_date_safe,
    format_check_in_time,
)

__all__ = [
    'safe_delete_file',
    'save_face_image',
    'verify_image_bytes',
    'get_request_data',
    'parse_bool',
    'parse_date_safe',
    'format_check_in_time',
]
