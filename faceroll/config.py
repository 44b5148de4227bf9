"""
Configuration constants và settings
"""
import os

# Database / storage
DATABASE_PATH = os.getenv('DATABASE_PATH', 'attendance_system.db')
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', 'uploads')
UPLOAD_URL_PREFIX = '/uploads'

# Logging
LOG_DIR = os.getenv('LOG_DIR', 'logs')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Face enrollment
MAX_ENROLL_SAMPLES = int(os.getenv('MAX_ENROLL_SAMPLES', '15'))
MAX_FACE_IMAGE_BYTES = 2 * 1024 * 1024  # 2 MB

# Face recognition: khoảng cách Euclid <= ngưỡng là khớp
MATCH_THRESHOLD = float(os.getenv('MATCH_THRESHOLD', '0.55'))

# Request body (base64 ảnh + tối đa 15 mẫu)
MAX_CONTENT_LENGTH = 6 * 1024 * 1024

SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')


def as_flask_config():
    """Các giá trị cấu hình mặc định để nạp vào app.config"""
    return {
        'SECRET_KEY': SECRET_KEY,
        'DATABASE_PATH': DATABASE_PATH,
        'UPLOAD_FOLDER': UPLOAD_FOLDER,
        'UPLOAD_URL_PREFIX': UPLOAD_URL_PREFIX,
        'LOG_DIR': LOG_DIR,
        'LOG_LEVEL': LOG_LEVEL,
        'MAX_ENROLL_SAMPLES': MAX_ENROLL_SAMPLES,
        'MAX_FACE_IMAGE_BYTES': MAX_FACE_IMAGE_BYTES,
        'MATCH_THRESHOLD': MATCH_THRESHOLD,
        'MAX_CONTENT_LENGTH': MAX_CONTENT_LENGTH,
    }
