"""
Global state module
Các service singleton, được khởi tạo trong create_app()
"""

database = None
attendance_tracker = None
face_enrollment_service = None
recognition_service = None
