"""
Main routes
Phục vụ ảnh khuôn mặt đã upload
"""
import os

from flask import Blueprint, current_app, send_from_directory

main_bp = Blueprint('main', __name__)


@main_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    """Trả về ảnh tham chiếu đã lưu."""
    upload_folder = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    return send_from_directory(upload_folder, filename)
