"""
Data utilities
Helper functions cho data transformation và validation
"""
from datetime import datetime, date

from flask import request


def get_request_data():
    """Lấy request data từ JSON hoặc form."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def parse_bool(value, default=None):
    """
    Phân tích giá trị boolean từ string, int, hoặc bool.
    Returns: True, False, hoặc default nếu không xác định được.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in ('true', '1', 'yes', 'on'):
            return True
        if lower in ('false', '0', 'no', 'off'):
            return False
    return default


def parse_date_safe(value):
    """
    Phân tích chuỗi ngày (YYYY-MM-DD hoặc ISO datetime) thành date.
    Trả về None nếu không hợp lệ.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ['%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S']:
        try:
            return datetime.strptime(text, fmt).date()
        except (ValueError, TypeError):
            continue
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        return None


def format_check_in_time(value):
    """Định dạng giờ điểm danh thành HH:MM."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)).strftime('%H:%M')
    except ValueError:
        return None
