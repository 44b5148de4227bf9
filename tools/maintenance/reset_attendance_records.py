"""Utility script to purge attendance records.

Usage:
    python tools/maintenance/reset_attendance_records.py [--date YYYY-MM-DD]
"""
import argparse
import os
import sys
from datetime import date
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from database import DatabaseManager  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument('--db', default=os.getenv('DATABASE_PATH', 'attendance_system.db'))
    parser.add_argument('--date', type=date.fromisoformat, help='only delete records of this day')
    args = parser.parse_args(argv)

    removed = DatabaseManager(args.db).clear_attendance_records(args.date)
    scope = args.date.isoformat() if args.date else 'all days'
    print(f"Đã xóa {removed} bản ghi điểm danh ({scope}).")


if __name__ == "__main__":
    main()
