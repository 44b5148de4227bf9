"""Seed a class roster (from a CSV file or a small demo list).

Usage:
    python tools/seed_demo_class.py --class-code 7A --class-name "Class 7A"
    python tools/seed_demo_class.py --class-code 7A --csv roster.csv

CSV columns: student_id, full_name, student_number, gender
"""
import argparse
import csv
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from database import DatabaseManager  # noqa: E402

DEMO_STUDENTS = [
    {'student_id': 'S001', 'full_name': 'An Nguyen', 'student_number': '0001', 'gender': 'M'},
    {'student_id': 'S002', 'full_name': 'Binh Tran', 'student_number': '0002', 'gender': 'F'},
    {'student_id': 'S003', 'full_name': 'Chi Le', 'student_number': '0003', 'gender': 'F'},
    {'student_id': 'S004', 'full_name': 'Dung Pham', 'student_number': '0004', 'gender': 'M'},
]


def load_roster(csv_path):
    with open(csv_path, newline='', encoding='utf-8') as fp:
        rows = []
        for row in csv.DictReader(fp):
            student_id = (row.get('student_id') or '').strip()
            full_name = (row.get('full_name') or '').strip()
            if not student_id or not full_name:
                print(f"Skipping incomplete row: {row}")
                continue
            rows.append({
                'student_id': student_id,
                'full_name': full_name,
                'student_number': (row.get('student_number') or '').strip() or None,
                'gender': (row.get('gender') or '').strip() or None,
            })
        return rows


def seed(db, class_code, class_name, students, academic_year=None):
    """Tạo lớp (nếu chưa có) và thêm học sinh. Trả về (class_created, students_created)."""
    class_created = False
    if db.get_class(class_code) is None:
        db.add_class(class_code, class_name or class_code, academic_year=academic_year)
        class_created = True

    created = 0
    for student in students:
        if db.add_student(
            student['student_id'],
            student['full_name'],
            class_code=class_code,
            student_number=student.get('student_number'),
            gender=student.get('gender'),
        ):
            created += 1
    return class_created, created


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--db', default=os.getenv('DATABASE_PATH', 'attendance_system.db'))
    parser.add_argument('--class-code', required=True)
    parser.add_argument('--class-name')
    parser.add_argument('--academic-year')
    parser.add_argument('--csv', help='roster CSV file; the demo list is used when omitted')
    args = parser.parse_args(argv)

    students = load_roster(args.csv) if args.csv else DEMO_STUDENTS
    db = DatabaseManager(args.db)
    class_created, created = seed(db, args.class_code, args.class_name, students, args.academic_year)

    print(f"Class {args.class_code}: {'created' if class_created else 'already existed'}")
    print(f"Students added: {created}/{len(students)}")


if __name__ == '__main__':
    main()
