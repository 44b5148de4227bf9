"""
Database module for Face Attendance
Quản lý cơ sở dữ liệu SQLite: lớp học, học sinh, mẫu khuôn mặt và điểm danh
"""

import sqlite3
import json
import logging
from contextlib import contextmanager
from datetime import datetime, date
from pathlib import Path

from logging_config import database_logger

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ('PRESENT', 'ABSENT', 'SICK', 'PERMIT')


class DuplicateAttendanceError(Exception):
    """Vi phạm ràng buộc UNIQUE(student_id, attendance_date)."""

    def __init__(self, student_id, attendance_date):
        super().__init__(f"Attendance for {student_id} on {attendance_date} already exists")
        self.student_id = student_id
        self.attendance_date = attendance_date


class DatabaseManager:
    def __init__(self, db_path="attendance_system.db"):
        self.db_path = str(db_path)
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.init_database()

    @contextmanager
    def get_connection(self):
        """Tạo kết nối database (commit khi thành công, luôn đóng kết nối)"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Cho phép truy cập theo tên cột
        conn.execute('PRAGMA foreign_keys = ON')
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self):
        """Khởi tạo database và các bảng"""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # Bảng lớp học
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS classes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    class_code VARCHAR(20) UNIQUE NOT NULL,
                    class_name VARCHAR(100) NOT NULL,
                    academic_year VARCHAR(20),
                    homeroom_teacher VARCHAR(100),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    is_active BOOLEAN DEFAULT 1
                )
            ''')

            # Bảng học sinh; face_embedding là JSON (vector cũ hoặc {mean, samples})
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS students (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    student_id VARCHAR(40) UNIQUE NOT NULL,
                    student_number VARCHAR(30),
                    full_name VARCHAR(100) NOT NULL,
                    gender VARCHAR(10),
                    class_id INTEGER,
                    face_embedding TEXT,
                    face_image_url VARCHAR(255),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    is_active BOOLEAN DEFAULT 1,
                    FOREIGN KEY (class_id) REFERENCES classes(id)
                )
            ''')

            # Cơ sở dữ liệu cũ chưa có cột thời điểm đăng ký khuôn mặt
            self._ensure_column(cursor, 'students', 'face_enrolled_at', 'TIMESTAMP')

            # Bảng điểm danh: mỗi học sinh tối đa một bản ghi mỗi ngày
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS attendance (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    student_id VARCHAR(40) NOT NULL,
                    class_id INTEGER NOT NULL,
                    attendance_date DATE NOT NULL,
                    check_in_time TIMESTAMP,
                    status VARCHAR(20) DEFAULT 'PRESENT',
                    confidence_score REAL,
                    source VARCHAR(20) DEFAULT 'manual',
                    notes TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (student_id, attendance_date),
                    FOREIGN KEY (student_id) REFERENCES students(student_id),
                    FOREIGN KEY (class_id) REFERENCES classes(id)
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_students_class ON students(class_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_attendance_class_date ON attendance(class_id, attendance_date)')

        logger.info("Database initialized at %s", self.db_path)

    def _ensure_column(self, cursor, table_name, column_name, column_def):
        """Thêm cột mới nếu chưa tồn tại (dùng cho nâng cấp DB)."""
        cursor.execute(f"PRAGMA table_info({table_name})")
        columns = [row[1] for row in cursor.fetchall()]
        if column_name in columns:
            return
        ddl = f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_def}".strip()
        try:
            cursor.execute(ddl)
        except sqlite3.OperationalError as exc:
            logger.warning(
                "Không thể thêm cột %s.%s (%s): %s",
                table_name,
                column_name,
                column_def,
                exc,
            )

    # === QUẢN LÝ LỚP HỌC ===

    def add_class(self, class_code, class_name, academic_year=None, homeroom_teacher=None):
        """Tạo lớp học mới, trả về id nội bộ"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute('''
                    INSERT INTO classes (class_code, class_name, academic_year, homeroom_teacher)
                    VALUES (?, ?, ?, ?)
                ''', (class_code, class_name, academic_year, homeroom_teacher))
            except sqlite3.IntegrityError:
                raise ValueError(f"Lớp học với mã {class_code} đã tồn tại")
            logger.info(f"Created class: {class_name} ({class_code})")
            return cursor.lastrowid

    def get_class(self, class_code):
        """Lấy lớp học theo mã lớp"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM classes WHERE class_code = ? AND is_active = 1', (class_code,))
            row = cursor.fetchone()
            return dict(row) if row else None

    # === QUẢN LÝ HỌC SINH ===

    def add_student(self, student_id, full_name, class_code=None, student_number=None, gender=None):
        """Thêm học sinh mới"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            class_id = None
            if class_code:
                cursor.execute('SELECT id FROM classes WHERE class_code = ?', (class_code,))
                row = cursor.fetchone()
                if row is None:
                    raise ValueError(f"Không tìm thấy lớp {class_code}")
                class_id = row['id']
            try:
                cursor.execute('''
                    INSERT INTO students (student_id, student_number, full_name, gender, class_id)
                    VALUES (?, ?, ?, ?, ?)
                ''', (student_id, student_number, full_name, gender, class_id))
            except sqlite3.IntegrityError as e:
                logger.error(f"Student ID {student_id} already exists: {e}")
                return False
            logger.info(f"Added student: {full_name} ({student_id})")
            return True

    def get_student(self, student_id):
        """Lấy thông tin học sinh kèm mã và tên lớp"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT s.*, c.class_code, c.class_name
                FROM students s
                LEFT JOIN classes c ON s.class_id = c.id
                WHERE s.student_id = ? AND s.is_active = 1
            ''', (student_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_students_by_class(self, class_id):
        """Lấy danh sách học sinh trong lớp (sắp theo họ tên)"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT s.*, c.class_name, c.class_code
                FROM students s
                LEFT JOIN classes c ON s.class_id = c.id
                WHERE s.class_id = ? AND s.is_active = 1
                ORDER BY s.full_name, s.student_id
            ''', (class_id,))
            return [dict(row) for row in cursor.fetchall()]

    # === MẪU KHUÔN MẶT ===

    def save_face_template(self, student_id, template, face_image_url=None):
        """Ghi đè toàn bộ mẫu khuôn mặt; chỉ thay ảnh khi có ảnh mới."""
        payload = template if isinstance(template, str) else json.dumps(template)
        now = datetime.now().isoformat()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            if face_image_url:
                cursor.execute('''
                    UPDATE students
                    SET face_embedding = ?, face_image_url = ?, face_enrolled_at = ?, updated_at = ?
                    WHERE student_id = ?
                ''', (payload, face_image_url, now, now, student_id))
            else:
                cursor.execute('''
                    UPDATE students
                    SET face_embedding = ?, face_enrolled_at = ?, updated_at = ?
                    WHERE student_id = ?
                ''', (payload, now, now, student_id))
            database_logger.log_query('UPDATE', 'students')
            return cursor.rowcount > 0

    def get_face_template(self, student_id):
        """Lấy JSON mẫu khuôn mặt đã lưu (hoặc None)"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT face_embedding FROM students WHERE student_id = ?', (student_id,))
            row = cursor.fetchone()
            return row['face_embedding'] if row else None

    def count_enrolled_faces(self):
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT COUNT(*) FROM students
                WHERE is_active = 1 AND face_embedding IS NOT NULL AND face_embedding != ''
            ''')
            return cursor.fetchone()[0]

    # === QUẢN LÝ ĐIỂM DANH ===

    def get_attendance(self, student_id, attendance_date=None):
        """Lấy bản ghi điểm danh của học sinh trong ngày"""
        attendance_date = (attendance_date or date.today()).isoformat()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM attendance
                WHERE student_id = ? AND attendance_date = ?
            ''', (student_id, attendance_date))
            row = cursor.fetchone()
            return dict(row) if row else None

    def mark_attendance(self, student_id, class_id, status='PRESENT', attendance_date=None,
                        confidence_score=None, source='manual', notes=None):
        """Ghi điểm danh; ràng buộc UNIQUE(student_id, attendance_date) chặn bản ghi trùng."""
        if status not in ATTENDANCE_STATUSES:
            raise ValueError(f"Trạng thái điểm danh không hợp lệ: {status}")
        attendance_date = (attendance_date or date.today()).isoformat()
        now = datetime.now().isoformat(timespec='seconds')

        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute('''
                    INSERT INTO attendance (
                        student_id, class_id, attendance_date, check_in_time,
                        status, confidence_score, source, notes
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (student_id, class_id, attendance_date, now, status,
                      confidence_score, source, notes))
            except sqlite3.IntegrityError as exc:
                if 'UNIQUE' not in str(exc).upper():
                    database_logger.log_error('mark_attendance', str(exc))
                    raise
                database_logger.log_integrity_violation('attendance', f"{student_id}@{attendance_date}")
                raise DuplicateAttendanceError(student_id, attendance_date) from exc

            cursor.execute('SELECT * FROM attendance WHERE id = ?', (cursor.lastrowid,))
            record = dict(cursor.fetchone())
            logger.info(f"Marked attendance for {student_id} ({status})")
            return record

    def get_class_attendance(self, class_id, attendance_date=None):
        """Danh sách học sinh của lớp kèm trạng thái điểm danh trong ngày"""
        attendance_date = (attendance_date or date.today()).isoformat()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT s.student_id, s.full_name, s.student_number, s.gender,
                       s.face_image_url, s.face_embedding,
                       a.status, a.check_in_time
                FROM students s
                LEFT JOIN attendance a
                    ON a.student_id = s.student_id AND a.attendance_date = ?
                WHERE s.class_id = ? AND s.is_active = 1
                ORDER BY s.full_name, s.student_id
            ''', (attendance_date, class_id))
            return [dict(row) for row in cursor.fetchall()]

    def clear_attendance_records(self, attendance_date=None):
        """Xóa bản ghi điểm danh (toàn bộ hoặc của một ngày)."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            if attendance_date is None:
                cursor.execute('DELETE FROM attendance')
            else:
                cursor.execute('DELETE FROM attendance WHERE attendance_date = ?',
                               (attendance_date.isoformat(),))
            logger.info("Cleared %s attendance records", cursor.rowcount)
            return cursor.rowcount
