import base64
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from facecore.inference.extractor import FaceDetection  # noqa: E402
from faceroll import create_app  # noqa: E402
from faceroll import globals as app_globals  # noqa: E402

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
DIMENSION = 128


def textured_frame(seed=0, low=60, high=200):
    """Sharp frame with mean brightness around (low + high) / 2."""
    rng = np.random.default_rng(seed)
    return rng.integers(low, high, size=(FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


def flat_frame(value):
    return np.full((FRAME_HEIGHT, FRAME_WIDTH, 3), value, dtype=np.uint8)


def make_detection(center=(320.0, 240.0), size=200.0, descriptor=None, eye_dy=0.0, height=None):
    cx, cy = center
    height = size if height is None else height
    if descriptor is None:
        descriptor = np.zeros(DIMENSION)
    return FaceDetection(
        box=(cx - size / 2.0, cy - height / 2.0, size, height),
        left_eye=[(cx - 40.0, cy - 20.0)],
        right_eye=[(cx + 40.0, cy - 20.0 + eye_dy)],
        descriptor=np.asarray(descriptor, dtype=np.float64),
    )


class ScriptedExtractor:
    """Returns scripted detections in order; exceptions in the script are raised."""

    def __init__(self, script, repeat_last=False):
        self.script = list(script)
        self.repeat_last = repeat_last
        self.calls = 0

    def detect(self, frame):
        index = self.calls
        self.calls += 1
        if index >= len(self.script):
            if not self.repeat_last or not self.script:
                return None
            index = len(self.script) - 1
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        return item


def random_vector(seed, scale=0.2):
    rng = np.random.default_rng(seed)
    return rng.uniform(-scale, scale, DIMENSION)


def noisy_samples(base, count, seed, sigma=0.01):
    rng = np.random.default_rng(seed)
    return [(base + rng.normal(0.0, sigma, base.shape)).tolist() for _ in range(count)]


def png_data_url(width=32, height=24):
    image = np.full((height, width, 3), 128, dtype=np.uint8)
    ok, buffer = cv2.imencode('.png', image)
    assert ok
    return 'data:image/png;base64,' + base64.b64encode(buffer.tobytes()).decode('ascii')


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'DATABASE_PATH': str(tmp_path / 'attendance.db'),
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'LOG_DIR': str(tmp_path / 'logs'),
        'LOG_LEVEL': 'WARNING',
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return app_globals.database


@pytest.fixture
def roster(db):
    """Class 7A with three students and class 7B with one."""
    db.add_class('7A', 'Class 7A')
    db.add_class('7B', 'Class 7B')
    db.add_student('S001', 'An Nguyen', class_code='7A', student_number='0001', gender='M')
    db.add_student('S002', 'Binh Tran', class_code='7A', student_number='0002', gender='F')
    db.add_student('S003', 'Chi Le', class_code='7A', student_number='0003', gender='F')
    db.add_student('S100', 'Dung Pham', class_code='7B', student_number='0100', gender='M')
    return {'7A': ['S001', 'S002', 'S003'], '7B': ['S100']}
