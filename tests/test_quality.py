import base64

import cv2
import numpy as np
import pytest

from facecore.vision.quality import (
    ISSUE_MESSAGES,
    PASSED_MESSAGE,
    QualityIssue,
    QualityThresholds,
    compute_roll_angle,
    encode_snapshot,
    evaluate_frame,
    measure_brightness_and_blur,
    snapshot_score,
)

from conftest import flat_frame, make_detection, textured_frame


def test_textured_frame_is_bright_enough_and_sharp():
    brightness, blur = measure_brightness_and_blur(textured_frame())
    assert 110 < brightness < 150
    assert blur > 80


def test_flat_frame_has_no_sharpness():
    brightness, blur = measure_brightness_and_blur(flat_frame(100))
    assert brightness == pytest.approx(100)
    assert blur == pytest.approx(0.0)


def test_roll_angle():
    assert compute_roll_angle([(0, 0)], [(10, 0)]) == pytest.approx(0.0)
    assert compute_roll_angle([(0, 0)], [(10, 10)]) == pytest.approx(45.0)
    assert compute_roll_angle([(0, 0), (2, 0)], [(11, -10), (11, -10)]) == pytest.approx(-45.0)
    assert compute_roll_angle([], [(1, 1)]) == 0.0


def test_good_frame_passes():
    report = evaluate_frame(textured_frame(), make_detection())
    assert report.passed
    assert report.issue is None
    assert report.message == PASSED_MESSAGE
    assert report.center == (320.0, 240.0)
    assert report.face_width_ratio == pytest.approx(200 / 640)


@pytest.mark.parametrize('frame, detection, issue', [
    (textured_frame(), make_detection(size=100), QualityIssue.TOO_SMALL),
    # width is fine, height ratio 80/480 is not
    (textured_frame(), make_detection(size=200, height=80), QualityIssue.TOO_SMALL),
    (flat_frame(30), make_detection(), QualityIssue.TOO_DARK),
    (flat_frame(240), make_detection(), QualityIssue.TOO_BRIGHT),
    (flat_frame(130), make_detection(), QualityIssue.TOO_BLURRY),
    (textured_frame(), make_detection(eye_dy=40.0), QualityIssue.TOO_TILTED),
])
def test_rejection_reasons(frame, detection, issue):
    report = evaluate_frame(frame, detection)
    assert not report.passed
    assert report.issue is issue
    assert report.message == ISSUE_MESSAGES[issue]


def test_checks_run_in_fixed_order():
    # small, dark, flat and tilted at once: size is reported first
    report = evaluate_frame(flat_frame(20), make_detection(size=50, eye_dy=60.0))
    assert report.issue is QualityIssue.TOO_SMALL
    # dark and flat: darkness before blur
    report = evaluate_frame(flat_frame(20), make_detection(eye_dy=60.0))
    assert report.issue is QualityIssue.TOO_DARK


def test_evaluation_is_deterministic():
    frame = textured_frame(seed=3)
    detection = make_detection(eye_dy=5.0)
    assert evaluate_frame(frame, detection) == evaluate_frame(frame, detection)


def test_custom_thresholds():
    thresholds = QualityThresholds(min_blur=1e9)
    report = evaluate_frame(textured_frame(), make_detection(), thresholds)
    assert report.issue is QualityIssue.TOO_BLURRY


def test_snapshot_score_formula():
    assert snapshot_score(100.0, 0.5, 10.0, 150.0) == pytest.approx(200 + 100 - 20 - 10)


def test_encode_snapshot_returns_jpeg_data_url():
    url = encode_snapshot(textured_frame(), width=320)
    prefix = 'data:image/jpeg;base64,'
    assert url.startswith(prefix)
    data = np.frombuffer(base64.b64decode(url[len(prefix):]), dtype=np.uint8)
    image = cv2.imdecode(data, cv2.IMREAD_COLOR)
    assert image.shape[:2] == (240, 320)
