"""Frame quality gate for enrollment samples.

Every detected face is scored on size, brightness, sharpness and roll
before its embedding may join a sample set.  The checks run in a fixed
order and the first failing one is reported, so the same frame and
landmarks always produce the same verdict.
"""
from __future__ import annotations

import base64
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from facecore.inference.extractor import FaceDetection, Point


class QualityIssue(Enum):
    TOO_SMALL = "too_small"
    TOO_DARK = "too_dark"
    TOO_BRIGHT = "too_bright"
    TOO_BLURRY = "too_blurry"
    TOO_TILTED = "too_tilted"


ISSUE_MESSAGES = {
    QualityIssue.TOO_SMALL: "Face too small, move closer to the camera",
    QualityIssue.TOO_DARK: "Lighting too dark",
    QualityIssue.TOO_BRIGHT: "Lighting too bright",
    QualityIssue.TOO_BLURRY: "Image too blurry, hold still",
    QualityIssue.TOO_TILTED: "Face too tilted, keep your head level",
}
PASSED_MESSAGE = "Sample accepted"


@dataclass(frozen=True)
class QualityThresholds:
    min_face_ratio: float = 0.22
    min_brightness: float = 60.0
    max_brightness: float = 210.0
    min_blur: float = 80.0
    max_roll: float = 15.0
    analysis_size: Tuple[int, int] = (160, 120)
    target_brightness: float = 140.0
    snapshot_width: int = 640
    snapshot_quality: int = 90


@dataclass(frozen=True)
class QualityReport:
    passed: bool
    issue: Optional[QualityIssue]
    message: str
    brightness: float
    blur: float
    roll: float
    face_width_ratio: float
    face_height_ratio: float
    center: Point
    score: float


def measure_brightness_and_blur(frame: np.ndarray, size: Tuple[int, int] = (160, 120)) -> Tuple[float, float]:
    """Mean brightness and Laplacian variance of the downscaled frame.

    Brightness is the mean over pixels of the average of the three colour
    channels.  Blur is the variance of the 4-neighbour Laplacian over the
    interior of the grayscale analysis image (low variance means blur).
    """
    small = cv2.resize(frame, size, interpolation=cv2.INTER_AREA).astype(np.float64)
    if small.ndim == 3:
        gray = small[:, :, :3].mean(axis=2)
    else:
        gray = small

    brightness = float(gray.mean())

    laplacian = (
        -4.0 * gray[1:-1, 1:-1]
        + gray[1:-1, :-2]
        + gray[1:-1, 2:]
        + gray[:-2, 1:-1]
        + gray[2:, 1:-1]
    )
    blur = float(laplacian.var()) if laplacian.size else 0.0
    return brightness, blur


def _mean_point(points: Sequence[Point]) -> Point:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (sum(xs) / len(xs), sum(ys) / len(ys))


def compute_roll_angle(left_eye: Sequence[Point], right_eye: Sequence[Point]) -> float:
    """Angle in degrees of the line joining the two eye centroids."""
    if not left_eye or not right_eye:
        return 0.0
    left = _mean_point(left_eye)
    right = _mean_point(right_eye)
    return math.degrees(math.atan2(right[1] - left[1], right[0] - left[0]))


def snapshot_score(blur: float, face_width_ratio: float, roll: float, brightness: float,
                   target_brightness: float = 140.0) -> float:
    return blur * 2 + face_width_ratio * 200 - abs(roll) * 2 - abs(brightness - target_brightness)


def evaluate_frame(frame: np.ndarray, detection: FaceDetection,
                   thresholds: QualityThresholds = QualityThresholds()) -> QualityReport:
    frame_height, frame_width = frame.shape[:2]
    _, _, box_w, box_h = detection.box
    width_ratio = box_w / frame_width if frame_width else 0.0
    height_ratio = box_h / frame_height if frame_height else 0.0

    brightness, blur = measure_brightness_and_blur(frame, thresholds.analysis_size)
    roll = compute_roll_angle(detection.left_eye, detection.right_eye)

    issue: Optional[QualityIssue] = None
    if width_ratio < thresholds.min_face_ratio or height_ratio < thresholds.min_face_ratio:
        issue = QualityIssue.TOO_SMALL
    elif brightness < thresholds.min_brightness:
        issue = QualityIssue.TOO_DARK
    elif brightness > thresholds.max_brightness:
        issue = QualityIssue.TOO_BRIGHT
    elif blur < thresholds.min_blur:
        issue = QualityIssue.TOO_BLURRY
    elif abs(roll) > thresholds.max_roll:
        issue = QualityIssue.TOO_TILTED

    return QualityReport(
        passed=issue is None,
        issue=issue,
        message=ISSUE_MESSAGES[issue] if issue else PASSED_MESSAGE,
        brightness=brightness,
        blur=blur,
        roll=roll,
        face_width_ratio=width_ratio,
        face_height_ratio=height_ratio,
        center=detection.center,
        score=snapshot_score(blur, width_ratio, roll, brightness, thresholds.target_brightness),
    )


def encode_snapshot(frame: np.ndarray, width: int = 640, quality: int = 90) -> Optional[str]:
    """Resize to ``width`` (keeping aspect) and return a JPEG data URL."""
    height, frame_width = frame.shape[:2]
    if frame_width <= 0:
        return None
    scale = width / frame_width
    resized = cv2.resize(frame, (width, max(1, round(height * scale))), interpolation=cv2.INTER_AREA)
    ok, buffer = cv2.imencode(".jpg", resized, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        return None
    return "data:image/jpeg;base64," + base64.b64encode(buffer.tobytes()).decode("ascii")
