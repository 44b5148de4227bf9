"""Quality-gated enrollment capture loop.

Turns a live frame source into an aggregated face template:

* every attempt reads one frame, runs the extractor and the quality gate;
* accepted embeddings are collected until the target count is reached or
  the attempt budget (``attempts_per_target * target_samples``) runs out;
* consecutive accepted face centres must move more than
  ``movement_threshold`` pixels at least once, which rejects a still photo
  held in front of the camera;
* the best scoring accepted frame becomes the reference snapshot.

Nothing is persisted unless the session ends in ``SUCCEEDED``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from facecore.inference.extractor import DescriptorExtractor, Point
from facecore.inference.templates import AggregatedTemplate, build_template
from facecore.vision.camera_manager import CameraError
from facecore.vision.frame_source import FrameSource
from facecore.vision.quality import QualityReport, QualityThresholds, encode_snapshot, evaluate_frame

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class EnrollmentState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    SUCCEEDED = "succeeded"
    INSUFFICIENT_SAMPLES = "insufficient_samples"
    NO_MOVEMENT = "no_movement"
    CANCELLED = "cancelled"
    CAMERA_UNAVAILABLE = "camera_unavailable"


TERMINAL_STATES = {
    EnrollmentState.SUCCEEDED,
    EnrollmentState.INSUFFICIENT_SAMPLES,
    EnrollmentState.NO_MOVEMENT,
    EnrollmentState.CANCELLED,
    EnrollmentState.CAMERA_UNAVAILABLE,
}

NOT_DETECTED_MESSAGE = "Face not detected"
INSUFFICIENT_MESSAGE = "Not enough good samples, try again with better lighting"
NO_MOVEMENT_MESSAGE = "Move your head slightly so the camera can confirm a live face"
CANCELLED_MESSAGE = "Enrollment cancelled"
SUCCEEDED_MESSAGE = "Face template captured"
CAMERA_UNAVAILABLE_MESSAGE = "Camera unavailable, check that it is connected and not used by another program"


@dataclass(frozen=True)
class EnrollmentSettings:
    target_samples: int = 6
    min_samples: int = 4
    attempts_per_target: int = 10
    interval: float = 0.15
    movement_threshold: float = 12.0

    @property
    def max_attempts(self) -> int:
        return self.target_samples * self.attempts_per_target


@dataclass(frozen=True)
class EnrollmentProgress:
    attempt: int
    sample_count: int
    target_samples: int
    accepted: bool
    message: str
    report: Optional[QualityReport] = None


@dataclass
class EnrollmentOutcome:
    state: EnrollmentState
    message: str
    samples: List[List[float]] = field(default_factory=list)
    attempts: int = 0
    movement_detected: bool = False
    template: Optional[AggregatedTemplate] = None
    snapshot: Optional[str] = None
    best_score: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.state is EnrollmentState.SUCCEEDED


class EnrollmentCapture:
    """One enrollment session over an injected frame source and extractor."""

    def __init__(
        self,
        source: FrameSource,
        extractor: DescriptorExtractor,
        settings: EnrollmentSettings = EnrollmentSettings(),
        thresholds: QualityThresholds = QualityThresholds(),
        on_progress: Optional[Callable[[EnrollmentProgress], None]] = None,
        persist: Optional[Callable[[EnrollmentOutcome], None]] = None,
    ):
        if settings.min_samples > settings.target_samples:
            raise ValueError("min_samples cannot exceed target_samples")
        self.source = source
        self.extractor = extractor
        self.settings = settings
        self.thresholds = thresholds
        self.on_progress = on_progress
        self.persist = persist
        self.state = EnrollmentState.IDLE

    def _report(self, attempt: int, samples: int, accepted: bool, message: str,
                report: Optional[QualityReport] = None) -> None:
        if self.on_progress is None:
            return
        self.on_progress(EnrollmentProgress(
            attempt=attempt,
            sample_count=samples,
            target_samples=self.settings.target_samples,
            accepted=accepted,
            message=message,
            report=report,
        ))

    def run(self, token: Optional[CancellationToken] = None) -> EnrollmentOutcome:
        if self.state is not EnrollmentState.IDLE:
            raise RuntimeError("An enrollment session can only run once")
        token = token or CancellationToken()
        settings = self.settings

        samples: List[List[float]] = []
        attempts = 0
        best_score = -math.inf
        best_snapshot: Optional[str] = None
        movement_detected = False
        last_center: Optional[Point] = None

        self.state = EnrollmentState.CAPTURING
        logger.info("Enrollment capture started (target=%s, min=%s)", settings.target_samples, settings.min_samples)

        camera_error: Optional[CameraError] = None
        try:
            with self.source as source:
                while len(samples) < settings.target_samples and attempts < settings.max_attempts:
                    if token.cancelled:
                        break
                    attempts += 1

                    try:
                        frame = source.read()
                        detection = self.extractor.detect(frame)
                    except CameraError as exc:
                        logger.debug("Attempt %s: camera read failed: %s", attempts, exc)
                        self._report(attempts, len(samples), False, f"Camera error: {exc}")
                        token.wait(settings.interval)
                        continue
                    except Exception as exc:
                        # extractor failures only cost this attempt
                        logger.debug("Attempt %s: extractor failed: %s", attempts, exc)
                        self._report(attempts, len(samples), False, "Face model not ready")
                        token.wait(settings.interval)
                        continue

                    if detection is None:
                        self._report(attempts, len(samples), False, NOT_DETECTED_MESSAGE)
                        token.wait(settings.interval)
                        continue

                    report = evaluate_frame(frame, detection, self.thresholds)
                    if not report.passed:
                        logger.debug("Attempt %s rejected: %s", attempts, report.message)
                        self._report(attempts, len(samples), False, report.message, report)
                        token.wait(settings.interval)
                        continue

                    center = report.center
                    if last_center is not None:
                        delta = math.hypot(center[0] - last_center[0], center[1] - last_center[1])
                        if delta > settings.movement_threshold:
                            movement_detected = True
                    last_center = center

                    samples.append(np.asarray(detection.descriptor, dtype=np.float64).tolist())
                    if report.score > best_score:
                        snapshot = encode_snapshot(frame, self.thresholds.snapshot_width, self.thresholds.snapshot_quality)
                        if snapshot is not None:
                            best_score = report.score
                            best_snapshot = snapshot

                    self._report(
                        attempts,
                        len(samples),
                        True,
                        f"Sample {len(samples)}/{settings.target_samples} saved",
                        report,
                    )
                    if len(samples) < settings.target_samples:
                        token.wait(settings.interval)
        except CameraError as exc:
            logger.error("Camera unavailable: %s", exc)
            camera_error = exc

        outcome = EnrollmentOutcome(
            state=EnrollmentState.CAPTURING,
            message="",
            samples=samples,
            attempts=attempts,
            movement_detected=movement_detected,
            best_score=best_score if best_snapshot is not None else None,
        )

        if camera_error is not None:
            outcome.state = EnrollmentState.CAMERA_UNAVAILABLE
            outcome.message = f"{CAMERA_UNAVAILABLE_MESSAGE} ({camera_error})"
        elif token.cancelled:
            outcome.state, outcome.message = EnrollmentState.CANCELLED, CANCELLED_MESSAGE
        elif len(samples) < settings.min_samples:
            outcome.state, outcome.message = EnrollmentState.INSUFFICIENT_SAMPLES, INSUFFICIENT_MESSAGE
        elif not movement_detected:
            outcome.state, outcome.message = EnrollmentState.NO_MOVEMENT, NO_MOVEMENT_MESSAGE
        else:
            outcome.state, outcome.message = EnrollmentState.SUCCEEDED, SUCCEEDED_MESSAGE
            outcome.template = build_template(samples)
            outcome.snapshot = best_snapshot

        self.state = outcome.state
        logger.info(
            "Enrollment capture finished: %s (samples=%s, attempts=%s, movement=%s)",
            outcome.state.value,
            len(samples),
            attempts,
            movement_detected,
        )

        if outcome.succeeded and self.persist is not None:
            self.persist(outcome)
        return outcome
