"""Face descriptor extraction contract and the dlib-backed implementation.

The rest of the core treats the extractor as a black box: one frame in,
at most one ``FaceDetection`` out (bounding box, eye landmarks and a
fixed-length embedding).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Box = Tuple[float, float, float, float]  # x, y, width, height


class ExtractorError(RuntimeError):
    """Raised when the extractor cannot produce a result (e.g. models not loaded)."""


@dataclass
class FaceDetection:
    box: Box
    left_eye: Sequence[Point]
    right_eye: Sequence[Point]
    descriptor: np.ndarray

    @property
    def center(self) -> Point:
        x, y, w, h = self.box
        return (x + w / 2.0, y + h / 2.0)


class DescriptorExtractor(Protocol):
    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        ...


class ModelRegistry:
    """Process-wide holder for lazily loaded models.

    ``ensure_loaded()`` runs the loader at most once.  Concurrent callers
    block on the same lock and share the single in-flight load.  A failed
    load is not remembered, so the next call tries again.
    """

    def __init__(self, loader: Callable[[], Any], name: str = "models"):
        self._loader = loader
        self._name = name
        self._lock = threading.Lock()
        self._models: Any = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> Any:
        if self._loaded:
            return self._models
        with self._lock:
            if not self._loaded:
                logger.info("Loading %s", self._name)
                try:
                    models = self._loader()
                except Exception as exc:
                    logger.error("Loading %s failed: %s", self._name, exc)
                    raise ExtractorError(f"Could not load {self._name}: {exc}") from exc
                self._models = models
                self._loaded = True
                logger.info("%s loaded", self._name)
        return self._models


def _load_face_recognition():
    import face_recognition

    return face_recognition


face_models = ModelRegistry(_load_face_recognition, name="face_recognition models")


class DlibDescriptorExtractor:
    """128-d dlib embeddings through the ``face_recognition`` package."""

    def __init__(
        self,
        registry: ModelRegistry = face_models,
        detection_model: str = "hog",
        upsample: int = 1,
        num_jitters: int = 1,
    ):
        self.registry = registry
        self.detection_model = detection_model
        self.upsample = upsample
        self.num_jitters = num_jitters

    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        fr = self.registry.ensure_loaded()
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        locations = fr.face_locations(
            rgb,
            number_of_times_to_upsample=self.upsample,
            model=self.detection_model,
        )
        if not locations:
            return None

        # (top, right, bottom, left); keep the largest face only
        location = max(locations, key=lambda loc: (loc[2] - loc[0]) * (loc[1] - loc[3]))
        encodings = fr.face_encodings(rgb, known_face_locations=[location], num_jitters=self.num_jitters)
        if not encodings:
            return None
        landmarks = fr.face_landmarks(rgb, face_locations=[location])
        if not landmarks:
            return None

        top, right, bottom, left = location
        points = landmarks[0]
        return FaceDetection(
            box=(float(left), float(top), float(right - left), float(bottom - top)),
            left_eye=[(float(x), float(y)) for x, y in points.get("left_eye", [])],
            right_eye=[(float(x), float(y)) for x, y in points.get("right_eye", [])],
            descriptor=np.asarray(encodings[0], dtype=np.float64),
        )
