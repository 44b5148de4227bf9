"""Averaged probe embedding for recognition."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from facecore.inference.extractor import DescriptorExtractor
from facecore.vision.camera_manager import CameraError
from facecore.vision.frame_source import FrameSource

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class FaceNotDetectedError(RuntimeError):
    """Too few usable descriptors were collected to build a probe."""


@dataclass(frozen=True)
class ProbeSettings:
    samples: int = 6
    min_samples: int = 3
    interval: float = 0.15


def average_descriptors(descriptors: Sequence[Sequence[float]]) -> np.ndarray:
    if not descriptors:
        raise ValueError("No descriptors to average")
    matrix = np.asarray(descriptors, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError("Descriptors must share one length")
    return matrix.mean(axis=0)


def capture_probe(
    source: FrameSource,
    extractor: DescriptorExtractor,
    settings: ProbeSettings = ProbeSettings(),
    token: Optional[CancellationToken] = None,
) -> np.ndarray:
    """Run up to ``settings.samples`` extractor calls and average the hits.

    Attempts without a face (or with a failing extractor) are discarded.
    Raises ``FaceNotDetectedError`` when fewer than ``settings.min_samples``
    descriptors were obtained and ``CaptureCancelled`` if the token fires.
    """
    token = token or CancellationToken()
    descriptors: List[np.ndarray] = []

    with source as frames:
        for attempt in range(settings.samples):
            token.raise_if_cancelled()
            try:
                detection = extractor.detect(frames.read())
            except CameraError as exc:
                logger.debug("Probe attempt %s: camera read failed: %s", attempt + 1, exc)
                detection = None
            except Exception as exc:
                logger.debug("Probe attempt %s: extractor failed: %s", attempt + 1, exc)
                detection = None

            if detection is not None:
                vector = np.asarray(detection.descriptor, dtype=np.float64)
                if not descriptors or vector.shape == descriptors[0].shape:
                    descriptors.append(vector)

            if attempt < settings.samples - 1:
                token.wait(settings.interval)

    token.raise_if_cancelled()
    if len(descriptors) < settings.min_samples:
        logger.info("Probe failed: %s/%s usable descriptors", len(descriptors), settings.min_samples)
        raise FaceNotDetectedError("Face not detected")
    return average_descriptors(descriptors)
