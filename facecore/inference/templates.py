"""Stored face templates.

Two shapes exist in the enrollment store: a bare vector written by early
enrollments, and the aggregated ``{"mean": [...], "samples": [[...], ...]}``
template.  ``parse_template`` resolves the stored value once into one of
the two variants so callers never branch on raw JSON.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

Vector = Tuple[float, ...]


def _as_vector(value: Any) -> Optional[Vector]:
    """Return a tuple of floats, or None if ``value`` is not a non-empty numeric list."""
    if not isinstance(value, (list, tuple)) or not value:
        return None
    numbers = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, Real):
            return None
        number = float(item)
        if not math.isfinite(number):
            return None
        numbers.append(number)
    return tuple(numbers)


def compute_mean(samples: Sequence[Sequence[float]]) -> List[float]:
    """Element-wise average of equal-length vectors."""
    if not samples:
        raise ValueError("At least one sample is required")
    matrix = np.asarray(samples, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError("All samples must have the same length")
    return matrix.mean(axis=0).tolist()


@dataclass(frozen=True)
class LegacyVector:
    vector: Vector

    kind = "legacy"

    @property
    def sample_count(self) -> int:
        return 1

    @property
    def dimension(self) -> int:
        return len(self.vector)

    def comparison_vectors(self) -> List[Vector]:
        return [self.vector]

    def to_json(self) -> List[float]:
        return list(self.vector)


@dataclass(frozen=True)
class AggregatedTemplate:
    mean: Optional[Vector]
    samples: Tuple[Vector, ...]

    kind = "aggregated"

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    @property
    def dimension(self) -> int:
        if self.samples:
            return len(self.samples[0])
        return len(self.mean) if self.mean else 0

    def comparison_vectors(self) -> List[Vector]:
        # individual samples are compared, the mean only when none survived
        if self.samples:
            return list(self.samples)
        return [self.mean] if self.mean else []

    def to_json(self) -> dict:
        return {
            "mean": list(self.mean) if self.mean else None,
            "samples": [list(sample) for sample in self.samples],
        }


FaceTemplate = Union[LegacyVector, AggregatedTemplate]


def build_template(samples: Sequence[Sequence[float]]) -> AggregatedTemplate:
    """Build an aggregated template from freshly captured samples."""
    vectors = []
    for index, sample in enumerate(samples):
        vector = _as_vector(list(sample) if isinstance(sample, np.ndarray) else sample)
        if vector is None:
            raise ValueError(f"Sample {index} is not a numeric vector")
        vectors.append(vector)
    if not vectors:
        raise ValueError("At least one sample is required")
    length = len(vectors[0])
    if any(len(vector) != length for vector in vectors):
        raise ValueError("All samples must have the same length")
    return AggregatedTemplate(mean=tuple(compute_mean(vectors)), samples=tuple(vectors))


def parse_template(raw: Any) -> Optional[FaceTemplate]:
    """Resolve a stored embedding value into a template variant.

    Accepts the JSON text kept in the database or an already decoded value.
    Returns None when nothing usable is stored.  Inside an aggregated
    template, samples that are not numeric are dropped individually.
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            return None

    if isinstance(raw, (list, tuple)):
        vector = _as_vector(raw)
        return LegacyVector(vector) if vector else None

    if isinstance(raw, dict):
        samples = raw.get("samples")
        usable = []
        if isinstance(samples, (list, tuple)):
            for sample in samples:
                vector = _as_vector(sample)
                if vector is not None:
                    usable.append(vector)
        mean = _as_vector(raw.get("mean"))
        if not usable and mean is None:
            return None
        return AggregatedTemplate(mean=mean, samples=tuple(usable))

    return None
