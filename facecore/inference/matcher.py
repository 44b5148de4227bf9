"""Nearest-template matching of a probe embedding against a candidate roster."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from .templates import FaceTemplate

DEFAULT_MATCH_THRESHOLD = 0.55


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(math.sqrt(float(np.dot(diff, diff))))


@dataclass(frozen=True)
class Candidate:
    student_id: str
    template: FaceTemplate
    payload: Any = None


@dataclass(frozen=True)
class MatchResult:
    student_id: Optional[str]
    distance: Optional[float]
    candidate: Optional[Candidate] = None

    @property
    def matched(self) -> bool:
        return self.student_id is not None


def match_probe(probe: Sequence[float], candidates: Iterable[Candidate],
                threshold: float = DEFAULT_MATCH_THRESHOLD) -> MatchResult:
    """Find the candidate whose closest comparison vector is nearest to ``probe``.

    Vectors whose length differs from the probe are skipped.  A distance
    equal to ``threshold`` counts as a match.  When two candidates share the
    minimal distance the first one seen wins.  ``distance`` is None only when
    no candidate offered a comparable vector.
    """
    probe_vector = np.asarray(probe, dtype=np.float64)
    best_distance = math.inf
    best: Optional[Candidate] = None

    for candidate in candidates:
        for vector in candidate.template.comparison_vectors():
            if len(vector) != probe_vector.shape[0]:
                continue
            distance = euclidean_distance(probe_vector, vector)
            if distance < best_distance:
                best_distance = distance
                best = candidate

    if best is None:
        return MatchResult(student_id=None, distance=None)
    if best_distance > threshold:
        return MatchResult(student_id=None, distance=best_distance)
    return MatchResult(student_id=best.student_id, distance=best_distance, candidate=best)
