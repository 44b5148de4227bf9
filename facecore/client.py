"""HTTP client used by capture kiosks to talk to the attendance server."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:5000"


class ApiError(RuntimeError):
    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class AttendanceConflict(ApiError):
    """Attendance for the student was already recorded today."""

    @property
    def match(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("match")


def _as_list(vector: Sequence[float]) -> List[float]:
    return np.asarray(vector, dtype=np.float64).tolist()


class AttendanceClient:
    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or os.getenv("ATTENDANCE_API_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise ApiError(0, f"Server unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if response.status_code == 409:
            raise AttendanceConflict(409, payload.get("error", "Attendance already recorded"), payload)
        if response.status_code >= 400:
            message = payload.get("error") or response.text[:160] or response.reason
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise ApiError(response.status_code, message, payload)
        return payload

    def enroll_face(self, student_id: str, samples: Sequence[Sequence[float]],
                    face_image: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"descriptors": [_as_list(sample) for sample in samples]}
        if face_image:
            body["faceImage"] = face_image
        return self._request("POST", f"/api/students/{student_id}/enroll-face", json=body)

    def recognize(self, class_id: str, descriptor: Sequence[float],
                  student_id: Optional[str] = None, mark: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"classId": class_id, "descriptor": _as_list(descriptor)}
        if student_id:
            body["studentId"] = student_id
        if mark:
            body["mark"] = True
        return self._request("POST", "/api/attendance/recognize", json=body)

    def mark_attendance(self, student_id: str, class_id: str, status: str = "PRESENT") -> Dict[str, Any]:
        body = {"studentId": student_id, "classId": class_id, "status": status}
        return self._request("POST", "/api/attendance/mark", json=body)

    def class_roster(self, class_id: str, date: Optional[str] = None) -> Dict[str, Any]:
        params = {"classId": class_id}
        if date:
            params["date"] = date
        return self._request("GET", "/api/attendance", params=params)
