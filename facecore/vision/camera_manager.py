"""Camera device management for capture sessions."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import cv2


logger = logging.getLogger(__name__)


class CameraError(RuntimeError):
    """Raised when camera operations fail."""


class CameraProvider(Protocol):
    """Abstraction for objects that can supply cv2.VideoCapture."""

    def open(self, index: int) -> cv2.VideoCapture:
        ...


class DefaultCameraProvider:
    """Real provider that uses OpenCV to create VideoCapture objects."""

    def open(self, index: int) -> cv2.VideoCapture:
        capture = cv2.VideoCapture(index)
        if not capture or not capture.isOpened():
            raise CameraError(f"Cannot open camera index {index}")
        return capture


@dataclass
class CameraConfig:
    index: int = 0
    width: Optional[int] = 640
    height: Optional[int] = 480
    warmup_frames: int = 3
    buffer_size: Optional[int] = 2
    mirror: bool = True


class CameraManager:
    """Owns one capture device for the lifetime of a capture session.

    ``with CameraManager(...) as camera:`` opens the device on entry and
    releases it on every exit path, so the hardware is never left locked
    after an enrollment or recognition loop ends.
    """

    def __init__(
        self,
        index: int = 0,
        provider: Optional[CameraProvider] = None,
        width: Optional[int] = 640,
        height: Optional[int] = 480,
        warmup_frames: int = 3,
        buffer_size: Optional[int] = 2,
        mirror: bool = True,
    ):
        self.config = CameraConfig(
            index=index,
            width=width,
            height=height,
            warmup_frames=warmup_frames,
            buffer_size=buffer_size,
            mirror=mirror,
        )
        self.provider = provider or DefaultCameraProvider()
        self._capture: Optional[cv2.VideoCapture] = None

    def __enter__(self) -> "CameraManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> cv2.VideoCapture:
        capture = self._capture
        if capture is not None and capture.isOpened():
            return capture

        capture = self.provider.open(self.config.index)
        self._configure_capture(capture)
        self._capture = capture
        return capture

    def _configure_capture(self, capture: cv2.VideoCapture) -> None:
        try:
            if self.config.width:
                capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            if self.config.height:
                capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            if self.config.buffer_size is not None and hasattr(cv2, "CAP_PROP_BUFFERSIZE"):
                capture.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)

            actual_w = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_h = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            fps = capture.get(cv2.CAP_PROP_FPS)
            logger.info(
                "Camera ready: %sx%s @ %.2f fps",
                actual_w,
                actual_h,
                fps or 0,
            )

            warmup = max(0, self.config.warmup_frames)
            if warmup:
                logger.debug("Warming up camera (%s frames)", warmup)
                success = 0
                for _ in range(warmup):
                    ret, _frame = capture.read()
                    if ret:
                        success += 1
                    time.sleep(0.05)
                logger.debug("Warmup frames ok=%s/%s", success, warmup)
        except cv2.error as exc:
            logger.warning("Unable to configure camera: %s", exc)

    def stop(self) -> None:
        capture = self._capture
        self._capture = None
        if capture is not None:
            capture.release()
            logger.debug("Camera %s released", self.config.index)

    def read(self):
        capture = self._capture
        if capture is None:
            raise CameraError("Camera is not started")
        ret, frame = capture.read()
        if not ret or frame is None:
            raise CameraError("Unable to read frame from camera")
        if self.config.mirror:
            frame = cv2.flip(frame, 1)
        return frame

    def is_open(self) -> bool:
        return bool(self._capture is not None and self._capture.isOpened())
