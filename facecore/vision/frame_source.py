"""Frame sources feeding the capture loops.

A capture loop never talks to a camera directly: it receives a
``FrameSource``, enters it for the duration of the session and calls
``read()`` once per attempt.  Tests and offline enrollment use
``SequenceFrameSource``; kiosks use ``CameraFrameSource``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Union

import cv2
import numpy as np

from .camera_manager import CameraError, CameraManager


class FrameSource(Protocol):
    """Scoped producer of BGR frames."""

    def __enter__(self) -> "FrameSource":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...

    def read(self) -> np.ndarray:
        ...


class CameraFrameSource:
    """Reads frames from a live camera; the device is held only while entered."""

    def __init__(self, camera: CameraManager):
        self.camera = camera

    def __enter__(self) -> "CameraFrameSource":
        self.camera.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.camera.stop()

    def read(self) -> np.ndarray:
        return self.camera.read()


class SequenceFrameSource:
    """Replays a fixed list of frames (arrays or image paths).

    When ``loop`` is true the sequence restarts after the last frame,
    otherwise reading past the end raises ``CameraError`` like a camera
    that stopped delivering frames.
    """

    def __init__(self, frames: Iterable[Union[np.ndarray, str, Path]], loop: bool = False):
        self._frames: List[Union[np.ndarray, str, Path]] = list(frames)
        self._loop = loop
        self._position = 0
        self.opened = False
        self.reads = 0

    @classmethod
    def from_directory(cls, directory: Union[str, Path], patterns: Sequence[str] = ("*.jpg", "*.jpeg", "*.png")):
        directory = Path(directory)
        paths: List[Path] = []
        for pattern in patterns:
            paths.extend(directory.glob(pattern))
        return cls(sorted(paths))

    def __enter__(self) -> "SequenceFrameSource":
        self.opened = True
        self._position = 0
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.opened = False

    def read(self) -> np.ndarray:
        if not self.opened:
            raise CameraError("Frame source is not open")
        if self._position >= len(self._frames):
            if not self._loop or not self._frames:
                raise CameraError("No more frames")
            self._position = 0
        item = self._frames[self._position]
        self._position += 1
        self.reads += 1
        return self._load(item)

    @staticmethod
    def _load(item: Union[np.ndarray, str, Path]) -> np.ndarray:
        if isinstance(item, np.ndarray):
            return item
        frame: Optional[np.ndarray] = cv2.imread(str(item))
        if frame is None:
            raise CameraError(f"Unable to read image {item}")
        return frame


def open_frame_source(camera_index: int = 0, width: int = 640, height: int = 480,
                      frames_dir: Optional[Union[str, Path]] = None) -> FrameSource:
    """Camera source by default, or replayed still images when ``frames_dir`` is given."""
    if frames_dir:
        return SequenceFrameSource.from_directory(frames_dir)
    return CameraFrameSource(CameraManager(index=camera_index, width=width, height=height))
