import numpy as np
import pytest

from facecore.vision.camera_manager import CameraError, CameraManager
from facecore.vision.frame_source import CameraFrameSource, SequenceFrameSource, open_frame_source


class FakeCapture:
    def __init__(self, frames=None):
        self.frames = list(frames or [])
        self.opened = True
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def get(self, prop):
        return self.props.get(prop, 0)

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True
        self.opened = False


class FakeProvider:
    def __init__(self, capture):
        self.capture = capture
        self.opened = []

    def open(self, index):
        self.opened.append(index)
        return self.capture


def gradient_frame():
    frame = np.zeros((2, 3, 3), dtype=np.uint8)
    frame[:, :, 0] = [[0, 1, 2], [0, 1, 2]]
    return frame


def test_camera_is_released_on_exit():
    capture = FakeCapture([gradient_frame()])
    camera = CameraManager(index=2, provider=FakeProvider(capture), warmup_frames=0)
    with camera as cam:
        assert cam.is_open()
        frame = cam.read()
    assert capture.released
    assert not camera.is_open()
    # mirrored horizontally
    assert frame[0, :, 0].tolist() == [2, 1, 0]


def test_camera_released_when_body_raises():
    capture = FakeCapture([])
    source = CameraFrameSource(CameraManager(provider=FakeProvider(capture), warmup_frames=0))
    with pytest.raises(CameraError):
        with source:
            source.read()
    assert capture.released


def test_read_before_start():
    with pytest.raises(CameraError):
        CameraManager(provider=FakeProvider(FakeCapture())).read()


def test_sequence_source(tmp_path):
    import cv2

    frame = np.full((4, 4, 3), 50, dtype=np.uint8)
    cv2.imwrite(str(tmp_path / 'b.png'), frame)
    cv2.imwrite(str(tmp_path / 'a.png'), frame)
    source = open_frame_source(frames_dir=tmp_path)
    assert isinstance(source, SequenceFrameSource)

    with pytest.raises(CameraError):
        source.read()
    with source:
        assert source.read().shape == (4, 4, 3)
        assert source.read().shape == (4, 4, 3)
        with pytest.raises(CameraError):
            source.read()
    assert source.reads == 2


def test_looping_sequence_source():
    source = SequenceFrameSource([gradient_frame()], loop=True)
    with source:
        for _ in range(3):
            source.read()
    assert source.reads == 3
