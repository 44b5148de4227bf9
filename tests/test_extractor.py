import threading
import time

import numpy as np
import pytest

from facecore.inference.extractor import DlibDescriptorExtractor, ExtractorError, ModelRegistry

from conftest import textured_frame


class FakeFaceRecognition:
    """Stands in for the face_recognition module."""

    def __init__(self, locations):
        self.locations = locations
        self.encoded_with = None

    def face_locations(self, image, number_of_times_to_upsample=1, model='hog'):
        assert image.shape[2] == 3
        return self.locations

    def face_encodings(self, image, known_face_locations=None, num_jitters=1):
        self.encoded_with = known_face_locations
        return [np.full(128, 0.25)]

    def face_landmarks(self, image, face_locations=None):
        return [{'left_eye': [(100, 100), (110, 100)], 'right_eye': [(150, 100), (160, 100)]}]


def test_registry_loads_once_across_threads():
    calls = []

    def loader():
        calls.append(1)
        time.sleep(0.05)
        return object()

    registry = ModelRegistry(loader)
    results = []
    threads = [threading.Thread(target=lambda: results.append(registry.ensure_loaded())) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert registry.loaded
    assert len({id(result) for result in results}) == 1


def test_failed_load_is_retried():
    attempts = []

    def loader():
        attempts.append(1)
        if len(attempts) == 1:
            raise OSError('model file missing')
        return 'models'

    registry = ModelRegistry(loader)
    with pytest.raises(ExtractorError):
        registry.ensure_loaded()
    assert not registry.loaded
    assert registry.ensure_loaded() == 'models'
    assert len(attempts) == 2


def test_dlib_extractor_keeps_largest_face():
    small = (10, 60, 60, 10)       # top, right, bottom, left
    large = (100, 300, 300, 100)
    fake = FakeFaceRecognition([small, large])
    extractor = DlibDescriptorExtractor(registry=ModelRegistry(lambda: fake))

    detection = extractor.detect(textured_frame())

    assert fake.encoded_with == [large]
    assert detection.box == (100.0, 100.0, 200.0, 200.0)
    assert detection.center == (200.0, 200.0)
    assert detection.left_eye == [(100.0, 100.0), (110.0, 100.0)]
    assert detection.descriptor.shape == (128,)


def test_dlib_extractor_without_face():
    extractor = DlibDescriptorExtractor(registry=ModelRegistry(lambda: FakeFaceRecognition([])))
    assert extractor.detect(textured_frame()) is None


def test_dlib_extractor_surfaces_load_failure():
    def loader():
        raise ImportError('face_recognition is not installed')

    extractor = DlibDescriptorExtractor(registry=ModelRegistry(loader))
    with pytest.raises(ExtractorError):
        extractor.detect(textured_frame())
