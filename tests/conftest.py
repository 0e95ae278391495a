"""
Pytest configuration and shared fixtures for the KNN webcam demo tests.
"""

import numpy as np
import pytest

from demo_controller import DemoController
from knn_image_classifier import KNNImageClassifier


class FakeEmbedder:
    """Embeds a frame as its mean BGR colour, so solid colours are orthogonal."""

    def __init__(self):
        self.calls = 0

    def embed_batch_bgr(self, bgrs):
        self.calls += len(bgrs)
        return np.stack([b.reshape(-1, 3).mean(axis=0) for b in bgrs]).astype(np.float32)


def solid(bgr, size=16):
    frame = np.zeros((size, size, 3), dtype=np.uint8)
    frame[:] = bgr
    return frame


@pytest.fixture
def red():
    return solid((0, 0, 255))


@pytest.fixture
def green():
    return solid((0, 255, 0))


@pytest.fixture
def blue():
    return solid((255, 0, 0))


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def knn(embedder):
    return KNNImageClassifier(num_classes=3, topk=10, embedder=embedder)


@pytest.fixture
def controller(knn):
    """A started controller with the video playing."""
    ctrl = DemoController(knn)
    ctrl.start()
    ctrl.set_video_playing(True)
    return ctrl
