"""
webcam_source.py
----------------
Live camera frames via OpenCV for the local (non-browser) demo.
"""

from __future__ import annotations

import cv2
import numpy as np

DEFAULT_CAMERA = 0
FRAME_WIDTH    = 640
FRAME_HEIGHT   = 480


class CaptureError(RuntimeError):
    """Raised when the camera cannot be opened or stops delivering frames."""


class WebcamSource:
    """
    Wrapper around cv2.VideoCapture that yields BGR frames.

    with WebcamSource(0) as cam:
        for frame in cam:
            ...
    """

    def __init__(self, camera=DEFAULT_CAMERA,
                 width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT):
        self.camera = camera
        self.width  = width
        self.height = height
        self.capture: cv2.VideoCapture | None = None

    def open(self) -> None:
        if self.capture is not None and self.capture.isOpened():
            return
        self.capture = cv2.VideoCapture(self.camera)
        if not self.capture.isOpened():
            self.capture = None
            raise CaptureError(f"Could not open camera: {self.camera}")
        self.capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        print(f"[WebcamSource] Opened camera {self.camera}")

    @property
    def is_open(self) -> bool:
        return self.capture is not None and self.capture.isOpened()

    def read(self) -> np.ndarray:
        """Return the next frame, raising CaptureError if none is available."""
        if not self.is_open:
            raise CaptureError("Camera is not open")
        success, frame = self.capture.read()
        if not success or frame is None:
            raise CaptureError(f"Failed to read a frame from camera {self.camera}")
        return frame

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        """Return the next frame, or raise StopIteration when the stream ends."""
        try:
            return self.read()
        except CaptureError:
            raise StopIteration

    def release(self) -> None:
        if self.capture is not None:
            self.capture.release()
            self.capture = None

    def __enter__(self) -> "WebcamSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.release()
