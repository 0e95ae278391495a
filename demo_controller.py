"""
demo_controller.py
------------------
Frame-loop state for the phone / pen / peace-sign demo.

The controller owns everything the UI needs between frames: which button is
held (the training selector), whether the video is playing, whether the loop
is running, and the KNN classifier. Both front ends (the Flask page and the
local OpenCV window) call step() once per frame and render the FrameUpdate
it returns.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

import numpy as np

from knn_image_classifier import KNNImageClassifier, Prediction, TOPK

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

CONFIDENCE_THRESHOLD = 0.7
NOT_TRAINING         = -1

NO_EXAMPLES_TEXT = " No examples added"
UNSURE_TEXT      = "I'm not sure what that is..."


@dataclass(frozen=True)
class ClassLabel:
    index: int
    name:  str
    icon:  str


CLASS_LABELS = (
    ClassLabel(0, "phone",      "📱"),
    ClassLabel(1, "pen",        "🖊️"),
    ClassLabel(2, "peace sign", "✌️"),
)
NUM_CLASSES = len(CLASS_LABELS)


@dataclass
class FrameUpdate:
    counts:          list[int]
    info_texts:      list[str]
    prediction_text: str | None = None
    prediction:      Prediction | None = None

    def to_dict(self) -> dict:
        out = {
            "counts":          self.counts,
            "info_texts":      self.info_texts,
            "prediction_text": self.prediction_text,
            "class_index":     None,
            "confidences":     None,
        }
        if self.prediction is not None:
            out["class_index"] = self.prediction.class_index
            out["confidences"] = [round(c, 4) for c in self.prediction.confidences]
        return out


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def info_text(count: int) -> str:
    """Per-class status shown next to each button."""
    if count > 0:
        return f" {count} examples"
    return NO_EXAMPLES_TEXT


def prediction_text(prediction: Prediction,
                    labels=CLASS_LABELS,
                    threshold: float = CONFIDENCE_THRESHOLD) -> str:
    if prediction.class_index >= 0 and prediction.confidence > threshold:
        return "That looks like a " + labels[prediction.class_index].name
    return UNSURE_TEXT


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class DemoController:
    """
    Holds the demo's mutable state and runs one frame-loop iteration per
    step() call. A lock keeps at most one step (or button change) in flight.
    """

    def __init__(
        self,
        classifier: KNNImageClassifier | None = None,
        labels=CLASS_LABELS,
        threshold: float = CONFIDENCE_THRESHOLD,
    ):
        self.labels     = tuple(labels)
        self.threshold  = threshold
        self.classifier = classifier or KNNImageClassifier(len(self.labels), TOPK)

        self.training      = NOT_TRAINING
        self.video_playing = False
        self.running       = False
        self._lock = threading.Lock()
        self._info_texts = [NO_EXAMPLES_TEXT] * len(self.labels)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Load the classifier if needed and let step() do work."""
        playing = self.video_playing
        if self.running:
            self.stop()
        self.classifier.load()
        # a restart resumes the video that was playing
        self.video_playing = playing
        self.running = True
        print("[DemoController] Frame loop started.")

    def stop(self) -> None:
        self.running = False
        self.video_playing = False
        print("[DemoController] Frame loop stopped.")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def press(self, class_index: int) -> None:
        if not 0 <= class_index < len(self.labels):
            raise ValueError(
                f"class_index must be in [0, {len(self.labels) - 1}], got {class_index}"
            )
        with self._lock:
            self.training = class_index

    def release(self) -> None:
        with self._lock:
            self.training = NOT_TRAINING

    def set_video_playing(self, playing: bool) -> None:
        self.video_playing = bool(playing)

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    @property
    def info_texts(self) -> list[str]:
        return list(self._info_texts)

    def status(self) -> dict:
        return {
            "running":       self.running,
            "video_playing": self.video_playing,
            "training":      self.training,
            "counts":        self.classifier.get_class_example_count(),
            "info_texts":    self.info_texts,
        }

    def step(self, frame: np.ndarray) -> FrameUpdate | None:
        """
        One frame-loop iteration. Returns None when the loop is stopped or
        the video is not playing, otherwise the texts to render.
        """
        if not (self.running and self.video_playing):
            return None

        with self._lock:
            if self.training != NOT_TRAINING:
                self.classifier.add_image(frame, self.training)

            counts = self.classifier.get_class_example_count()
            if sum(counts) == 0:
                return FrameUpdate(counts, self.info_texts)

            prediction = self.classifier.predict_class(frame)
            for i, n in enumerate(counts):
                if n > 0:
                    self._info_texts[i] = info_text(n)
            text = prediction_text(prediction, self.labels, self.threshold)
            return FrameUpdate(counts, self.info_texts, text, prediction)
