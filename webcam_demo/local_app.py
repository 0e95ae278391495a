"""
webcam_demo/local_app.py
Run the phone / pen / peace-sign demo in an OpenCV window, no browser needed.

Hold 1 / 2 / 3 to add frames of phone / pen / peace sign; q or Esc quits.
The keyboard's auto-repeat keeps a class selected while its key is held.

Usage:
    python webcam_demo/local_app.py
    python webcam_demo/local_app.py --camera 1 --model mobilenetv3_large_100
"""

import sys
import time
from pathlib import Path

REPO = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO))

import argparse
import cv2

from demo_controller import DemoController, CLASS_LABELS
from knn_image_classifier import KNNImageClassifier, TOPK
from webcam_source import WebcamSource, CaptureError

WINDOW     = "Phone / Pen / Peace sign"
TRAIN_KEYS = {ord(str(c.index + 1)): c.index for c in CLASS_LABELS}
QUIT_KEYS  = {ord("q"), 27}
# A held key repeats only after the OS repeat delay (660 ms on X11 by default),
# then every ~30-40 ms. Until the first repeat a gap may be the delay; after it,
# a gap longer than a few repeat intervals means the key was let go.
FIRST_REPEAT_TIMEOUT = 0.8
REPEAT_TIMEOUT       = 0.1

FONT = cv2.FONT_HERSHEY_SIMPLEX


class KeyHold:
    """Turns OpenCV's per-frame key polling into press / release edges."""

    def __init__(self, first_timeout: float = FIRST_REPEAT_TIMEOUT,
                 repeat_timeout: float = REPEAT_TIMEOUT):
        self.first_timeout  = first_timeout
        self.repeat_timeout = repeat_timeout
        self.held      = None
        self._repeated = False
        self._last_at  = 0.0

    def update(self, key: int, now: float):
        """Return the class index currently held (or None)."""
        if key in TRAIN_KEYS:
            cls = TRAIN_KEYS[key]
            self._repeated = cls == self.held
            self.held = cls
            self._last_at = now
        elif self.held is not None:
            timeout = self.repeat_timeout if self._repeated else self.first_timeout
            if now - self._last_at > timeout:
                self.held = None
                self._repeated = False
        return self.held


def draw_overlay(frame, controller: DemoController, update):
    """Draw per-class counts and the prediction line onto *frame* in place."""
    y = 24
    for label, text in zip(controller.labels, controller.info_texts):
        active = controller.training == label.index
        color  = (0, 0, 255) if active else (230, 230, 230)
        cv2.putText(frame, f"[{label.index + 1}] {label.name}:{text}", (10, y),
                    FONT, 0.6, color, 2, cv2.LINE_AA)
        y += 26
    if update is not None and update.prediction_text is not None:
        h = frame.shape[0]
        cv2.putText(frame, update.prediction_text, (10, h - 16),
                    FONT, 0.7, (0, 255, 0), 2, cv2.LINE_AA)
    return frame


def run(controller: DemoController, source: WebcamSource) -> None:
    keys = KeyHold()
    last_update = None

    controller.set_video_playing(True)
    for frame in source:
        update = controller.step(frame)
        if update is not None and update.prediction_text is not None:
            last_update = update

        cv2.imshow(WINDOW, draw_overlay(frame, controller, last_update))
        key = cv2.waitKey(1) & 0xFF
        if key in QUIT_KEYS:
            break

        held = keys.update(key, time.monotonic())
        if held is None:
            controller.release()
        else:
            controller.press(held)

    controller.stop()


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--camera", type=int, default=0)
    p.add_argument("--model",  default=None, help="timm backbone name")
    p.add_argument("--topk",   type=int, default=TOPK)
    p.add_argument("--device", default=None, help="'cuda' or 'cpu'")
    args = p.parse_args(argv)

    knn = KNNImageClassifier(len(CLASS_LABELS), args.topk,
                             model_name=args.model, device=args.device)
    controller = DemoController(knn)

    print("Loading KNN image classifier (downloads weights on first run) ...")
    try:
        controller.start()
    except Exception as e:
        sys.exit(f"Could not load the classifier: {e}")

    print("Hold 1 / 2 / 3 to train phone / pen / peace sign. Press q to quit.")
    try:
        with WebcamSource(args.camera) as source:
            run(controller, source)
    except CaptureError as e:
        sys.exit(str(e))
    finally:
        cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
