"""
webcam_demo/app.py
Minimal Flask server for the live phone / pen / peace-sign KNN demo.

The browser captures the webcam and posts one JPEG per animation frame to
/frame; the server trains / predicts with the KNN classifier and returns the
texts to show. Holding a button on the page posts /train/<i>, letting go
posts /release.

Usage:
    python webcam_demo/app.py
    python webcam_demo/app.py --model mobilenetv3_large_100 --topk 10
    # then open http://localhost:5000 in your browser
"""

import sys
from pathlib import Path

# Allow importing demo_controller / knn_image_classifier from the parent directory
REPO = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO))

import argparse
import numpy as np
import cv2
from flask import Flask, request, jsonify, send_from_directory

from demo_controller import DemoController, CLASS_LABELS
from knn_image_classifier import KNNImageClassifier, TOPK

STATIC = Path(__file__).parent / "static"


def _decode_jpeg(data: bytes):
    arr = np.frombuffer(data, dtype=np.uint8)
    if arr.size == 0:
        return None
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


# -- App ----------------------------------------------------------------------

def create_app(controller: DemoController) -> Flask:
    app = Flask(__name__, static_folder=str(STATIC))
    app.config["CONTROLLER"] = controller

    @app.get("/")
    def index():
        return send_from_directory(str(STATIC), "index.html")

    @app.get("/classes")
    def classes():
        return jsonify({
            "classes": [
                {"index": c.index, "name": c.name, "icon": c.icon}
                for c in controller.labels
            ],
            "threshold": controller.threshold,
        })

    @app.get("/status")
    def status():
        return jsonify(controller.status())

    @app.post("/train/<int:class_index>")
    def train(class_index):
        try:
            controller.press(class_index)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"training": controller.training})

    # a negative index does not match <int:...>, so handle it explicitly
    @app.post("/train/<path:raw>")
    def train_invalid(raw):
        return jsonify({"error": f"invalid class index: {raw}"}), 400

    @app.post("/release")
    def release():
        controller.release()
        return jsonify({"training": controller.training})

    @app.post("/video")
    def video():
        body = request.get_json(silent=True) or {}
        if not isinstance(body.get("playing"), bool):
            return jsonify({"error": "'playing' must be true or false"}), 400
        controller.set_video_playing(body["playing"])
        return jsonify({"video_playing": controller.video_playing})

    @app.post("/frame")
    def frame():
        """
        Accepts a JPEG in the request body.
        Returns JSON:
        {
          "counts":          [n0, n1, n2],
          "info_texts":      [" 5 examples", " No examples added", ...],
          "prediction_text": "That looks like a phone" | null,
          "class_index":     0 | null,
          "confidences":     [0.9, 0.1, 0.0] | null
        }
        or {"skipped": true} while the loop is stopped or the video paused.
        """
        img = _decode_jpeg(request.get_data())
        if img is None:
            return jsonify({"error": "could not decode image"}), 400

        update = controller.step(img)
        if update is None:
            return jsonify({"skipped": True})
        return jsonify(update.to_dict())

    return app


# -- Main ---------------------------------------------------------------------

def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--host",   default="0.0.0.0")
    p.add_argument("--port",   type=int, default=5000)
    p.add_argument("--model",  default=None, help="timm backbone name")
    p.add_argument("--topk",   type=int, default=TOPK)
    p.add_argument("--device", default=None, help="'cuda' or 'cpu'")
    args, _ = p.parse_known_args(argv)

    knn = KNNImageClassifier(len(CLASS_LABELS), args.topk,
                             model_name=args.model, device=args.device)
    controller = DemoController(knn)

    print("Loading KNN image classifier (downloads weights on first run) ...")
    try:
        controller.start()
    except Exception as e:
        sys.exit(f"Could not load the classifier: {e}")
    print("Classifier ready.")

    app = create_app(controller)
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
