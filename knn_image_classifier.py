"""
knn_image_classifier.py
-----------------------
k-nearest-neighbour image classification on top of ImageEmbedder features.

Pipeline
--------
1. (Once) Load the pre-trained backbone with load().
2. add_image(): embed a frame and store it as an exemplar of a class.
3. predict_class(): embed a frame, take the cosine similarity to every
   exemplar, keep the top-k and let them vote. Confidence of a class is its
   share of the k votes.

Usage
-----
    knn = KNNImageClassifier(num_classes=3, topk=10)
    knn.load()
    knn.add_image(bgr, 0)
    pred = knn.predict_class(bgr)
    print(pred)

CLI quick-test:
    python knn_image_classifier.py --train a.jpg:0 b.jpg:1 --query c.jpg
"""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, field

import numpy as np

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

NUM_CLASSES = 3
TOPK        = 10


class ClassifierNotLoadedError(RuntimeError):
    """Raised when frames are submitted before load() has built the embedder."""


# ---------------------------------------------------------------------------
# Data class for results
# ---------------------------------------------------------------------------

@dataclass
class Prediction:
    class_index: int                                   # -1 when there are no exemplars
    confidences: list[float] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        """Confidence of the predicted class (0.0 when nothing was predicted)."""
        if self.class_index < 0:
            return 0.0
        return self.confidences[self.class_index]

    def __repr__(self) -> str:
        confs = ", ".join(f"{c:.0%}" for c in self.confidences)
        return f"Prediction(class_index={self.class_index}, confidences=[{confs}])"


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class KNNImageClassifier:
    """
    Stores exemplar embeddings per class and answers top-k vote queries.

    Parameters
    ----------
    num_classes : number of class slots
    topk        : neighbours consulted per prediction (capped by exemplar count)
    embedder    : object with embed_batch_bgr(list[np.ndarray]) -> (B, D);
                  built by load() when omitted
    model_name  : timm backbone used by load()
    device      : 'cuda' or 'cpu' for load()
    """

    def __init__(
        self,
        num_classes: int        = NUM_CLASSES,
        topk:        int        = TOPK,
        embedder                = None,
        model_name:  str | None = None,
        device:      str | None = None,
    ):
        if num_classes < 1:
            raise ValueError(f"num_classes must be >= 1, got {num_classes}")
        if topk < 1:
            raise ValueError(f"topk must be >= 1, got {topk}")

        self.num_classes = num_classes
        self.topk        = topk
        self.embedder    = embedder
        self.model_name  = model_name
        self.device      = device

        self._embeddings: list[np.ndarray] = []
        self._labels:     list[int]        = []
        self._matrix: np.ndarray | None    = None   # (N, D), rebuilt lazily
        self._counts = [0] * num_classes

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self.embedder is not None

    def load(self) -> None:
        """Build the embedding backbone (downloads weights on first run)."""
        if self.embedder is not None:
            return
        from image_embedder import ImageEmbedder, MODEL_NAME

        self.embedder = ImageEmbedder(
            model_name=self.model_name or MODEL_NAME,
            device=self.device,
        )

    def _embed(self, frame: np.ndarray) -> np.ndarray:
        if self.embedder is None:
            raise ClassifierNotLoadedError("call load() before submitting frames")
        return np.asarray(self.embedder.embed_batch_bgr([frame])[0], dtype=np.float32)

    def _check_class(self, class_index: int) -> None:
        if not 0 <= class_index < self.num_classes:
            raise ValueError(
                f"class_index must be in [0, {self.num_classes - 1}], got {class_index}"
            )

    # ------------------------------------------------------------------
    # Exemplars
    # ------------------------------------------------------------------

    def add_image(self, frame: np.ndarray, class_index: int) -> None:
        """Embed *frame* and store it as an exemplar of *class_index*."""
        self._check_class(class_index)
        emb = self._embed(frame)
        norm = np.linalg.norm(emb)
        if norm > 0:
            emb = emb / norm
        self._embeddings.append(emb)
        self._labels.append(class_index)
        self._counts[class_index] += 1
        self._matrix = None

    def get_class_example_count(self) -> list[int]:
        return list(self._counts)

    @property
    def total_examples(self) -> int:
        return len(self._labels)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict_class(self, frame: np.ndarray) -> Prediction:
        """
        Vote among the k most similar exemplars.

        Returns
        -------
        Prediction with one confidence per class (votes / k). With no
        exemplars the class index is -1 and every confidence is 0.
        """
        if self.embedder is None:
            raise ClassifierNotLoadedError("call load() before submitting frames")
        if not self._labels:
            return Prediction(-1, [0.0] * self.num_classes)

        query = self._embed(frame)
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        if self._matrix is None:
            self._matrix = np.stack(self._embeddings, axis=0)
        similarities = self._matrix @ query                     # (N,)

        k = min(self.topk, len(similarities))
        top_idx = np.argpartition(-similarities, k - 1)[:k]

        labels = np.asarray(self._labels)[top_idx]
        votes = np.bincount(labels, minlength=self.num_classes)
        confidences = (votes / k).tolist()
        return Prediction(int(votes.argmax()), confidences)


# ---------------------------------------------------------------------------
# CLI quick-test
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import cv2

    parser = argparse.ArgumentParser(description="Train and query the KNN classifier on image files.")
    parser.add_argument("--train", nargs="+", required=True,
                        help="Exemplars as path:class_index")
    parser.add_argument("--query", required=True, help="Image to classify")
    parser.add_argument("--topk",  type=int, default=TOPK)
    args = parser.parse_args()

    knn = KNNImageClassifier(topk=args.topk)
    knn.load()

    for item in args.train:
        path, _, idx = item.rpartition(":")
        bgr = cv2.imread(path)
        if bgr is None:
            raise FileNotFoundError(f"Cannot load image: {path}")
        knn.add_image(bgr, int(idx))
    print(f"Exemplars per class: {knn.get_class_example_count()}")

    query_bgr = cv2.imread(args.query)
    if query_bgr is None:
        raise FileNotFoundError(f"Cannot load image: {args.query}")

    t0 = time.perf_counter()
    pred = knn.predict_class(query_bgr)
    elapsed = time.perf_counter() - t0
    print(f"{pred}  (query time: {elapsed*1000:.2f} ms)")
