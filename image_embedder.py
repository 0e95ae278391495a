"""
image_embedder.py

Image embeddings for the live KNN demo using a pre-trained timm backbone.

Takes a BGR image (OpenCV, any size) and returns an L2-normalised float32
feature vector by:
  1. Stretch-resizing to IMAGE_SIZE x IMAGE_SIZE
  2. Running it through the backbone with its classifier head removed
  3. Dividing by the vector norm so a dot product is a cosine similarity
"""

from __future__ import annotations

import cv2
import numpy as np
import torch
import torch.nn as nn
import timm


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

IMAGE_SIZE = 224                        # native resolution of the default backbone
MODEL_NAME = "vit_small_patch16_224"

# ImageNet normalisation constants (float32, channel-first friendly)
_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
_STD  = np.array([0.229, 0.224, 0.225], dtype=np.float32)


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

class ImageEmbedder(nn.Module):
    """
    Pre-trained backbone that outputs one unit-length embedding per BGR image.

    embedder = ImageEmbedder()
    vec      = embedder.embed_bgr(bgr_array)          # (D,) float32
    batch    = embedder.embed_batch_bgr([bgr, bgr])   # (B, D) float32
    """

    def __init__(
        self,
        model_name: str = MODEL_NAME,
        pretrained: bool = True,
        device: str | None = None,
        image_size: int = IMAGE_SIZE,
    ):
        super().__init__()

        if device is None:
            device = "cuda" if torch.cuda.is_available() else "cpu"
        self.device = torch.device(device)
        self.image_size = image_size

        self.backbone = timm.create_model(
            model_name,
            pretrained=pretrained,
            num_classes=0,      # remove classifier head -> pooled features
        )
        self.backbone.eval()
        self.backbone.to(device=self.device, dtype=torch.float32)
        print(f"[ImageEmbedder] Loaded {model_name} on {self.device}")

    def _bgr_to_tensor(self, bgrs: list[np.ndarray]) -> torch.Tensor:
        """
        Convert a list of BGR uint8 arrays to a normalised (B, 3, H, W)
        float32 tensor on self.device.
        """
        size = self.image_size
        frames = []
        for bgr in bgrs:
            if bgr.shape[0] != size or bgr.shape[1] != size:
                bgr = cv2.resize(bgr, (size, size), interpolation=cv2.INTER_LINEAR)
            rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB).astype(np.float32) / 255.0
            rgb = (rgb - _MEAN) / _STD
            frames.append(rgb.transpose(2, 0, 1))   # (3, H, W)
        batch = np.stack(frames, axis=0)            # (B, 3, H, W)
        return torch.from_numpy(batch).to(device=self.device)

    @torch.no_grad()
    def embed_batch_bgr(self, bgrs: list[np.ndarray]) -> np.ndarray:
        """
        Return L2-normalised embeddings for a batch of BGR images.
        Shape: (B, D)
        """
        x = self._bgr_to_tensor(bgrs)
        emb = self.backbone(x).float()
        emb = torch.nn.functional.normalize(emb, dim=1)
        return emb.cpu().numpy()

    def embed_bgr(self, bgr: np.ndarray) -> np.ndarray:
        """Embed a single BGR image. Returns float32 array of shape (D,)."""
        return self.embed_batch_bgr([bgr])[0]


# ---------------------------------------------------------------------------
# Quick sanity-check
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import time

    print(f"Loading {MODEL_NAME} …")
    embedder = ImageEmbedder()
    print(f"  device : {embedder.device}")
    print(f"  params : {sum(p.numel() for p in embedder.backbone.parameters()):,}")

    dummy = np.random.randint(0, 256, (480, 640, 3), dtype=np.uint8)

    t0 = time.perf_counter()
    vec = embedder.embed_bgr(dummy)
    elapsed = time.perf_counter() - t0
    print(f"\nSingle embedding:")
    print(f"  shape   : {vec.shape}  dtype={vec.dtype}")
    print(f"  norm    : {np.linalg.norm(vec):.4f}")
    print(f"  latency : {elapsed*1000:.1f} ms")
