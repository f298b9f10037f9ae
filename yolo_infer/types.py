from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from .metadata import class_name


class FrameOrigin(str, Enum):
    IMAGE = "image"
    CAMERA = "camera"
    VIDEO = "video"


@dataclass(frozen=True, eq=False)
class Frame:
    """
    One captured RGBA frame, shaped (H, W, 4) uint8.

    The pipeline only reads `pixels`; the caller keeps ownership of the buffer.
    """

    pixels: np.ndarray
    origin: FrameOrigin = FrameOrigin.IMAGE

    def __post_init__(self) -> None:
        if self.pixels is None or not hasattr(self.pixels, "shape"):
            raise TypeError("pixels must be a NumPy array (RGBA).")
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Expected pixel buffer shape (H, W, 4), got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {self.pixels.dtype}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @classmethod
    def from_rgb(cls, image_rgb: np.ndarray, origin: FrameOrigin = FrameOrigin.IMAGE) -> "Frame":
        if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_rgb, 'shape', None)}")
        if image_rgb.dtype != np.uint8:
            raise ValueError(f"Expected uint8 image, got {image_rgb.dtype}")
        alpha = np.full(image_rgb.shape[:2] + (1,), 255, dtype=np.uint8)
        return cls(np.concatenate([image_rgb, alpha], axis=2), origin)

    @classmethod
    def from_bgr(cls, image_bgr: np.ndarray, origin: FrameOrigin = FrameOrigin.IMAGE) -> "Frame":
        """
        Wrap an OpenCV-style BGR image (e.g. from `cv2.imread`).
        """

        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
        return cls.from_rgb(image_bgr[:, :, ::-1], origin)


Keypoint = Tuple[float, ...]


@dataclass(frozen=True)
class Detection:
    """
    Single detection in overlay (original image) pixel coordinates.

    bbox is (x, y, w, h) with (x, y) the top-left corner.
    """

    bbox: Tuple[float, float, float, float]
    class_index: int
    score: float
    keypoints: Optional[Tuple[Keypoint, ...]] = None
    mask_weights: Optional[Tuple[float, ...]] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        x, y, w, h = self.bbox
        return x, y, x + w, y + h

    def to_dict(self, class_names: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "bbox": list(self.bbox),
            "class_index": self.class_index,
            "score": self.score,
        }
        if class_names is not None:
            out["label"] = class_name(class_names, self.class_index)
        if self.keypoints is not None:
            out["keypoints"] = [list(kp) for kp in self.keypoints]
        if self.mask_weights is not None:
            out["mask_weights"] = list(self.mask_weights)
        return out
