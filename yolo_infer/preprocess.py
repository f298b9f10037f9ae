from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import cv2
import numpy as np

from .errors import InvalidDimensions
from .letterbox import ResizePlan
from .types import Frame


def _resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = image.shape[:2]
    if (w, h) == (width, height):
        return image
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)


def normalize(frame: Frame, plan: ResizePlan) -> np.ndarray:
    """
    Turn an RGBA frame into the network input blob.

    RGBA -> RGB, bilinear resize to the stride-aligned target, optional
    bottom/right zero pad + resize to the model size, scale to [0, 1],
    HWC -> CHW, add batch. Returns float32 (1, 3, H, W), C-contiguous.
    """

    if (frame.width, frame.height) != (plan.source_width, plan.source_height):
        raise InvalidDimensions(
            f"Plan was built for {plan.source_width}x{plan.source_height}, "
            f"frame is {frame.width}x{frame.height}"
        )

    rgb = cv2.cvtColor(np.ascontiguousarray(frame.pixels), cv2.COLOR_RGBA2RGB)
    resized = _resize(rgb, plan.target_width, plan.target_height)
    del rgb

    if plan.pad_right or plan.pad_bottom:
        squared = cv2.copyMakeBorder(
            resized,
            0,
            plan.pad_bottom,
            0,
            plan.pad_right,
            cv2.BORDER_CONSTANT,
            value=(0, 0, 0),
        )
        del resized
        resized = squared

    resized = _resize(resized, plan.input_width, plan.input_height)

    blob = resized.astype(np.float32) / 255.0
    del resized
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
    return blob


@contextmanager
def input_tensor(frame: Frame, plan: ResizePlan) -> Iterator[np.ndarray]:
    """
    Scoped variant of `normalize`: the blob reference is dropped when the block exits,
    including when inference raises.
    """

    blob = normalize(frame, plan)
    try:
        yield blob
    finally:
        del blob
