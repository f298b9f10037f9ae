from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .errors import MalformedOutput
from .nms import nms
from .types import Detection


logger = logging.getLogger(__name__)

NUM_BBOX_ATTRS = 4
TASKS = ("detect", "segment", "pose")


@dataclass(frozen=True)
class DecodeConfig:
    """
    Row layout of the raw output, per candidate column:

    - detect:  [cx, cy, w, h, class_scores...]
    - segment: [cx, cy, w, h, class_scores..., mask_coefficients...]
    - pose:    [cx, cy, w, h, class_scores..., (kx, ky[, kv]) * num_keypoints]
    """

    num_classes: int = 80
    task: str = "detect"
    num_masks: int = 32
    num_keypoints: int = 17
    keypoint_dims: int = 3

    def __post_init__(self) -> None:
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        if self.task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got {self.task!r}")
        if self.num_masks < 0 or self.num_keypoints < 0:
            raise ValueError("num_masks and num_keypoints must be >= 0")
        if self.keypoint_dims not in (2, 3):
            raise ValueError("keypoint_dims must be 2 or 3")

    @property
    def num_extra_rows(self) -> int:
        if self.task == "segment":
            return self.num_masks
        if self.task == "pose":
            return self.num_keypoints * self.keypoint_dims
        return 0

    @property
    def expected_rows(self) -> int:
        return NUM_BBOX_ATTRS + self.num_classes + self.num_extra_rows


def _as_rows(raw) -> np.ndarray:
    p = np.asarray(raw, dtype=np.float64)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise MalformedOutput(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 2:
        raise MalformedOutput(f"Unsupported YOLO output shape: {p.shape}")
    return p


def decode_output(
    raw,
    score_threshold: float,
    x_ratio: float,
    y_ratio: float,
    cfg: DecodeConfig = DecodeConfig(),
) -> List[Detection]:
    """
    Decode a (1, 4 + C [+ extras], N) output into detections, in candidate order.

    A candidate's score is its best class score (lowest class index on ties).
    Candidates with score <= score_threshold are dropped. Boxes are scaled by
    the ratios and converted from center to top-left form; they are not
    clipped to the frame.
    """

    p = _as_rows(raw)
    if p.shape[0] != cfg.expected_rows:
        raise MalformedOutput(
            f"Expected {cfg.expected_rows} rows for task={cfg.task!r} with "
            f"{cfg.num_classes} classes, got output shape {p.shape}"
        )

    n = p.shape[1]
    if n == 0:
        return []

    class_end = NUM_BBOX_ATTRS + cfg.num_classes
    class_scores = p[NUM_BBOX_ATTRS:class_end]
    # NaN scores count as 0 so they never win a class or pass the threshold.
    class_scores = np.where(np.isnan(class_scores), 0.0, class_scores)
    class_ids = np.argmax(class_scores, axis=0)
    max_scores = class_scores[class_ids, np.arange(n)]

    # Scores start from 0, so non-positive maxima never pass.
    idx = np.nonzero((max_scores > 0.0) & (max_scores > score_threshold))[0]
    if idx.size == 0:
        return []

    w = p[2, idx] * x_ratio
    h = p[3, idx] * y_ratio
    x = p[0, idx] * x_ratio - 0.5 * w
    y = p[1, idx] * y_ratio - 0.5 * h

    masks: Optional[np.ndarray] = None
    keypoints: Optional[np.ndarray] = None
    if cfg.task == "segment":
        masks = p[class_end:, idx].T
    elif cfg.task == "pose":
        kp = p[class_end:, idx].reshape(cfg.num_keypoints, cfg.keypoint_dims, idx.size)
        kp = np.transpose(kp, (2, 0, 1)).copy()
        kp[:, :, 0] *= x_ratio
        kp[:, :, 1] *= y_ratio
        keypoints = kp

    detections = []
    for k, i in enumerate(idx):
        detections.append(
            Detection(
                bbox=(float(x[k]), float(y[k]), float(w[k]), float(h[k])),
                class_index=int(class_ids[i]),
                score=float(max_scores[i]),
                keypoints=None if keypoints is None else tuple(map(tuple, keypoints[k].tolist())),
                mask_weights=None if masks is None else tuple(masks[k].tolist()),
            )
        )

    logger.debug("Decoded %d/%d candidates above score %.3f", len(detections), n, score_threshold)
    return detections


@dataclass(frozen=True)
class YoloPostConfig:
    """
    Post-processing knobs for one model.
    """

    score_threshold: float = 0.45
    iou_threshold: float = 0.35
    # None keeps every survivor.
    max_detections: Optional[int] = None
    # If False, skip NMS and only keep the top `max_detections` by score.
    apply_nms: bool = True
    # If False, runs per-class NMS then merges results by score.
    class_agnostic_nms: bool = True
    decode: DecodeConfig = field(default_factory=DecodeConfig)


class YoloPostprocessor:
    """
    Decode + NMS for raw outputs shaped (1, 4 + C [+ extras], N).
    """

    def __init__(self, cfg: YoloPostConfig):
        self.cfg = cfg

    def process(self, preds, ratio: Tuple[float, float] = (1.0, 1.0)) -> List[Detection]:
        """
        Convert raw model output into filtered detections in overlay coordinates.

        Args:
            preds: raw output for a single image
            ratio: (x_ratio, y_ratio) from the resize plan
        """

        x_ratio, y_ratio = ratio
        candidates = decode_output(preds, self.cfg.score_threshold, x_ratio, y_ratio, self.cfg.decode)
        if not candidates:
            return []

        if self.cfg.apply_nms:
            keep = nms(
                candidates,
                self.cfg.iou_threshold,
                max_detections=self.cfg.max_detections,
                class_agnostic=self.cfg.class_agnostic_nms,
            )
        else:
            keep = self._select_topk(candidates)
        return [candidates[i] for i in keep]

    def _select_topk(self, candidates: List[Detection]) -> List[int]:
        scores = np.array([d.score for d in candidates], dtype=np.float64)
        order = np.argsort(-scores, kind="stable")
        if self.cfg.max_detections is not None:
            order = order[: self.cfg.max_detections]
        return order.tolist()
