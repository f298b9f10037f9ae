from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .types import Detection


def box_iou(box1: Sequence[float], box2: Sequence[float]) -> float:
    """
    IoU of two (x, y, w, h) boxes. Disjoint boxes give exactly 0.0.
    """

    x1, y1, w1, h1 = box1
    x2, y2, w2, h2 = box2

    if x1 > x2 + w2 or x2 > x1 + w1 or y1 > y2 + h2 or y2 > y1 + h1:
        return 0.0

    inter_w = min(x1 + w1, x2 + w2) - max(x1, x2)
    inter_h = min(y1 + h1, y2 + h2) - max(y1, y2)
    inter = inter_w * inter_h
    union = w1 * h1 + w2 * h2 - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def _iou_one_to_many(box: np.ndarray, area: float, others: np.ndarray, other_areas: np.ndarray) -> np.ndarray:
    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[0] + box[2], others[:, 0] + others[:, 2])
    yy2 = np.minimum(box[1] + box[3], others[:, 1] + others[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    union = area + other_areas - inter
    return np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)


def nms_boxes(
    boxes: np.ndarray,
    scores: np.ndarray,
    iou_threshold: float,
    max_detections: Optional[int] = None,
) -> np.ndarray:
    """
    Greedy NMS over (N, 4) xywh boxes. Returns kept indices in visiting order.

    Candidates are visited by descending score; equal scores keep input order.
    A candidate is suppressed only when its IoU with a kept box is strictly
    greater than `iou_threshold`.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)
    if scores.shape[0] != boxes.shape[0]:
        raise ValueError(f"Got {boxes.shape[0]} boxes but {scores.shape[0]} scores")

    areas = boxes[:, 2] * boxes[:, 3]
    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if max_detections is not None and len(keep) >= max_detections:
            break
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        iou = _iou_one_to_many(boxes[i], areas[i], boxes[rest], areas[rest])
        order = rest[~(iou > iou_threshold)]

    return np.array(keep, dtype=np.int64)


def nms(
    detections: Sequence[Detection],
    iou_threshold: float,
    max_detections: Optional[int] = None,
    class_agnostic: bool = True,
) -> List[int]:
    """
    Indices of `detections` that survive NMS, highest score first.

    With class_agnostic=False boxes only suppress boxes of the same class and
    the per-class survivors are merged by score.
    """

    if not detections:
        return []

    boxes = np.array([d.bbox for d in detections], dtype=np.float64)
    scores = np.array([d.score for d in detections], dtype=np.float64)

    if class_agnostic:
        return nms_boxes(boxes, scores, iou_threshold, max_detections).tolist()

    class_ids = np.array([d.class_index for d in detections], dtype=np.int64)
    kept: List[int] = []
    for cls in np.unique(class_ids):
        idx = np.where(class_ids == cls)[0]
        keep_local = nms_boxes(boxes[idx], scores[idx], iou_threshold, max_detections)
        kept.extend(idx[keep_local].tolist())

    if not kept:
        return []

    kept_arr = np.array(kept, dtype=np.int64)
    kept_arr = kept_arr[np.argsort(-scores[kept_arr], kind="stable")]
    if max_detections is not None:
        kept_arr = kept_arr[:max_detections]
    return kept_arr.tolist()
