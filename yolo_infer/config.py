from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .letterbox import DEFAULT_MODEL_SIZE, ResizeStrategy, parse_strategy
from .metadata import COCO_CLASSES
from .postprocess import TASKS, DecodeConfig, YoloPostConfig


IMGSZ_TYPES = ("dynamic", "zeroPad")


@dataclass(frozen=True)
class PipelineConfig:
    # Coordinate space of returned boxes as (width, height); None = frame size.
    overlay_size: Optional[Tuple[int, int]] = None
    imgsz_type: str = "dynamic"
    score_threshold: float = 0.45
    iou_threshold: float = 0.35
    # Only used for labelling downstream.
    classes: Tuple[str, ...] = field(default_factory=lambda: tuple(COCO_CLASSES))
    model_size: Tuple[int, int] = DEFAULT_MODEL_SIZE
    num_classes: int = 80
    task: str = "detect"
    class_agnostic_nms: bool = True
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if self.imgsz_type not in IMGSZ_TYPES:
            raise ValueError(f"imgsz_type must be one of {IMGSZ_TYPES}, got {self.imgsz_type!r}")
        if not 0.0 < self.score_threshold < 1.0:
            raise ValueError("score_threshold must be in (0, 1)")
        if not 0.0 < self.iou_threshold < 1.0:
            raise ValueError("iou_threshold must be in (0, 1)")
        if self.overlay_size is not None and (len(self.overlay_size) != 2 or min(self.overlay_size) <= 0):
            raise ValueError("overlay_size must be (width, height) with positive values")
        if len(self.model_size) != 2 or min(self.model_size) <= 0:
            raise ValueError("model_size must be (width, height) with positive values")
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        if self.task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got {self.task!r}")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 if provided")

    def strategy(self) -> ResizeStrategy:
        return parse_strategy(self.imgsz_type, self.model_size)

    def post_config(self) -> YoloPostConfig:
        return YoloPostConfig(
            score_threshold=self.score_threshold,
            iou_threshold=self.iou_threshold,
            max_detections=self.max_detections,
            class_agnostic_nms=self.class_agnostic_nms,
            decode=DecodeConfig(num_classes=self.num_classes, task=self.task),
        )


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_size(payload: Dict[str, Any], key: str) -> Tuple[int, int]:
    value = payload[key]
    if (
        not isinstance(value, list)
        or len(value) != 2
        or any(isinstance(v, bool) or not isinstance(v, int) for v in value)
    ):
        raise ValueError(f"{key} must be a [width, height] pair of integers")
    return int(value[0]), int(value[1])


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load a PipelineConfig from a JSON object. Missing keys keep their defaults.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "overlay_size",
        "imgsz_type",
        "score_threshold",
        "iou_threshold",
        "classes",
        "model_size",
        "num_classes",
        "task",
        "class_agnostic_nms",
        "max_detections",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    if payload.get("overlay_size") is not None:
        kwargs["overlay_size"] = _require_size(payload, "overlay_size")
    if "model_size" in payload:
        kwargs["model_size"] = _require_size(payload, "model_size")
    for key in ("score_threshold", "iou_threshold"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)
    if "num_classes" in payload:
        kwargs["num_classes"] = _require_int(payload, "num_classes")
    if payload.get("max_detections") is not None:
        kwargs["max_detections"] = _require_int(payload, "max_detections")
    for key in ("imgsz_type", "task"):
        if key in payload:
            if not isinstance(payload[key], str):
                raise ValueError(f"{key} must be a string")
            kwargs[key] = payload[key]
    if "class_agnostic_nms" in payload:
        if not isinstance(payload["class_agnostic_nms"], bool):
            raise ValueError("class_agnostic_nms must be a boolean")
        kwargs["class_agnostic_nms"] = payload["class_agnostic_nms"]
    if "classes" in payload:
        classes = payload["classes"]
        if not isinstance(classes, list) or not all(isinstance(c, str) for c in classes):
            raise ValueError("classes must be a list of strings")
        kwargs["classes"] = tuple(classes)

    return PipelineConfig(**kwargs)
