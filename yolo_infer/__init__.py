"""
YOLO inference pre/post-processing.

Turns an RGBA frame into a stride-aligned planar tensor, hands it to any
inference callable, and decodes the raw (1, 4 + C, N) output into
non-overlapping detections. Core dependencies are NumPy and OpenCV;
ONNX Runtime is only needed for `load_pipeline`.
"""

from .types import Detection, Frame, FrameOrigin
from .errors import InferenceFailure, InvalidDimensions, MalformedOutput, YoloInferError
from .letterbox import STRIDE, DynamicResize, ResizePlan, ZeroPadResize, div_stride, parse_strategy, plan_resize
from .preprocess import input_tensor, normalize
from .nms import box_iou, nms, nms_boxes
from .postprocess import DecodeConfig, YoloPostConfig, YoloPostprocessor, decode_output
from .colors import Colors, get_color
from .config import PipelineConfig, load_pipeline_config
from .metadata import COCO_CLASSES, class_name, load_class_names
from .runtime import FrameGate, PipelineResult, YoloPipeline, load_pipeline

__all__ = [
    "Detection",
    "Frame",
    "FrameOrigin",
    "InferenceFailure",
    "InvalidDimensions",
    "MalformedOutput",
    "YoloInferError",
    "STRIDE",
    "DynamicResize",
    "ResizePlan",
    "ZeroPadResize",
    "div_stride",
    "parse_strategy",
    "plan_resize",
    "input_tensor",
    "normalize",
    "box_iou",
    "nms",
    "nms_boxes",
    "DecodeConfig",
    "YoloPostConfig",
    "YoloPostprocessor",
    "decode_output",
    "Colors",
    "get_color",
    "PipelineConfig",
    "load_pipeline_config",
    "COCO_CLASSES",
    "class_name",
    "load_class_names",
    "FrameGate",
    "PipelineResult",
    "YoloPipeline",
    "load_pipeline",
]
