from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .errors import InvalidDimensions


logger = logging.getLogger(__name__)

# Total downsampling factor of the detection network.
STRIDE = 32

DEFAULT_MODEL_SIZE: Tuple[int, int] = (640, 640)


@dataclass(frozen=True)
class DynamicResize:
    """
    Feed the frame at its own (stride-aligned) size. Needs a dynamic-shape export.
    """

    name: str = "dynamic"


@dataclass(frozen=True)
class ZeroPadResize:
    """
    Pad the stride-aligned frame to a square with black, then resize to the
    model's fixed input size.
    """

    model_size: Tuple[int, int] = DEFAULT_MODEL_SIZE
    name: str = "zeroPad"

    def __post_init__(self) -> None:
        w, h = self.model_size
        if w <= 0 or h <= 0:
            raise InvalidDimensions(f"model_size must be positive, got {self.model_size}")


ResizeStrategy = Union[DynamicResize, ZeroPadResize]


def parse_strategy(name: str, model_size: Tuple[int, int] = DEFAULT_MODEL_SIZE) -> ResizeStrategy:
    if name == "dynamic":
        return DynamicResize()
    if name == "zeroPad":
        return ZeroPadResize(model_size=tuple(model_size))
    raise ValueError(f"Unsupported imgsz_type: {name!r} (expected 'dynamic' or 'zeroPad')")


@dataclass(frozen=True)
class ResizePlan:
    """
    Geometry of one preprocess call.

    target_*: stride-aligned size the frame is first resized to
    input_*: spatial size of the tensor handed to the network
    x_ratio/y_ratio: factors mapping network coordinates to overlay coordinates
    pad_right/pad_bottom: zero padding added after the first resize
    """

    source_width: int
    source_height: int
    target_width: int
    target_height: int
    input_width: int
    input_height: int
    x_ratio: float
    y_ratio: float
    pad_right: int = 0
    pad_bottom: int = 0

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        return 1, 3, self.input_height, self.input_width


def _round_to_stride(dim: int, stride: int) -> int:
    if dim % stride >= stride / 2:
        aligned = (dim // stride + 1) * stride
    else:
        aligned = (dim // stride) * stride
    return max(aligned, stride)


def div_stride(stride: int, width: int, height: int) -> Tuple[int, int]:
    """
    Round width/height to the nearest multiple of `stride` (half rounds up, minimum one stride).
    """

    return _round_to_stride(int(width), stride), _round_to_stride(int(height), stride)


def _check_dims(label: str, width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"{label} dimensions must be positive, got {width}x{height}")


def plan_resize(
    width: int,
    height: int,
    strategy: ResizeStrategy,
    output_size: Optional[Tuple[int, int]] = None,
) -> ResizePlan:
    """
    Compute the resize/pad geometry for a frame.

    Args:
        width, height: source frame size
        strategy: DynamicResize() or ZeroPadResize(model_size)
        output_size: (width, height) of the coordinate space boxes are mapped
            back to; defaults to the source size
    """

    _check_dims("Frame", width, height)
    out_w, out_h = output_size if output_size is not None else (width, height)
    _check_dims("Output", out_w, out_h)

    div_w, div_h = div_stride(STRIDE, width, height)

    if isinstance(strategy, DynamicResize):
        plan = ResizePlan(
            source_width=int(width),
            source_height=int(height),
            target_width=div_w,
            target_height=div_h,
            input_width=div_w,
            input_height=div_h,
            x_ratio=out_w / div_w,
            y_ratio=out_h / div_h,
        )
    elif isinstance(strategy, ZeroPadResize):
        side = max(div_w, div_h)
        model_w, model_h = strategy.model_size
        # Keep the two-step product; outputs may differ from the source size.
        plan = ResizePlan(
            source_width=int(width),
            source_height=int(height),
            target_width=div_w,
            target_height=div_h,
            input_width=int(model_w),
            input_height=int(model_h),
            x_ratio=(out_w / div_w) * (side / out_w),
            y_ratio=(out_h / div_h) * (side / out_h),
            pad_right=side - div_w,
            pad_bottom=side - div_h,
        )
    else:
        raise TypeError(f"Unknown resize strategy: {strategy!r}")

    logger.debug("Resize plan for %dx%d (%s): %s", width, height, strategy.name, plan)
    return plan
