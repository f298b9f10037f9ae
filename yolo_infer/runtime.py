from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import PipelineConfig
from .errors import InferenceFailure, MalformedOutput
from .letterbox import ResizePlan, plan_resize
from .postprocess import YoloPostprocessor
from .preprocess import input_tensor
from .types import Detection, Frame


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PipelineResult:
    detections: List[Detection]
    # Wall-clock time of the inference call only, rounded to 0.01 ms.
    inference_ms: float


class YoloPipeline:
    """
    Plan -> normalize -> inference -> decode -> NMS for a single RGBA frame.

    `infer_fn` receives a float32 (1, 3, H, W) blob and must return the raw
    output, shaped (1, 4 + C, N) for detection models. A failing inference
    call, or an output whose layout does not match the configuration, is
    logged and yields an empty result so a frame loop can move on.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], Any],
        *,
        config: PipelineConfig = PipelineConfig(),
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.config = config
        self.strategy = config.strategy()
        self.post = YoloPostprocessor(config.post_config())

    def plan(self, frame: Frame) -> ResizePlan:
        return plan_resize(frame.width, frame.height, self.strategy, self.config.overlay_size)

    def _run_inference(self, blob: np.ndarray) -> Tuple[np.ndarray, float]:
        start = time.perf_counter()
        try:
            raw = self._infer_fn(blob)
        except Exception as exc:
            raise InferenceFailure(f"Inference call raised {type(exc).__name__}: {exc}") from exc
        elapsed_ms = round((time.perf_counter() - start) * 1000.0, 2)

        try:
            preds = np.asarray(raw)
        except ValueError as exc:
            raise InferenceFailure(f"Inference returned a non-array result: {exc}") from exc
        if not np.issubdtype(preds.dtype, np.number) or preds.ndim not in (2, 3):
            raise InferenceFailure(
                f"Inference returned dtype={preds.dtype} shape={preds.shape}, expected a 2-D/3-D numeric tensor"
            )
        return preds, elapsed_ms

    def __call__(self, frame: Frame) -> PipelineResult:
        plan = self.plan(frame)
        with input_tensor(frame, plan) as blob:
            try:
                preds, elapsed_ms = self._run_inference(blob)
            except InferenceFailure:
                logger.exception(
                    "Inference failed on %s for %dx%d %s frame",
                    self.backend_name or "infer_fn",
                    frame.width,
                    frame.height,
                    frame.origin.value,
                )
                return PipelineResult(detections=[], inference_ms=0.0)

        try:
            detections = self.post.process(preds, ratio=(plan.x_ratio, plan.y_ratio))
        except MalformedOutput:
            logger.exception("Output of %s does not match the model config", self.backend_name or "infer_fn")
            return PipelineResult(detections=[], inference_ms=0.0)
        logger.debug("%d detections in %.2f ms", len(detections), elapsed_ms)
        return PipelineResult(detections=detections, inference_ms=elapsed_ms)

    async def run_async(self, frame: Frame) -> PipelineResult:
        """
        Run the blocking pipeline in a worker thread.
        """

        return await asyncio.to_thread(self, frame)


class FrameGate:
    """
    Caller-side busy flag: at most one frame in flight per stream.

    Frames arriving while the gate is held should be dropped by the caller.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self.dropped = 0

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        acquired = self._lock.acquire(blocking=False)
        if not acquired:
            self.dropped += 1
        return acquired

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


def load_pipeline(
    model_path: PathLike,
    *,
    config: PipelineConfig = PipelineConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: str = "images",
    onnx_output_name: str = "output0",
) -> YoloPipeline:
    """
    Create a pipeline around an ONNX Runtime session for a model on disk.

        pipe = load_pipeline("models/yolo11n.onnx")
        result = pipe(Frame.from_bgr(cv2.imread("street.jpg")))
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = Path(model_path).expanduser().resolve()
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Expected an .onnx model, got '{resolved.suffix}'")

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    return YoloPipeline(ort_backend.infer, config=config, backend=ort_backend, backend_name="onnxruntime")
