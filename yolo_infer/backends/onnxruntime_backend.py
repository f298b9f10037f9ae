from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: YOLO exports use "images" / "output0"; when the
      session has no such name the first input/output is used
    """

    providers: Optional[Sequence[str]] = None
    input_name: str = "images"
    output_name: str = "output0"


def _pick_name(nodes: Sequence[Any], preferred: str) -> str:
    names = [n.name for n in nodes]
    if not names:
        raise RuntimeError("ONNX model declares no inputs/outputs.")
    return preferred if preferred in names else names[0]


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects an NCHW float32 blob shaped (1, 3, H, W) and returns the primary
    output, shaped (1, 4 + C, N) for detection exports.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        start = time.perf_counter()
        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        self.load_time_ms = round((time.perf_counter() - start) * 1000.0, 2)

        self.input_name = _pick_name(self.session.get_inputs(), cfg.input_name)
        self.output_name = _pick_name(self.session.get_outputs(), cfg.output_name)
        logger.info(
            "Loaded %s in %.2f ms (providers=%s, input=%s, output=%s)",
            self.model_path.name,
            self.load_time_ms,
            self.providers_in_use,
            self.input_name,
            self.output_name,
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> np.ndarray:
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return outputs[0]
