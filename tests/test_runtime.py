import asyncio
import unittest

import numpy as np

from yolo_infer.config import PipelineConfig
from yolo_infer.errors import MalformedOutput
from yolo_infer.runtime import FrameGate, PipelineResult, YoloPipeline
from yolo_infer.types import Frame, FrameOrigin


def _frame(width: int = 64, height: int = 64) -> Frame:
    return Frame(np.zeros((height, width, 4), dtype=np.uint8), origin=FrameOrigin.CAMERA)


def _raw_output() -> np.ndarray:
    # Three candidates: two overlapping "person" boxes and one "car".
    p = np.zeros((1, 84, 3), dtype=np.float32)
    p[0, 0:4, 0] = [20, 20, 10, 10]
    p[0, 0:4, 1] = [21, 21, 10, 10]
    p[0, 0:4, 2] = [50, 40, 8, 6]
    p[0, 4 + 0, 0] = 0.75
    p[0, 4 + 0, 1] = 0.9
    p[0, 4 + 2, 2] = 0.6
    return p


class TestYoloPipeline(unittest.TestCase):
    def test_end_to_end(self) -> None:
        seen = []

        def infer(blob: np.ndarray) -> np.ndarray:
            seen.append(blob.shape)
            return _raw_output()

        pipe = YoloPipeline(infer, config=PipelineConfig(iou_threshold=0.5))
        result = pipe(_frame())
        self.assertIsInstance(result, PipelineResult)
        self.assertEqual(seen, [(1, 3, 64, 64)])
        self.assertEqual([d.class_index for d in result.detections], [0, 2])
        self.assertEqual(result.detections[0].bbox, (16.0, 16.0, 10.0, 10.0))
        self.assertEqual(result.detections[1].bbox, (46.0, 37.0, 8.0, 6.0))
        self.assertGreaterEqual(result.inference_ms, 0.0)
        self.assertEqual(result.inference_ms, round(result.inference_ms, 2))

    def test_overlay_size_scales_boxes(self) -> None:
        pipe = YoloPipeline(lambda blob: _raw_output(), config=PipelineConfig(overlay_size=(128, 32)))
        result = pipe(_frame())
        self.assertEqual(result.detections[0].bbox, (32.0, 8.0, 20.0, 5.0))

    def test_zero_pad_input_shape(self) -> None:
        seen = []

        def infer(blob: np.ndarray) -> np.ndarray:
            seen.append(blob.shape)
            return np.zeros((1, 84, 10), dtype=np.float32)

        pipe = YoloPipeline(infer, config=PipelineConfig(imgsz_type="zeroPad"))
        result = pipe(_frame(100, 50))
        self.assertEqual(seen, [(1, 3, 640, 640)])
        self.assertEqual(result.detections, [])

    def test_inference_error_yields_empty_result(self) -> None:
        def infer(blob: np.ndarray) -> np.ndarray:
            raise RuntimeError("session lost")

        pipe = YoloPipeline(infer)
        with self.assertLogs("yolo_infer.runtime", level="ERROR"):
            result = pipe(_frame())
        self.assertEqual(result, PipelineResult(detections=[], inference_ms=0.0))

        # The next frame runs normally.
        pipe._infer_fn = lambda blob: _raw_output()
        self.assertEqual(len(pipe(_frame()).detections), 2)

    def test_non_tensor_output_yields_empty_result(self) -> None:
        pipe = YoloPipeline(lambda blob: None)
        with self.assertLogs("yolo_infer.runtime", level="ERROR"):
            result = pipe(_frame())
        self.assertEqual(result.detections, [])
        self.assertEqual(result.inference_ms, 0.0)

    def test_layout_mismatch_yields_empty_result(self) -> None:
        pipe = YoloPipeline(lambda blob: np.zeros((1, 85, 10), dtype=np.float32))
        with self.assertLogs("yolo_infer.runtime", level="ERROR") as logs:
            result = pipe(_frame())
        self.assertEqual(result, PipelineResult(detections=[], inference_ms=0.0))
        self.assertIn(MalformedOutput.__name__, "\n".join(logs.output))

        pipe._infer_fn = lambda blob: _raw_output()
        self.assertEqual(len(pipe(_frame()).detections), 2)

    def test_failure_log_names_backend(self) -> None:
        def infer(blob: np.ndarray) -> np.ndarray:
            raise RuntimeError("session lost")

        pipe = YoloPipeline(infer, backend_name="onnxruntime")
        with self.assertLogs("yolo_infer.runtime", level="ERROR") as logs:
            pipe(_frame())
        self.assertIn("onnxruntime", logs.output[0])

    def test_run_async(self) -> None:
        pipe = YoloPipeline(lambda blob: _raw_output(), config=PipelineConfig(iou_threshold=0.5))
        result = asyncio.run(pipe.run_async(_frame()))
        self.assertEqual(len(result.detections), 2)


class TestFrameGate(unittest.TestCase):
    def test_single_in_flight(self) -> None:
        gate = FrameGate()
        self.assertTrue(gate.try_acquire())
        self.assertTrue(gate.busy)
        self.assertFalse(gate.try_acquire())
        self.assertEqual(gate.dropped, 1)
        gate.release()
        self.assertFalse(gate.busy)

    def test_hold_releases_on_error(self) -> None:
        gate = FrameGate()
        with self.assertRaises(ValueError):
            with gate.hold() as acquired:
                self.assertTrue(acquired)
                raise ValueError("bad frame")
        self.assertFalse(gate.busy)


if __name__ == "__main__":
    unittest.main()
