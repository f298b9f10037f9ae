import json
import tempfile
import unittest
from pathlib import Path

from yolo_infer.config import PipelineConfig, load_pipeline_config
from yolo_infer.letterbox import DynamicResize, ZeroPadResize
from yolo_infer.metadata import COCO_CLASSES, class_name, load_class_names


def _write(tmp: str, name: str, text: str) -> Path:
    path = Path(tmp) / name
    path.write_text(text, encoding="utf-8")
    return path


class TestPipelineConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        self.assertEqual(cfg.score_threshold, 0.45)
        self.assertEqual(cfg.iou_threshold, 0.35)
        self.assertEqual(len(cfg.classes), 80)
        self.assertIsInstance(cfg.strategy(), DynamicResize)
        post = cfg.post_config()
        self.assertEqual(post.decode.num_classes, 80)
        self.assertEqual(post.iou_threshold, 0.35)

    def test_zero_pad_strategy_carries_model_size(self) -> None:
        strategy = PipelineConfig(imgsz_type="zeroPad", model_size=(320, 320)).strategy()
        self.assertIsInstance(strategy, ZeroPadResize)
        self.assertEqual(strategy.model_size, (320, 320))

    def test_validation(self) -> None:
        for kwargs in (
            {"score_threshold": 0.0},
            {"iou_threshold": 1.0},
            {"imgsz_type": "stretch"},
            {"overlay_size": (0, 10)},
            {"num_classes": 0},
            {"task": "classify"},
            {"max_detections": 0},
        ):
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValueError):
                    PipelineConfig(**kwargs)

    def test_load_json(self) -> None:
        payload = {
            "overlay_size": [1280, 720],
            "imgsz_type": "zeroPad",
            "score_threshold": 0.3,
            "iou_threshold": 0.5,
            "classes": ["helmet", "person"],
            "num_classes": 2,
        }
        with tempfile.TemporaryDirectory() as tmp:
            cfg = load_pipeline_config(_write(tmp, "pipeline.json", json.dumps(payload)))
        self.assertEqual(cfg.overlay_size, (1280, 720))
        self.assertEqual(cfg.imgsz_type, "zeroPad")
        self.assertEqual(cfg.classes, ("helmet", "person"))
        self.assertEqual(cfg.num_classes, 2)

    def test_load_json_rejects_bad_payloads(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            for name, text in (
                ("unknown.json", json.dumps({"scoreThreshold": 0.3})),
                ("type.json", json.dumps({"score_threshold": "high"})),
                ("size.json", json.dumps({"overlay_size": [640]})),
                ("list.json", json.dumps([1, 2])),
                ("broken.json", "{"),
            ):
                with self.subTest(name=name):
                    with self.assertRaises(ValueError):
                        load_pipeline_config(_write(tmp, name, text))
            with self.assertRaises(FileNotFoundError):
                load_pipeline_config(Path(tmp) / "missing.json")


class TestClassNames(unittest.TestCase):
    def test_metadata_yaml(self) -> None:
        text = "description: demo\nnames:\n  0: person\n  1: 'hard hat'\nimgsz:\n- 640\n"
        with tempfile.TemporaryDirectory() as tmp:
            names = load_class_names(_write(tmp, "metadata.yaml", text))
        self.assertEqual(names, ["person", "hard hat"])

    def test_json_list_and_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(load_class_names(_write(tmp, "a.json", '["cat", "dog"]')), ["cat", "dog"])
            self.assertEqual(load_class_names(_write(tmp, "b.json", '{"1": "dog", "0": "cat"}')), ["cat", "dog"])
            with self.assertRaises(ValueError):
                load_class_names(_write(tmp, "c.json", '{"0": "cat", "2": "dog"}'))

    def test_class_name_fallback(self) -> None:
        self.assertEqual(class_name(COCO_CLASSES, 0), "person")
        self.assertEqual(class_name(COCO_CLASSES, 80), "80")


if __name__ == "__main__":
    unittest.main()
