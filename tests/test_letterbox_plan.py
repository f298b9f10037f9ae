import unittest

from yolo_infer.errors import InvalidDimensions
from yolo_infer.letterbox import (
    STRIDE,
    DynamicResize,
    ZeroPadResize,
    div_stride,
    parse_strategy,
    plan_resize,
)


class TestDivStride(unittest.TestCase):
    def test_rounds_to_nearest_multiple(self) -> None:
        self.assertEqual(div_stride(32, 100, 50), (96, 64))
        self.assertEqual(div_stride(32, 640, 480), (640, 480))

    def test_half_stride_rounds_up(self) -> None:
        self.assertEqual(div_stride(32, 48, 47), (64, 32))

    def test_never_zero(self) -> None:
        self.assertEqual(div_stride(32, 1, 15), (32, 32))

    def test_dimensions_are_stride_multiples(self) -> None:
        for w in range(1, 400, 7):
            for h in range(1, 400, 13):
                plan = plan_resize(w, h, DynamicResize())
                self.assertEqual(plan.target_width % STRIDE, 0)
                self.assertEqual(plan.target_height % STRIDE, 0)
                self.assertGreater(plan.target_width, 0)
                self.assertGreater(plan.target_height, 0)


class TestPlanResize(unittest.TestCase):
    def test_dynamic_ratios(self) -> None:
        plan = plan_resize(100, 50, DynamicResize(), output_size=(640, 480))
        self.assertEqual((plan.target_width, plan.target_height), (96, 64))
        self.assertEqual((plan.input_width, plan.input_height), (96, 64))
        self.assertEqual((plan.pad_right, plan.pad_bottom), (0, 0))
        self.assertEqual(plan.x_ratio, 640 / 96)
        self.assertEqual(plan.y_ratio, 480 / 64)
        self.assertEqual(plan.input_shape, (1, 3, 64, 96))

    def test_dynamic_defaults_to_frame_size(self) -> None:
        plan = plan_resize(64, 32, DynamicResize())
        self.assertEqual(plan.x_ratio, 1.0)
        self.assertEqual(plan.y_ratio, 1.0)

    def test_zero_pad_geometry(self) -> None:
        plan = plan_resize(100, 50, ZeroPadResize(), output_size=(200, 100))
        self.assertEqual((plan.target_width, plan.target_height), (96, 64))
        self.assertEqual((plan.pad_right, plan.pad_bottom), (0, 32))
        self.assertEqual((plan.input_width, plan.input_height), (640, 640))
        self.assertEqual(plan.x_ratio, (200 / 96) * (96 / 200))
        self.assertEqual(plan.y_ratio, (100 / 64) * (96 / 100))

    def test_zero_pad_tall_frame_pads_right(self) -> None:
        plan = plan_resize(50, 100, ZeroPadResize(model_size=(320, 320)))
        self.assertEqual((plan.pad_right, plan.pad_bottom), (32, 0))
        self.assertEqual(plan.input_shape, (1, 3, 320, 320))

    def test_invalid_dimensions(self) -> None:
        with self.assertRaises(InvalidDimensions):
            plan_resize(0, 10, DynamicResize())
        with self.assertRaises(InvalidDimensions):
            plan_resize(10, -1, ZeroPadResize())
        with self.assertRaises(ValueError):
            plan_resize(10, 10, DynamicResize(), output_size=(0, 10))

    def test_parse_strategy(self) -> None:
        self.assertIsInstance(parse_strategy("dynamic"), DynamicResize)
        zp = parse_strategy("zeroPad", (320, 320))
        self.assertIsInstance(zp, ZeroPadResize)
        self.assertEqual(zp.model_size, (320, 320))
        with self.assertRaises(ValueError):
            parse_strategy("letterbox")


if __name__ == "__main__":
    unittest.main()
