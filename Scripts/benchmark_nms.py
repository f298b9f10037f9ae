from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import List

import numpy as np

from yolo_infer import DecodeConfig, YoloPostConfig, YoloPostprocessor, decode_output, nms


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)),
        p50_ms=_percentile(ms_sorted, 50.0),
        p90_ms=_percentile(ms_sorted, 90.0),
        p95_ms=_percentile(ms_sorted, 95.0),
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _synthetic_output(n: int, n_classes: int, hot_fraction: float, seed: int) -> np.ndarray:
    """
    (1, 4 + C, N) float32 output with clustered boxes, like a real 640x640 frame.
    """

    rng = np.random.default_rng(seed)
    p = np.zeros((1, 4 + n_classes, n), dtype=np.float32)
    centers = rng.uniform(40, 600, size=(max(n // 50, 1), 2))
    pick = rng.integers(0, centers.shape[0], size=n)
    p[0, 0:2, :] = (centers[pick] + rng.normal(0, 6, size=(n, 2))).T
    p[0, 2:4, :] = rng.uniform(10, 80, size=(2, n))
    p[0, 4:, :] = rng.uniform(0.0, 0.05, size=(n_classes, n))
    hot = rng.random(n) < hot_fraction
    p[0, 4 + rng.integers(0, n_classes, size=int(hot.sum())), np.nonzero(hot)[0]] = rng.uniform(
        0.5, 1.0, size=int(hot.sum())
    )
    return p


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark decode + NMS latency against decode + top-K on a synthetic raw output."
    )
    parser.add_argument("--predictions", type=int, default=8400, help="Number of candidates (8400 for 640x640).")
    parser.add_argument("--classes", type=int, default=80, help="Number of class rows.")
    parser.add_argument("--hot-fraction", type=float, default=0.05, help="Share of candidates above threshold.")
    parser.add_argument("--conf", type=float, default=0.45, help="Score threshold.")
    parser.add_argument("--iou", type=float, default=0.35, help="IoU threshold for NMS.")
    parser.add_argument("--max-det", type=int, default=100, help="Top-K size for the no-NMS variant.")
    parser.add_argument("--per-class-nms", action="store_true", help="Use per-class NMS (default is class-agnostic).")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=200, help="Recorded iterations.")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.predictions < 1:
        raise ValueError("--predictions must be >= 1")
    if args.classes < 1:
        raise ValueError("--classes must be >= 1")
    if not 0.0 <= args.hot_fraction <= 1.0:
        raise ValueError("--hot-fraction must be in [0, 1]")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    raw = _synthetic_output(int(args.predictions), int(args.classes), float(args.hot_fraction), int(args.seed))
    decode_cfg = DecodeConfig(num_classes=int(args.classes))
    post_no_nms = YoloPostprocessor(
        YoloPostConfig(
            score_threshold=float(args.conf),
            max_detections=int(args.max_det),
            apply_nms=False,
            decode=decode_cfg,
        )
    )

    t_decode: List[float] = []
    t_nms: List[float] = []
    t_topk: List[float] = []
    kept = 0
    candidates = 0

    for it in range(int(args.warmup) + int(args.repeats)):
        t0 = time.perf_counter()
        dets = decode_output(raw, float(args.conf), 1.0, 1.0, decode_cfg)
        t1 = time.perf_counter()
        keep = nms(dets, float(args.iou), class_agnostic=not bool(args.per_class_nms))
        t2 = time.perf_counter()
        _ = post_no_nms.process(raw)
        t3 = time.perf_counter()

        if it < int(args.warmup):
            continue
        t_decode.append(t1 - t0)
        t_nms.append(t2 - t1)
        t_topk.append(t3 - t2)
        candidates = len(dets)
        kept = len(keep)

    print(_format_summary("decode", _summarize_ms(t_decode)))
    print(_format_summary("nms", _summarize_ms(t_nms)))
    print(_format_summary("decode_topk_no_nms", _summarize_ms(t_topk)))
    print(f"predictions={args.predictions} candidates={candidates} kept_after_nms={kept}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
