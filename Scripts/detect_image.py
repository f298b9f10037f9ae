from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Iterator, Optional

import cv2

from yolo_infer import (
    Frame,
    FrameGate,
    FrameOrigin,
    PipelineConfig,
    get_color,
    load_class_names,
    load_pipeline,
    load_pipeline_config,
)
from yolo_infer.metadata import class_name


logger = logging.getLogger("detect_image")


def _iter_video(path: str, every: int, max_frames: int) -> Iterator[Frame]:
    cap = cv2.VideoCapture(path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Could not open video: {path}")

    frame_idx = 0
    yielded = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            frame_idx += 1
            if (frame_idx - 1) % every != 0:
                continue
            yield Frame.from_bgr(frame, origin=FrameOrigin.VIDEO)
            yielded += 1
            if max_frames and yielded >= max_frames:
                break
    finally:
        cap.release()


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    base = load_pipeline_config(args.config) if args.config else PipelineConfig()
    classes = tuple(load_class_names(args.classes)) if args.classes else base.classes
    return PipelineConfig(
        overlay_size=base.overlay_size,
        imgsz_type=args.imgsz_type or base.imgsz_type,
        score_threshold=args.conf if args.conf is not None else base.score_threshold,
        iou_threshold=args.iou if args.iou is not None else base.iou_threshold,
        classes=classes,
        model_size=base.model_size,
        num_classes=base.num_classes,
        task=base.task,
        class_agnostic_nms=base.class_agnostic_nms,
        max_detections=base.max_detections,
    )


def _report(frame_no: Optional[int], result, classes, as_json: bool) -> None:
    if as_json:
        print(
            json.dumps(
                {
                    "frame": frame_no,
                    "inference_ms": result.inference_ms,
                    "detections": [d.to_dict(classes) for d in result.detections],
                }
            )
        )
        return

    prefix = "" if frame_no is None else f"[frame {frame_no}] "
    print(f"{prefix}{len(result.detections)} detections, inference {result.inference_ms:.2f} ms")
    for det in result.detections:
        r, g, b, _ = get_color(det.class_index)
        x, y, w, h = det.bbox
        print(
            f"  {class_name(classes, det.class_index):<16} {det.score:.2f} "
            f"x={x:.1f} y={y:.1f} w={w:.1f} h={h:.1f} color=#{r:02X}{g:02X}{b:02X}"
        )


async def _run_live(pipeline, frames: Iterator[Frame], classes, as_json: bool) -> int:
    """
    Feed frames like a live camera: inference runs in a worker thread and
    frames read while it is busy are dropped.
    """

    gate = FrameGate()
    tasks = []

    async def infer(frame_no: int, frame: Frame) -> None:
        try:
            _report(frame_no, await pipeline.run_async(frame), classes, as_json)
        finally:
            gate.release()

    for frame_no, frame in enumerate(frames):
        if gate.try_acquire():
            tasks.append(asyncio.create_task(infer(frame_no, frame)))
        await asyncio.sleep(0)

    await asyncio.gather(*tasks)
    return gate.dropped


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO ONNX model on an image or video file.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")

    parser.add_argument("--model", required=True, help="Path to a YOLO .onnx model.")
    parser.add_argument("--config", default=None, help="Pipeline config JSON.")
    parser.add_argument("--classes", default=None, help="metadata.yaml or JSON file with class names.")
    parser.add_argument("--imgsz-type", choices=("dynamic", "zeroPad"), default=None)
    parser.add_argument("--conf", type=float, default=None, help="Score threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--every", type=int, default=1, help="Process every Nth video frame.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N processed frames (0 = no limit).")
    parser.add_argument("--json", action="store_true", help="Print one JSON object per frame.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...).")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    config = _build_config(args)
    providers = None
    if args.onnx_providers:
        providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
    pipeline = load_pipeline(args.model, config=config, onnx_providers=providers)
    if not args.json:
        print(f"Loaded {pipeline.backend_name} model in {pipeline.backend.load_time_ms:.2f} ms")

    if args.image is not None:
        img = cv2.imread(args.image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {args.image}")
        _report(None, pipeline(Frame.from_bgr(img)), config.classes, args.json)
        return 0

    frames = _iter_video(args.video, args.every, args.max_frames)
    dropped = asyncio.run(_run_live(pipeline, frames, config.classes, args.json))
    logger.info("Video done, %d frames dropped while busy", dropped)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
