from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Sequence, Union


COCO_CLASSES: List[str] = [
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog",
    "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella",
    "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket", "bottle",
    "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich",
    "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote",
    "keyboard", "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator", "book",
    "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush",
]


def _ordered(names: Dict[int, str], source: Union[str, Path]) -> List[str]:
    if not names:
        raise ValueError(f"No class names found in {source}")
    expected = list(range(len(names)))
    if sorted(names) != expected:
        raise ValueError(f"Class ids in {source} must be contiguous from 0, got {sorted(names)}")
    return [names[i] for i in expected]


def _load_metadata_yaml(path: Path) -> Dict[int, str]:
    """
    Parse the `names:` block of an Ultralytics export `metadata.yaml`:

        names:
          0: person
          1: bicycle
          ...

    Line based on purpose, so no YAML dependency is needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # A new top-level key ends the block.
            if not raw.startswith((" ", "\t")):
                break

            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def _load_json(path: Path) -> Dict[int, str]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid class names JSON: {path}") from exc

    if isinstance(payload, dict) and "names" in payload:
        payload = payload["names"]
    if isinstance(payload, list):
        if not all(isinstance(n, str) for n in payload):
            raise ValueError(f"Class names in {path} must be strings")
        return dict(enumerate(payload))
    if isinstance(payload, dict):
        names: Dict[int, str] = {}
        for key, value in payload.items():
            if not str(key).isdigit() or not isinstance(value, str):
                raise ValueError(f"Expected {{id: name}} entries in {path}, got {key!r}: {value!r}")
            names[int(key)] = value
        return names
    raise ValueError(f"Class names JSON must be a list or an object: {path}")


def load_class_names(path: Union[str, Path]) -> List[str]:
    """
    Ordered class names from a `metadata.yaml` or a JSON list / {id: name} file.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Class names file not found: {p}")
    if p.suffix.lower() == ".json":
        return _ordered(_load_json(p), p)
    return _ordered(_load_metadata_yaml(p), p)


def class_name(classes: Sequence[str], index: int) -> str:
    if 0 <= index < len(classes):
        return classes[index]
    return str(index)
