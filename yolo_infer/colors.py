from __future__ import annotations

from threading import Lock
from typing import Dict, Tuple


RGBA = Tuple[int, int, int, float]


class Colors:
    """
    Ultralytics default color palette (https://ultralytics.com/).

    Colors are a pure function of (class index, alpha, channel order), so the
    shared cache is append-only: reads need no lock, writes keep the first value.
    """

    HEX = (
        "042AFF",
        "0BDBEB",
        "F3F3F3",
        "00DFB7",
        "111F68",
        "FF6FDD",
        "FF444F",
        "CCED00",
        "00F344",
        "BD00FF",
        "00B4FF",
        "DD00BA",
        "00FFFF",
        "26C000",
        "01FFB3",
        "7D24FF",
        "7B0068",
        "FF1B6C",
        "FC6D2F",
        "A2FF0B",
    )

    _cache: Dict[Tuple[int, float, bool], RGBA] = {}
    _lock = Lock()

    @staticmethod
    def hex2rgba(h: str, alpha: float = 1.0) -> RGBA:
        h = h.lstrip("#")
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16), alpha

    @classmethod
    def get_color(cls, i: int, alpha: float = 1.0, bgr: bool = False) -> RGBA:
        """
        RGBA color for class index `i`; indices wrap around the 20-entry palette.
        With bgr=True the color channels come back as (b, g, r, alpha).
        """

        key = (int(i), float(alpha), bool(bgr))
        cached = cls._cache.get(key)
        if cached is not None:
            return cached

        r, g, b, _ = PALETTE[key[0] % len(PALETTE)]
        color: RGBA = (b, g, r, key[1]) if key[2] else (r, g, b, key[1])
        with cls._lock:
            return cls._cache.setdefault(key, color)


PALETTE: Tuple[RGBA, ...] = tuple(Colors.hex2rgba(c) for c in Colors.HEX)


def get_color(i: int, alpha: float = 1.0, bgr: bool = False) -> RGBA:
    return Colors.get_color(i, alpha, bgr)
