"""
Optional inference backends for yolo_infer.

Backends are kept in a separate module so the pre/post-processing core stays
lightweight and can be used without installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
