"""Shared API shape helpers.

Success envelope shared by every JSON route; errors are rendered by the
global handlers in `main`.
"""
from __future__ import annotations
from typing import Any
import time


def success(data: Any, **meta) -> dict:
    return {"status": "success", "data": data, "meta": meta or None, "timestamp": time.time()}
