"""
Study-time estimates for topics
"""
import math
import re
from typing import Iterable, Optional

from ..models.learning import Material, MaterialKind

TAG_RE = re.compile(r"<[^>]+>")
CHARS_PER_MINUTE = 900
MINUTES_PER_VIDEO = 5


def estimate_minutes(materials: Iterable[Material]) -> int:
    """
    Estimate study minutes for a list of materials

    Server-provided estimatedSeconds win when any material has one;
    otherwise reading speed for HTML text plus a flat allowance per video.
    """
    materials = list(materials)
    if any((m.estimated_seconds or 0) > 0 for m in materials):
        total = sum(m.estimated_seconds or 0 for m in materials)
        return max(1, math.ceil(total / 60))

    chars = 0
    videos = 0
    for m in materials:
        if m.kind == MaterialKind.HTML and m.content_html:
            chars += len(TAG_RE.sub("", m.content_html))
        if m.kind == MaterialKind.VIDEO:
            videos += 1
    read_min = math.ceil(chars / CHARS_PER_MINUTE)
    return max(1, read_min + videos * MINUTES_PER_VIDEO)


def eta_minutes(eta_seconds: Optional[float], materials: Iterable[Material]) -> int:
    if eta_seconds is not None:
        return max(1, math.ceil(eta_seconds / 60))
    return estimate_minutes(materials)


def remaining_minutes(remaining_seconds: Optional[float], eta_min: float, percent: float) -> int:
    if remaining_seconds is not None:
        return max(0, math.ceil(remaining_seconds / 60))
    return max(0, math.ceil(eta_min * (1 - percent / 100)))


def average_progress(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)
