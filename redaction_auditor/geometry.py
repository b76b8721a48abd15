"""
Rectangle helpers shared by capture, aggregation and classification.

All rectangles are in viewport pixel space (see models.Rect).
"""

from typing import Iterable, Optional, Protocol

from .models import (
    Rect, AnalysisParams,
    NOISE_MIN_WIDTH, NOISE_MIN_HEIGHT, MAX_AREA_RATIO, MAX_SPAN_RATIO, DEDUPE_EPSILON,
)


class Bounds(Protocol):
    width: float
    height: float


def intersects(a: Rect, b: Rect) -> bool:
    """
    Check whether two rectangles overlap.

    Touching edges do not count as an intersection.
    """
    return not (
        a.x + a.width <= b.x or
        b.x + b.width <= a.x or
        a.y + a.height <= b.y or
        b.y + b.height <= a.y
    )


def clamp(r: Rect, bounds: Bounds) -> Rect:
    """
    Clip a rectangle to [0, bounds.width] x [0, bounds.height].

    Args:
        r: Rectangle to clip
        bounds: Anything with width and height (usually a Viewport)

    Returns:
        Clipped rectangle; width and height never go below zero
    """
    x = max(0.0, min(r.x, bounds.width))
    y = max(0.0, min(r.y, bounds.height))
    right = max(0.0, min(r.x + r.width, bounds.width))
    bottom = max(0.0, min(r.y + r.height, bounds.height))
    return Rect(x, y, max(0.0, right - x), max(0.0, bottom - y))


def bounding_box(points: Iterable[tuple[float, float]]) -> Rect:
    """
    Smallest axis-aligned rectangle containing all points.

    Raises:
        ValueError: If no points are given
    """
    points = list(points)
    if not points:
        raise ValueError("bounding_box() needs at least one point")

    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    min_x, min_y = min(xs), min(ys)
    return Rect(min_x, min_y, max(xs) - min_x, max(ys) - min_y)


def approx_equal(a: float, b: float, epsilon: float = DEDUPE_EPSILON) -> bool:
    return abs(a - b) <= epsilon


def same_region(a: Rect, b: Rect, epsilon: float = DEDUPE_EPSILON) -> bool:
    """True when x, y, width and height all agree within epsilon."""
    return (
        approx_equal(a.x, b.x, epsilon) and
        approx_equal(a.y, b.y, epsilon) and
        approx_equal(a.width, b.width, epsilon) and
        approx_equal(a.height, b.height, epsilon)
    )


def is_layout_like(
    r: Rect,
    viewport: Bounds,
    params: Optional[AnalysisParams] = None
) -> bool:
    """
    Decide whether a rectangle looks like page layout rather than a redaction.

    A rectangle is rejected when it is:
    - noise (narrower or shorter than the noise floor)
    - a large background block (area share above max_area_ratio)
    - a near full-width or full-height span

    Args:
        r: Rectangle in viewport space
        viewport: Page bounds
        params: Thresholds (module defaults when omitted)

    Returns:
        True if the rectangle should be discarded
    """
    if params is None:
        noise_w, noise_h = NOISE_MIN_WIDTH, NOISE_MIN_HEIGHT
        max_area, max_span = MAX_AREA_RATIO, MAX_SPAN_RATIO
    else:
        noise_w, noise_h = params.noise_min_width, params.noise_min_height
        max_area, max_span = params.max_area_ratio, params.max_span_ratio

    if r.width < noise_w or r.height < noise_h:
        return True

    page_area = viewport.width * viewport.height
    if page_area <= 0 or r.width * r.height / page_area > max_area:
        return True

    if r.width > viewport.width * max_span:
        return True
    if r.height > viewport.height * max_span:
        return True

    return False
