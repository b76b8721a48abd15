"""
Annotation regions from a page's declared annotations.

Annotations are not drawn through the surface primitives, so their
rectangles are mapped from PDF user space with the viewport's base
transform instead of the surface transform.
"""

import logging
import math
from typing import Iterable, Optional

from .models import AnalysisParams, OverlayRegion, RegionKind, Viewport
from .geometry import bounding_box, clamp, is_layout_like
from .transform import apply_to_point
from .region_merger import dedupe_regions


logger = logging.getLogger(__name__)


def annotation_rect(annotation) -> Optional[tuple[float, float, float, float]]:
    """
    The [x1, y1, x2, y2] rectangle of an annotation, or None if malformed.

    Args:
        annotation: Mapping with a "rect" key or object with a `rect` attribute
    """
    if isinstance(annotation, dict):
        rect = annotation.get("rect")
    else:
        rect = getattr(annotation, "rect", None)

    if not isinstance(rect, (list, tuple)) or len(rect) != 4:
        return None

    try:
        values = tuple(float(v) for v in rect)
    except (TypeError, ValueError):
        return None

    if not all(math.isfinite(v) for v in values):
        return None
    return values


def extract_annotation_regions(
    annotations: Iterable,
    viewport: Viewport,
    params: Optional[AnalysisParams] = None
) -> list[OverlayRegion]:
    """
    Map annotation rectangles into viewport space.

    Args:
        annotations: Declared annotations of one page
        viewport: Page viewport (its transform maps user space to pixels)
        params: Thresholds

    Returns:
        Deduplicated annotation regions that are not layout-like
    """
    params = params or AnalysisParams()
    regions = []

    for annotation in annotations:
        rect = annotation_rect(annotation)
        if rect is None:
            logger.debug(f"Skipping annotation without a 4-number rect: {annotation!r}")
            continue

        x1, y1, x2, y2 = rect
        p1 = apply_to_point(viewport.transform, x1, y1)
        p2 = apply_to_point(viewport.transform, x2, y2)
        r = clamp(bounding_box([p1, p2]), viewport)

        if is_layout_like(r, viewport, params):
            continue

        regions.append(OverlayRegion(rect=r, kind=RegionKind.ANNOTATION))

    return dedupe_regions(regions, params.dedupe_epsilon)
