"""
Region aggregation for one page.

Merges annotation regions with regions captured during rendering:
- Near-identical rectangles (all edges within tolerance) collapse to one
- The first region seen wins; later duplicates are dropped
- Layout-like rectangles are filtered again after merging
"""

from typing import Optional, Sequence, TypeVar

from .models import AnalysisParams, OverlayRegion, RedactionCandidate, Viewport
from .geometry import same_region, is_layout_like


Region = TypeVar("Region", OverlayRegion, RedactionCandidate)


def dedupe_regions(
    regions: Sequence[Region],
    epsilon: Optional[float] = None
) -> list[Region]:
    """
    Drop regions that duplicate an earlier one.

    Args:
        regions: Regions in capture order (anything with a `rect`)
        epsilon: Tolerance in pixels (default from AnalysisParams)

    Returns:
        Regions with duplicates removed, original order kept
    """
    if epsilon is None:
        epsilon = AnalysisParams().dedupe_epsilon

    kept: list[Region] = []
    for region in regions:
        if not any(same_region(k.rect, region.rect, epsilon) for k in kept):
            kept.append(region)
    return kept


def aggregate_regions(
    annotation_regions: Sequence[OverlayRegion],
    overlay_regions: Sequence[OverlayRegion],
    viewport: Viewport,
    params: Optional[AnalysisParams] = None
) -> list[RedactionCandidate]:
    """
    Build the page's redaction candidates.

    Annotation regions come first so an annotation wins over a rendered
    overlay at the same place.

    Args:
        annotation_regions: Regions from declared annotations
        overlay_regions: Regions captured while rendering
        viewport: Page viewport
        params: Thresholds

    Returns:
        Unclassified candidates
    """
    params = params or AnalysisParams()

    merged = dedupe_regions(
        [*annotation_regions, *overlay_regions],
        params.dedupe_epsilon
    )

    return [
        RedactionCandidate(rect=region.rect, kind=region.kind)
        for region in merged
        if not is_layout_like(region.rect, viewport, params)
    ]
