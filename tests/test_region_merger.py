"""Tests for region aggregation and deduplication."""

from redaction_auditor.models import OverlayRegion, Rect, RegionKind, RedactionCandidate
from redaction_auditor.region_merger import aggregate_regions, dedupe_regions

from fakes import pdfjs_viewport


VIEWPORT = pdfjs_viewport()


def region(x, y, w, h, kind=RegionKind.VECTOR, alpha=1.0) -> OverlayRegion:
    return OverlayRegion(rect=Rect(x, y, w, h), kind=kind, effective_alpha=alpha)


def test_near_identical_overlays_collapse():
    candidates = aggregate_regions(
        [],
        [region(100, 100, 50, 20), region(100.5, 100.7, 50.2, 19.8)],
        VIEWPORT,
    )
    assert candidates == [RedactionCandidate(rect=Rect(100, 100, 50, 20), kind=RegionKind.VECTOR)]


def test_distinct_overlays_are_kept():
    candidates = aggregate_regions(
        [], [region(100, 100, 50, 20), region(100, 130, 50, 20)], VIEWPORT
    )
    assert len(candidates) == 2


def test_difference_just_over_tolerance_is_kept():
    regions = [region(100, 100, 50, 20), region(101.6, 100, 50, 20)]
    assert len(dedupe_regions(regions)) == 2


def test_annotation_wins_over_rendered_duplicate():
    annotation = region(150, 963, 150, 75, kind=RegionKind.ANNOTATION)
    vector = region(150.4, 963.2, 149.8, 75, kind=RegionKind.VECTOR, alpha=0.5)

    candidates = aggregate_regions([annotation], [vector], VIEWPORT)

    assert len(candidates) == 1
    assert candidates[0].kind is RegionKind.ANNOTATION
    assert candidates[0].rect == annotation.rect


def test_first_seen_wins_within_overlays():
    image = region(10, 10, 40, 20, kind=RegionKind.IMAGE)
    vector = region(10, 10, 40, 20, kind=RegionKind.VECTOR)
    assert dedupe_regions([image, vector]) == [image]


def test_dedupe_is_idempotent():
    regions = [
        region(100, 100, 50, 20),
        region(100.5, 100.7, 50.2, 19.8),
        region(300, 300, 60, 20),
        region(301, 299, 61, 21),
        region(500, 100, 40, 40, kind=RegionKind.IMAGE),
    ]
    once = dedupe_regions(regions)
    assert dedupe_regions(once) == once
    assert len(once) == 3


def test_layout_like_regions_are_dropped_after_merge():
    background = region(0, 0, VIEWPORT.width, VIEWPORT.height)
    noise = region(10, 10, 9, 30)
    bar = region(100, 100, 50, 20)

    candidates = aggregate_regions([], [background, noise, bar], VIEWPORT)
    assert [c.rect for c in candidates] == [bar.rect]


def test_candidates_start_unclassified():
    candidates = aggregate_regions([], [region(100, 100, 50, 20)], VIEWPORT)
    assert candidates[0].recoverable is None
    assert candidates[0].recovered_text is None
