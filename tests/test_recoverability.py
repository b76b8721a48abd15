"""Tests for text boxes and recoverability classification."""

import pytest

from redaction_auditor.models import AnalysisParams, Rect, RegionKind, RedactionCandidate, TextItem, TextRun
from redaction_auditor.recoverability import build_text_items, classify_candidates, recovered_text

from fakes import pdfjs_viewport


VIEWPORT = pdfjs_viewport()


def run(text, x, y, width=40.0, height=12.0) -> TextRun:
    return TextRun(text=text, transform=(height, 0, 0, height, x, y), width=width, height=height)


def candidate(x, y, w, h) -> RedactionCandidate:
    return RedactionCandidate(rect=Rect(x, y, w, h), kind=RegionKind.ANNOTATION)


class TestTextItems:
    def test_box_sits_on_the_baseline(self):
        items = build_text_items([run("SECRET", 110, 110)], VIEWPORT)
        assert items == [TextItem(text="SECRET", box=Rect(165, 1005, 60, 18))]

    def test_blank_runs_are_dropped(self):
        items = build_text_items([run("", 10, 10), run("   ", 10, 10), run("x", 10, 10)], VIEWPORT)
        assert [i.text for i in items] == ["x"]

    def test_zero_height_run_gets_minimum_height(self):
        items = build_text_items([run("a", 100, 100, width=0, height=0)], VIEWPORT)
        box = items[0].box
        assert box.height == 12
        assert box.width == 1
        assert box.y == pytest.approx(1188 - 150 - 12)

    def test_floor_comes_from_params(self):
        params = AnalysisParams(min_text_box_height=10)
        items = build_text_items([run("a", 100, 100, height=0)], VIEWPORT, params)
        assert items[0].box.height == 10


class TestClassification:
    def test_overlapping_text_is_recoverable(self):
        items = build_text_items([run("SECRET", 110, 110)], VIEWPORT)
        [c] = classify_candidates([candidate(150, 963, 150, 75)], items)
        assert c.recoverable is True
        assert c.recovered_text == "SECRET"

    def test_no_text_is_unrecoverable(self):
        [c] = classify_candidates([candidate(150, 963, 150, 75)], [])
        assert c.recoverable is False
        assert c.recovered_text is None

    def test_text_elsewhere_is_unrecoverable(self):
        items = build_text_items([run("public", 400, 600)], VIEWPORT)
        [c] = classify_candidates([candidate(150, 963, 150, 75)], items)
        assert c.recoverable is False

    def test_text_is_joined_in_stream_order_and_collapsed(self):
        items = [
            TextItem("John  ", Rect(160, 1000, 30, 18)),
            TextItem("unrelated", Rect(600, 100, 30, 18)),
            TextItem("\tSmith\n", Rect(200, 1000, 30, 18)),
        ]
        assert recovered_text(candidate(150, 963, 150, 75), items) == "John Smith"

    def test_touching_text_does_not_count(self):
        items = [TextItem("edge", Rect(300, 1000, 30, 18))]
        [c] = classify_candidates([candidate(150, 963, 150, 75)], items)
        assert c.recoverable is False

    def test_order_and_geometry_preserved(self):
        cands = [candidate(10, 10, 40, 20), candidate(150, 963, 150, 75)]
        items = build_text_items([run("SECRET", 110, 110)], VIEWPORT)
        classified = classify_candidates(cands, items)
        assert [c.rect for c in classified] == [c.rect for c in cands]
        assert [c.recoverable for c in classified] == [False, True]
