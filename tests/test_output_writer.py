"""Tests for report and preview output."""

import csv
import json

import numpy as np
from PIL import Image

from redaction_auditor.models import (
    AnalysisParams, DocumentResult, DocumentTotals, PageResult, Rect, RedactionCandidate,
    RegionCounts, RegionKind,
)
from redaction_auditor.output_writer import (
    CSV_FIELDS, RECOVERABLE_BGR, UNRECOVERABLE_BGR,
    draw_candidate_outlines, generate_preview_filename, save_page_preview, write_all_outputs,
)


def sample_document() -> DocumentResult:
    candidates = [
        RedactionCandidate(Rect(10, 10, 40, 20), RegionKind.VECTOR, recoverable=True,
                           recovered_text="John Smith"),
        RedactionCandidate(Rect(60, 60, 30, 15), RegionKind.ANNOTATION, recoverable=False),
    ]
    return DocumentResult(
        doc_id="memo",
        total_pages=1,
        pages=[PageResult(page_num=1, annotation_count=1, vector_count=1, candidates=candidates)],
        totals=DocumentTotals(total_redactions=2, recoverable_count=1),
        counts=RegionCounts(annotations=1, vectors=1),
    )


def test_write_all_outputs(tmp_path):
    failed = DocumentResult(doc_id="broken", error="not a PDF")
    paths = write_all_outputs([sample_document(), failed], AnalysisParams(), tmp_path)

    report = json.loads(paths["report_json"].read_text(encoding="utf-8"))
    assert report["summary"] == {
        "total_documents": 2,
        "failed_documents": 1,
        "total_redactions": 2,
        "recoverable_count": 1,
    }
    assert report["parameters"]["max_area_ratio"] == 0.35
    memo = report["documents"][0]
    assert memo["recovery_percent"] == 50
    recoverable, hidden = memo["pages"][0]["candidates"]
    assert recoverable["recovered_text"] == "John Smith"
    assert "recovered_text" not in hidden
    assert report["documents"][1]["error"] == "not a PDF"

    with open(paths["report_csv"], newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert list(rows[0].keys()) == CSV_FIELDS
    assert [r["kind"] for r in rows] == ["vector", "annotation"]
    assert rows[0]["recovered_text"] == "John Smith"
    assert rows[1]["recoverable"] == "False"


def test_csv_without_candidates_has_header_only(tmp_path):
    paths = write_all_outputs([DocumentResult(doc_id="empty", total_pages=1)], AnalysisParams(), tmp_path)
    lines = paths["report_csv"].read_text(encoding="utf-8").splitlines()
    assert lines == [",".join(CSV_FIELDS)]


def test_preview_filename_is_sanitized():
    assert generate_preview_filename("../a b/c", 3) == ".._a_b_c_p3.png"


def test_outlines_are_coloured_by_recoverability():
    page = np.full((100, 100, 3), 255, dtype=np.uint8)
    outlined = draw_candidate_outlines(page, sample_document().pages[0].candidates)

    assert outlined[10, 30].tolist() == list(RECOVERABLE_BGR)
    assert outlined[60, 70].tolist() == list(UNRECOVERABLE_BGR)
    assert (page == 255).all()


def test_save_page_preview(tmp_path):
    page = np.full((100, 80, 3), 255, dtype=np.uint8)
    relative = save_page_preview(page, [], "memo", 2, tmp_path)

    assert relative == "pages/memo_p2.png"
    with Image.open(tmp_path / relative) as image:
        assert image.size == (80, 100)


def test_save_page_preview_failure_returns_empty(tmp_path):
    blocker = tmp_path / "pages"
    blocker.write_text("not a directory")
    page = np.full((10, 10, 3), 255, dtype=np.uint8)
    assert save_page_preview(page, [], "memo", 1, tmp_path) == ""
