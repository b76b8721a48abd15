"""End-to-end tests against real PDFs built in memory with PyMuPDF."""

import io

import fitz
import pytest
from PIL import Image

from redaction_auditor.models import RegionKind
from redaction_auditor.pdf_document import (
    PdfRenderer, fill_style_for, parse_pdf_array,
)
from redaction_auditor.pipeline import STATUS_COMPLETE, STATUS_ERROR, analyze_bytes
from redaction_auditor.progress import RecordingSink


def make_pdf(build) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=612, height=792)
    build(page)
    data = doc.tobytes()
    doc.close()
    return data


def black_png(width=40, height=20) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "black").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def renderer():
    return PdfRenderer()


def test_parse_pdf_array():
    assert parse_pdf_array("[0 0 612.5 792]") == [0.0, 0.0, 612.5, 792.0]
    assert parse_pdf_array("[1 /Foo]") == [1.0, "/Foo"]


@pytest.mark.parametrize("color, expected", [
    ((0, 0, 0), "rgb(0, 0, 0)"),
    ((1, 0.5, 0), "rgb(255, 128, 0)"),
    (0.5, "rgb(128, 128, 128)"),
    ((0, 0, 0, 1), "rgb(0, 0, 0)"),
])
def test_fill_style_for(color, expected):
    assert fill_style_for(color) == expected


@pytest.mark.asyncio
async def test_viewport_flips_user_space(renderer):
    document = await renderer.load(make_pdf(lambda page: None))
    try:
        page = await document.get_page(1)
        viewport = page.get_viewport(1.5)
    finally:
        document.close()

    assert (viewport.width, viewport.height) == pytest.approx((918, 1188))
    assert viewport.transform == pytest.approx((1.5, 0, 0, -1.5, 0, 1188))


@pytest.mark.asyncio
async def test_page_out_of_range(renderer):
    document = await renderer.load(make_pdf(lambda page: None))
    try:
        with pytest.raises(IndexError):
            await document.get_page(2)
    finally:
        document.close()


@pytest.mark.asyncio
async def test_text_run_is_in_user_space(renderer):
    data = make_pdf(lambda page: page.insert_text((72, 144), "SECRET", fontsize=12))
    document = await renderer.load(data)
    try:
        runs = await (await document.get_page(1)).get_text_content()
    finally:
        document.close()

    [run] = runs
    assert run.text == "SECRET"
    assert run.transform[0] == pytest.approx(12)
    assert run.transform[4:] == pytest.approx((72, 648))
    assert run.width > 0


@pytest.mark.asyncio
async def test_black_box_over_text_is_recoverable(renderer):
    def build(page):
        page.insert_text((72, 144), "SECRET", fontsize=12)
        page.draw_rect(fitz.Rect(70, 130, 150, 150), color=(0, 0, 0), fill=(0, 0, 0))

    result = await analyze_bytes(make_pdf(build), renderer, doc_id="memo")

    assert result.error is None
    [candidate] = result.all_candidates
    assert candidate.kind is RegionKind.VECTOR
    assert candidate.rect.x == pytest.approx(105, abs=1)
    assert candidate.rect.y == pytest.approx(195, abs=1)
    assert candidate.recoverable is True
    assert candidate.recovered_text == "SECRET"


@pytest.mark.asyncio
async def test_redact_annotation(renderer):
    def build(page):
        page.add_redact_annot(fitz.Rect(100, 100, 200, 150))

    result = await analyze_bytes(make_pdf(build), renderer)

    [candidate] = result.all_candidates
    assert candidate.kind is RegionKind.ANNOTATION
    assert candidate.recoverable is False
    assert result.counts.annotations == 1


def add_link_over_text(page):
    page.insert_text((110, 140), "SECRET", fontsize=12)
    page.insert_link({
        "kind": fitz.LINK_URI,
        "from": fitz.Rect(100, 125, 200, 145),
        "uri": "https://example.com/",
    })


@pytest.mark.asyncio
async def test_links_are_listed_as_annotations(renderer):
    document = await renderer.load(make_pdf(add_link_over_text))
    try:
        annotations = await (await document.get_page(1)).get_annotations()
    finally:
        document.close()

    [link] = annotations
    assert link["subtype"] == "Link"
    assert link["rect"] == pytest.approx([100, 647, 200, 667], abs=0.5)


@pytest.mark.asyncio
async def test_link_over_text_is_recoverable(renderer):
    result = await analyze_bytes(make_pdf(add_link_over_text), renderer)

    [candidate] = result.all_candidates
    assert candidate.kind is RegionKind.ANNOTATION
    assert candidate.recoverable is True
    assert candidate.recovered_text == "SECRET"


@pytest.mark.asyncio
async def test_placed_black_image(renderer):
    def build(page):
        page.insert_image(fitz.Rect(100, 100, 140, 120), stream=black_png())

    result = await analyze_bytes(make_pdf(build), renderer)

    [candidate] = result.all_candidates
    assert candidate.kind is RegionKind.IMAGE
    assert candidate.rect.width == pytest.approx(60, abs=1)
    assert candidate.rect.height == pytest.approx(30, abs=1)
    assert result.counts.images == 1


@pytest.mark.asyncio
async def test_plain_text_page_has_no_candidates(renderer):
    sink = RecordingSink()
    data = make_pdf(lambda page: page.insert_text((72, 144), "Nothing to hide", fontsize=12))

    result = await analyze_bytes(data, renderer, sink)

    assert result.all_candidates == []
    assert sink.statuses[-1] == STATUS_COMPLETE
    assert sink.progress == [2, 0, 100, 100]


@pytest.mark.asyncio
async def test_invalid_bytes_fail_to_load(renderer):
    sink = RecordingSink()
    result = await analyze_bytes(b"this is not a pdf", renderer, sink)

    assert result.error
    assert result.pages == []
    assert sink.statuses[-1] == STATUS_ERROR


@pytest.mark.asyncio
async def test_previews_are_written(renderer, tmp_path):
    def build(page):
        page.draw_rect(fitz.Rect(70, 130, 150, 150), color=(0, 0, 0), fill=(0, 0, 0))

    result = await analyze_bytes(make_pdf(build), renderer, doc_id="memo", output_dir=tmp_path)

    assert result.pages[0].preview_image == "pages/memo_p1.png"
    with Image.open(tmp_path / "pages" / "memo_p1.png") as preview:
        assert preview.size == (918, 1188)
