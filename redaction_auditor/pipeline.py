"""
Page-by-page orchestration of a document analysis.

Pages run strictly one after another: render under overlay capture,
extract annotations and text, aggregate, classify, report. Between pages
control goes back to the event loop once so progress stays observable.
The first failing page stops the document.
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .models import (
    AnalysisParams, DocumentResult, PageResult, RegionCounts, Viewport,
)
from .annotations import extract_annotation_regions
from .overlay_capture import capture_overlays
from .recoverability import build_text_items, classify_candidates
from .region_merger import aggregate_regions
from .surface import new_surface_for
from .token_store import TokenStore, MissingTokenError, ExpiredTokenError
from .progress import ProgressSink, RecordingSink
from .output_writer import save_page_preview


logger = logging.getLogger(__name__)

STATUS_NO_TOKEN = "No document token found. Upload a PDF first."
STATUS_EXPIRED = "Document expired. Please re-upload."
STATUS_LOADING = "Loading PDF…"
STATUS_COMPLETE = "Analysis complete"
STATUS_ERROR = "Error loading PDF (see log)"


class PageState(Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    EXTRACTING = "extracting"
    AGGREGATING = "aggregating"
    CLASSIFYING = "classifying"
    DONE = "done"


_STATE_ORDER = list(PageState)


class PageRun:
    """
    State of one page moving through the pipeline.

    States only advance one step at a time, so classification can never
    start before the page's render has finished.
    """

    def __init__(self, page_num: int):
        self.page_num = page_num
        self.state = PageState.IDLE
        self.history = [PageState.IDLE]

    def advance(self, state: PageState) -> None:
        expected = _STATE_ORDER.index(self.state) + 1
        if expected >= len(_STATE_ORDER) or _STATE_ORDER[expected] is not state:
            raise RuntimeError(
                f"Page {self.page_num}: illegal transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.history.append(state)
        logger.debug(f"Page {self.page_num}: {state.value}")


async def _next_frame() -> None:
    """Yield to the event loop between pages."""
    await asyncio.sleep(0)


async def process_page(
    page,
    page_num: int,
    params: AnalysisParams,
    doc_id: str = "",
    output_dir: Optional[Path] = None,
    surface_factory: Callable[[Viewport], object] = new_surface_for,
    run: Optional[PageRun] = None
) -> PageResult:
    """
    Analyse a single page.

    Args:
        page: Renderer page (get_viewport, render, get_annotations,
            get_text_content)
        page_num: Page number (1-indexed)
        params: Analysis parameters
        doc_id: Document identifier (preview file names)
        output_dir: Where to save the outlined page preview (optional)
        surface_factory: Builds the drawing surface for a viewport
        run: State tracker (a fresh one when omitted)

    Returns:
        PageResult with classified candidates
    """
    run = run or PageRun(page_num)
    viewport = page.get_viewport(params.scale)
    surface = surface_factory(viewport)

    run.advance(PageState.RENDERING)
    with capture_overlays(surface, viewport, params) as capture:
        await page.render(capture, viewport)
    log = capture.log

    for error in log.errors:
        logger.warning(f"Page {page_num}: capture failed in {error.operation}: {error.message}")
    for skip in log.skipped:
        logger.debug(f"Page {page_num}: skipped {skip.operation} ({skip.reason})")

    run.advance(PageState.EXTRACTING)
    annotation_regions = extract_annotation_regions(
        await page.get_annotations(), viewport, params
    )
    text_items = build_text_items(await page.get_text_content(), viewport, params)

    run.advance(PageState.AGGREGATING)
    candidates = aggregate_regions(annotation_regions, log.regions, viewport, params)

    run.advance(PageState.CLASSIFYING)
    candidates = classify_candidates(candidates, text_items)

    result = PageResult(
        page_num=page_num,
        annotation_count=len(annotation_regions),
        vector_count=log.vector_count,
        image_count=log.image_count,
        capture_errors=len(log.errors),
        candidates=candidates,
    )

    image = getattr(surface, "image", None)
    if output_dir is not None and image is not None:
        result.preview_image = save_page_preview(image, candidates, doc_id, page_num, output_dir)

    run.advance(PageState.DONE)
    return result


async def analyze_document(
    token: Optional[str],
    store: TokenStore,
    renderer,
    sink: Optional[ProgressSink] = None,
    params: Optional[AnalysisParams] = None,
    doc_id: Optional[str] = None,
    output_dir: Optional[Path] = None,
    surface_factory: Callable[[Viewport], object] = new_surface_for
) -> DocumentResult:
    """
    Analyse the document handed over under a token.

    Args:
        token: Byte-transfer token
        store: Store holding the document bytes (the entry is consumed)
        renderer: Object with `async load(bytes)` returning a document with
            `page_count`, `async get_page(n)` and `close()`
        sink: Receives status, progress, counts, pages and final totals
        params: Analysis parameters
        doc_id: Name used in results and preview files (defaults to token)
        output_dir: Directory for page previews (optional)
        surface_factory: Builds a drawing surface for a viewport

    Returns:
        DocumentResult; on failure `error` is set and no pages are returned
    """
    params = params or AnalysisParams()
    sink = sink if sink is not None else RecordingSink()
    result = DocumentResult(doc_id=doc_id or token or "")

    try:
        data = store.take(token)
    except MissingTokenError:
        return _input_error(result, sink, STATUS_NO_TOKEN)
    except ExpiredTokenError:
        return _input_error(result, sink, STATUS_EXPIRED)

    sink.set_status(STATUS_LOADING)
    sink.set_progress(2)
    sink.set_counts(RegionCounts())
    await _next_frame()

    document = None
    try:
        document = await renderer.load(data)
        total_pages = document.page_count
        result.total_pages = total_pages
        counts = result.counts
        totals = result.totals

        for page_num in range(1, total_pages + 1):
            sink.set_status(f"Scanning page {page_num} of {total_pages}")
            sink.set_progress(round((page_num - 1) / total_pages * 100))
            sink.set_counts(counts)
            await _next_frame()

            page = await document.get_page(page_num)
            page_result = await process_page(
                page,
                page_num,
                params,
                doc_id=result.doc_id,
                output_dir=output_dir,
                surface_factory=surface_factory,
            )

            counts.annotations += page_result.annotation_count
            counts.vectors += page_result.vector_count
            counts.images += page_result.image_count
            totals.total_redactions += page_result.candidate_count
            totals.recoverable_count += page_result.recoverable_count
            result.pages.append(page_result)

            logger.info(
                f"{result.doc_id} page {page_num}: found {page_result.candidate_count} "
                f"redactions ({page_result.recoverable_count} recoverable)"
            )
            sink.show_page(page_result)
            sink.set_progress(round(page_num / total_pages * 100))
            sink.set_counts(counts)
            await _next_frame()

    except Exception as e:
        logger.error(f"Error analysing document {result.doc_id}: {e}")
        sink.set_status(STATUS_ERROR)
        sink.fail(str(e))
        return DocumentResult(
            doc_id=result.doc_id,
            total_pages=result.total_pages,
            error=str(e)
        )
    finally:
        if document is not None:
            document.close()

    sink.set_status(STATUS_COMPLETE)
    sink.set_progress(100)
    sink.set_final_totals(result.totals)
    return result


async def analyze_bytes(
    data: bytes,
    renderer,
    sink: Optional[ProgressSink] = None,
    params: Optional[AnalysisParams] = None,
    doc_id: str = "",
    output_dir: Optional[Path] = None
) -> DocumentResult:
    """
    Hand raw bytes over through a private token store and analyse them.
    """
    store = TokenStore()
    token = store.put(data)
    return await analyze_document(
        token, store, renderer, sink, params, doc_id=doc_id or None, output_dir=output_dir
    )


def _input_error(result: DocumentResult, sink: ProgressSink, message: str) -> DocumentResult:
    logger.error(f"{message} (token {result.doc_id!r})")
    sink.set_status(message)
    sink.fail(message)
    result.error = message
    return result
