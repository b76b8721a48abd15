"""
Recoverability classification.

Builds text boxes from the page's text-content stream and checks each
redaction candidate against them. A candidate that overlaps at least one
non-empty text item still has its text in the document; that text is
attached as the recovered text.
"""

import re
from dataclasses import replace
from typing import Iterable, Optional

from .models import AnalysisParams, RedactionCandidate, Rect, TextItem, TextRun, Viewport
from .geometry import intersects
from .transform import compose


_WHITESPACE = re.compile(r"\s+")


def build_text_items(
    runs: Iterable[TextRun],
    viewport: Viewport,
    params: Optional[AnalysisParams] = None
) -> list[TextItem]:
    """
    Convert text runs into viewport-space text items.

    Each run's transform is mapped through the viewport transform; its
    translation is the baseline origin. Boxes grow upward from the baseline
    and get a minimum height so zero-height runs still have an extent.

    Args:
        runs: Text runs in stream order
        viewport: Page viewport
        params: Box size floors and scale

    Returns:
        Text items for runs with non-blank text, in stream order
    """
    params = params or AnalysisParams()
    items = []

    for run in runs:
        if not run.text or not run.text.strip():
            continue

        tx = compose(viewport.transform, run.transform)
        width = max((run.width or 0) * viewport.scale, params.min_text_box_width)
        height = max((run.height or 0) * viewport.scale, params.min_text_box_height)

        items.append(TextItem(
            text=run.text,
            box=Rect(tx.e, tx.f - height, width, height)
        ))

    return items


def recovered_text(candidate: RedactionCandidate, items: Iterable[TextItem]) -> str:
    """Space-joined, whitespace-collapsed text of every item under the candidate."""
    hits = [item.text for item in items if intersects(item.box, candidate.rect)]
    return _WHITESPACE.sub(" ", " ".join(hits)).strip()


def classify_candidates(
    candidates: Iterable[RedactionCandidate],
    items: list[TextItem]
) -> list[RedactionCandidate]:
    """
    Mark each candidate recoverable or unrecoverable.

    Args:
        candidates: Unclassified candidates of one page
        items: Text items of the same page

    Returns:
        Classified copies of the candidates, same order
    """
    classified = []
    for candidate in candidates:
        text = recovered_text(candidate, items)
        if text:
            classified.append(replace(candidate, recoverable=True, recovered_text=text))
        else:
            classified.append(replace(candidate, recoverable=False, recovered_text=None))
    return classified
