"""
Output generation for report.json, report.csv and page previews.

Previews are the rendered page with every candidate outlined: green when
the text under it is recoverable, red when it is not.
"""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Sequence

import cv2
import numpy as np
from PIL import Image

from .models import AnalysisParams, DocumentResult, RedactionCandidate


logger = logging.getLogger(__name__)

RECOVERABLE_BGR = (0, 170, 0)
UNRECOVERABLE_BGR = (0, 0, 220)

CSV_FIELDS = [
    "doc_id", "page_num", "candidate_index", "kind",
    "x", "y", "width", "height",
    "recoverable", "recovered_text",
]


def document_to_dict(doc: DocumentResult) -> dict:
    return {
        "doc_id": doc.doc_id,
        "total_pages": doc.total_pages,
        "total_redactions": doc.totals.total_redactions,
        "recoverable_count": doc.totals.recoverable_count,
        "recovery_percent": doc.totals.recovery_percent,
        "counts": {
            "annotations": doc.counts.annotations,
            "vectors": doc.counts.vectors,
            "images": doc.counts.images,
        },
        "error": doc.error,
        "pages": [
            {
                "page_num": page.page_num,
                "annotation_count": page.annotation_count,
                "vector_count": page.vector_count,
                "image_count": page.image_count,
                "candidate_count": page.candidate_count,
                "capture_errors": page.capture_errors,
                "preview_image": page.preview_image,
                "candidates": [c.to_dict() for c in page.candidates],
            }
            for page in doc.pages
        ],
    }


def write_report_json(
    documents: Sequence[DocumentResult],
    params: AnalysisParams,
    output_path: Path
) -> None:
    """
    Write the full report to JSON.

    Args:
        documents: Analysed documents
        params: Analysis parameters used
        output_path: Path to write JSON file
    """
    report = {
        "analysis_timestamp": datetime.now().isoformat(),
        "parameters": params.to_dict(),
        "summary": {
            "total_documents": len(documents),
            "failed_documents": sum(1 for d in documents if d.error),
            "total_redactions": sum(d.totals.total_redactions for d in documents),
            "recoverable_count": sum(d.totals.recoverable_count for d in documents),
        },
        "documents": [document_to_dict(d) for d in documents],
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)


def write_report_csv(documents: Sequence[DocumentResult], output_path: Path) -> None:
    """
    Write one CSV row per candidate (header only when there are none).
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for doc in documents:
            for page in doc.pages:
                for index, candidate in enumerate(page.candidates):
                    writer.writerow({
                        "doc_id": doc.doc_id,
                        "page_num": page.page_num,
                        "candidate_index": index,
                        "kind": candidate.kind.value,
                        "x": round(candidate.rect.x, 2),
                        "y": round(candidate.rect.y, 2),
                        "width": round(candidate.rect.width, 2),
                        "height": round(candidate.rect.height, 2),
                        "recoverable": bool(candidate.recoverable),
                        "recovered_text": candidate.recovered_text or "",
                    })


def draw_candidate_outlines(
    page_image: np.ndarray,
    candidates: Sequence[RedactionCandidate],
    thickness: int = 2
) -> np.ndarray:
    """
    Copy of the page image with each candidate outlined.
    """
    canvas = page_image.copy()
    for candidate in candidates:
        r = candidate.rect
        colour = RECOVERABLE_BGR if candidate.recoverable else UNRECOVERABLE_BGR
        cv2.rectangle(
            canvas,
            (int(r.x), int(r.y)),
            (int(r.x + r.width), int(r.y + r.height)),
            colour,
            thickness,
        )
    return canvas


def generate_preview_filename(doc_id: str, page_num: int) -> str:
    # Sanitize doc_id for filesystem
    safe_doc_id = "".join(c if c.isalnum() or c in "._-" else "_" for c in doc_id)
    return f"{safe_doc_id}_p{page_num}.png"


def save_page_preview(
    page_image: np.ndarray,
    candidates: Sequence[RedactionCandidate],
    doc_id: str,
    page_num: int,
    output_dir: Path
) -> str:
    """
    Save an outlined page preview under output_dir/pages/.

    Returns:
        Path relative to output_dir, or "" if the image could not be saved
    """
    filename = generate_preview_filename(doc_id, page_num)
    path = output_dir / "pages" / filename

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        outlined = draw_candidate_outlines(page_image, candidates)
        # Save using PIL (OpenCV arrays are BGR)
        Image.fromarray(cv2.cvtColor(outlined, cv2.COLOR_BGR2RGB)).save(str(path), format="PNG")
    except (OSError, ValueError) as e:
        logger.warning(f"Could not save preview {path}: {e}")
        return ""

    return f"pages/{filename}"


def write_all_outputs(
    documents: Sequence[DocumentResult],
    params: AnalysisParams,
    output_dir: Path
) -> dict[str, Path]:
    """
    Write report.json and report.csv.

    Returns:
        Dictionary mapping output type to file path
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "report_json": output_dir / "report.json",
        "report_csv": output_dir / "report.csv",
    }

    write_report_json(documents, params, paths["report_json"])
    write_report_csv(documents, paths["report_csv"])

    return paths
