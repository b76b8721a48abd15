#!/usr/bin/env python3
"""
PDF Redaction Auditor CLI

Scans PDF files for overlays that look like redactions and reports which
of them still have recoverable text underneath.

Usage:
    python audit.py ./pdfs/ --output ./report/
"""

import asyncio
import sys
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

import click

from redaction_auditor.models import AnalysisParams
from redaction_auditor.pdf_document import PdfRenderer
from redaction_auditor.pipeline import analyze_document
from redaction_auditor.progress import ConsoleProgressSink
from redaction_auditor.token_store import TokenStore
from redaction_auditor.output_writer import write_all_outputs


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEFAULTS = AnalysisParams()


def collect_pdfs(paths: tuple[Path, ...]) -> list[Path]:
    """Expand directories into the PDFs they contain (recursively)."""
    pdfs = []
    for path in paths:
        if path.is_dir():
            pdfs.extend(sorted(
                p for p in path.rglob("*")
                if p.is_file() and p.suffix.lower() == ".pdf"
            ))
        else:
            pdfs.append(path)
    return pdfs


@click.command()
@click.argument(
    "inputs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path)
)
@click.option(
    "--output", "-o",
    "output_dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory for report.json, report.csv and pages/"
)
@click.option(
    "--scale",
    default=DEFAULTS.scale,
    type=float,
    envvar="REDACTION_AUDIT_SCALE",
    help=f"Render scale (pixels per PDF point). Default: {DEFAULTS.scale}"
)
@click.option(
    "--min-alpha",
    default=DEFAULTS.min_effective_alpha,
    type=click.FloatRange(0.0, 1.0),
    envvar="REDACTION_AUDIT_MIN_ALPHA",
    help=f"Ignore draws fainter than this effective alpha. Default: {DEFAULTS.min_effective_alpha}"
)
@click.option(
    "--min-draw-size",
    default=(DEFAULTS.min_draw_width, DEFAULTS.min_draw_height),
    type=(float, float),
    help="Minimum width and height of a captured draw. Default: 12 8"
)
@click.option(
    "--max-area-ratio",
    default=DEFAULTS.max_area_ratio,
    type=click.FloatRange(0.0, 1.0),
    help=f"Regions above this share of the page are layout. Default: {DEFAULTS.max_area_ratio}"
)
@click.option(
    "--max-span-ratio",
    default=DEFAULTS.max_span_ratio,
    type=click.FloatRange(0.0, 1.0),
    help=f"Regions spanning more of the page width/height are layout. Default: {DEFAULTS.max_span_ratio}"
)
@click.option(
    "--dedupe-epsilon",
    default=DEFAULTS.dedupe_epsilon,
    type=float,
    help=f"Pixel tolerance for merging duplicate regions. Default: {DEFAULTS.dedupe_epsilon}"
)
@click.option(
    "--min-text-height",
    default=DEFAULTS.min_text_box_height,
    type=float,
    help=f"Minimum text box height in pixels. Default: {DEFAULTS.min_text_box_height}"
)
@click.option(
    "--show-text",
    is_flag=True,
    help="Print the recovered text of each recoverable redaction"
)
@click.option(
    "--no-images",
    is_flag=True,
    help="Skip page previews (faster processing)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output"
)
def main(
    inputs: tuple[Path, ...],
    output_dir: Optional[Path],
    scale: float,
    min_alpha: float,
    min_draw_size: tuple[float, float],
    max_area_ratio: float,
    max_span_ratio: float,
    dedupe_epsilon: float,
    min_text_height: float,
    show_text: bool,
    no_images: bool,
    verbose: bool,
):
    """
    Find cosmetic redactions in PDF files.

    Every overlay (annotation, filled rectangle or image) drawn on a page is
    a candidate; a candidate is recoverable when the page's text layer still
    holds text underneath it.

    Outputs (with --output):

    \b
    - report.json: Per document, page and candidate results
    - report.csv: One row per candidate
    - pages/: Page previews with candidates outlined (unless --no-images)
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    params = AnalysisParams(
        scale=scale,
        min_draw_width=min_draw_size[0],
        min_draw_height=min_draw_size[1],
        min_effective_alpha=min_alpha,
        max_area_ratio=max_area_ratio,
        max_span_ratio=max_span_ratio,
        dedupe_epsilon=dedupe_epsilon,
        min_text_box_height=min_text_height,
    )

    pdfs = collect_pdfs(inputs)
    if not pdfs:
        click.echo(click.style("Error: No PDF files found", fg="red"))
        sys.exit(1)

    click.echo(f"Found {len(pdfs)} PDF file(s) to scan")
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
    preview_dir = None if (no_images or output_dir is None) else output_dir

    store = TokenStore()
    renderer = PdfRenderer()
    documents = []
    start_time = datetime.now()

    try:
        for pdf_path in pdfs:
            token = store.put(pdf_path.read_bytes())
            sink = ConsoleProgressSink(
                label=pdf_path.name,
                show_text=show_text,
                disable_bar=not sys.stderr.isatty(),
            )
            result = asyncio.run(analyze_document(
                token,
                store,
                renderer,
                sink,
                params,
                doc_id=pdf_path.stem,
                output_dir=preview_dir,
            ))
            documents.append(result)
    except KeyboardInterrupt:
        click.echo()
        click.echo(click.style("Scan interrupted by user", fg="yellow"))
        sys.exit(130)

    elapsed = datetime.now() - start_time
    failed = [d for d in documents if d.error]

    click.echo()
    click.echo("Results:")
    click.echo(f"  Time elapsed:        {elapsed}")
    click.echo(f"  Documents scanned:   {len(documents) - len(failed)}/{len(documents)}")
    click.echo(f"  Total redactions:    {sum(d.totals.total_redactions for d in documents)}")
    click.echo(f"  Recoverable:         {sum(d.totals.recoverable_count for d in documents)}")

    if output_dir is not None:
        try:
            paths = write_all_outputs(documents, params, output_dir)
        except OSError as e:
            click.echo(click.style(f"Error writing outputs: {e}", fg="red"))
            sys.exit(1)
        click.echo(f"  {paths['report_json']}")
        click.echo(f"  {paths['report_csv']}")

    if failed:
        click.echo(click.style(f"  Failed documents: {len(failed)}", fg="yellow"))
        for doc in failed:
            click.echo(f"    - {doc.doc_id}: {doc.error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
