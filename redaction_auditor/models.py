"""
Data models for overlay detection and recoverability analysis.

Defines dataclasses for page-space rectangles, captured overlay regions,
text items, redaction candidates and per-page / per-document results.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional
from enum import Enum


# Render scale factor (viewport pixels per PDF point)
DEFAULT_SCALE = 1.5

# Capture: minimum destination size of an intercepted draw (icon/noise suppression)
MIN_DRAW_WIDTH = 12.0
MIN_DRAW_HEIGHT = 8.0

# Capture: near-invisible draws are not redactions
MIN_EFFECTIVE_ALPHA = 0.10

# Layout-like heuristic
NOISE_MIN_WIDTH = 10.0
NOISE_MIN_HEIGHT = 8.0
MAX_AREA_RATIO = 0.35
MAX_SPAN_RATIO = 0.95

# Deduplication tolerance in viewport pixels
DEDUPE_EPSILON = 1.5

# Text boxes
MIN_TEXT_BOX_HEIGHT = 12.0
MIN_TEXT_BOX_WIDTH = 1.0


class RegionKind(Enum):
    """Source of an overlay region."""
    ANNOTATION = "annotation"
    VECTOR = "vector"
    IMAGE = "image"


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle in viewport pixel space.

    Origin is the top-left corner of the rendered page.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Viewport:
    """
    A rendered page's coordinate frame.

    `transform` maps PDF user space (origin bottom-left, points) to
    viewport space (origin top-left, pixels).
    """
    width: float
    height: float
    scale: float
    transform: tuple[float, float, float, float, float, float]

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class OverlayRegion:
    """A region captured from an annotation or a compositing draw."""
    rect: Rect
    kind: RegionKind
    effective_alpha: float = 1.0


@dataclass(frozen=True)
class TextRun:
    """A run from the renderer's text-content stream, in PDF user space."""
    text: str
    transform: tuple[float, float, float, float, float, float]
    width: float
    height: float


@dataclass(frozen=True)
class TextItem:
    """A non-empty text run with its box in viewport space."""
    text: str
    box: Rect


@dataclass(frozen=True)
class RedactionCandidate:
    """
    A deduplicated overlay region on one page.

    `recoverable` stays None until the candidate has been classified.
    """
    rect: Rect
    kind: RegionKind
    recoverable: Optional[bool] = None
    recovered_text: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "x": self.rect.x,
            "y": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
            "kind": self.kind.value,
            "recoverable": bool(self.recoverable),
        }
        if self.recoverable:
            data["recovered_text"] = self.recovered_text
        return data


@dataclass
class RegionCounts:
    """Running counts of captured regions by kind."""
    annotations: int = 0
    vectors: int = 0
    images: int = 0


@dataclass
class DocumentTotals:
    """Document-level totals, final only after the last page."""
    total_redactions: int = 0
    recoverable_count: int = 0

    @property
    def recovery_percent(self) -> int:
        if not self.total_redactions:
            return 0
        return round(self.recoverable_count / self.total_redactions * 100)


@dataclass
class PageResult:
    """Results from processing a single page."""
    page_num: int
    annotation_count: int = 0
    vector_count: int = 0
    image_count: int = 0
    capture_errors: int = 0
    candidates: list[RedactionCandidate] = field(default_factory=list)
    preview_image: str = ""  # Relative to the output directory

    @property
    def candidate_count(self) -> int:
        return len(self.candidates)

    @property
    def recoverable_count(self) -> int:
        return sum(1 for c in self.candidates if c.recoverable)


@dataclass
class DocumentResult:
    """Results from processing a single document."""
    doc_id: str
    total_pages: int = 0
    pages: list[PageResult] = field(default_factory=list)
    totals: DocumentTotals = field(default_factory=DocumentTotals)
    counts: RegionCounts = field(default_factory=RegionCounts)
    error: Optional[str] = None

    @property
    def all_candidates(self) -> list[RedactionCandidate]:
        candidates = []
        for page in self.pages:
            candidates.extend(page.candidates)
        return candidates


@dataclass
class AnalysisParams:
    """Heuristic thresholds and render settings for overlay analysis."""
    scale: float = DEFAULT_SCALE
    min_draw_width: float = MIN_DRAW_WIDTH
    min_draw_height: float = MIN_DRAW_HEIGHT
    min_effective_alpha: float = MIN_EFFECTIVE_ALPHA
    noise_min_width: float = NOISE_MIN_WIDTH
    noise_min_height: float = NOISE_MIN_HEIGHT
    max_area_ratio: float = MAX_AREA_RATIO
    max_span_ratio: float = MAX_SPAN_RATIO
    dedupe_epsilon: float = DEDUPE_EPSILON
    min_text_box_height: float = MIN_TEXT_BOX_HEIGHT
    min_text_box_width: float = MIN_TEXT_BOX_WIDTH

    def to_dict(self) -> dict:
        return asdict(self)
