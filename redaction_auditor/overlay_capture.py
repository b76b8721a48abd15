"""
Overlay capture during page rendering.

Wraps a drawing surface so that every image blit and solid-fill rectangle
drawn while a page renders is observed, mapped into viewport space and
recorded as an OverlayRegion when it plausibly is a redaction mark. The
wrapped surface always performs the original draw.

Capture helpers never raise: each intercepted call yields a region, a
Skip (filtered out by a heuristic) or a CaptureError (the call's arguments
or the surface state could not be interpreted).
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence, Union

from .models import AnalysisParams, OverlayRegion, RegionKind, Viewport
from .geometry import clamp, is_layout_like
from .transform import map_rect, surface_transform


logger = logging.getLogger(__name__)

CAPTURE_FAILURES = (ValueError, TypeError, ArithmeticError, IndexError, AttributeError)


@dataclass(frozen=True)
class Skip:
    """An intercepted draw that was filtered out."""
    operation: str
    reason: str


@dataclass(frozen=True)
class CaptureError:
    """An intercepted draw whose region could not be computed."""
    operation: str
    message: str


CaptureOutcome = Union[OverlayRegion, Skip, CaptureError]


def parse_style_alpha(style) -> float:
    """
    Alpha channel of an rgba(...) fill style; 1.0 for anything else.
    """
    if not isinstance(style, str):
        return 1.0
    s = style.strip().lower()
    if not s.startswith("rgba("):
        return 1.0
    parts = [p.strip() for p in s[5:].rstrip(")").split(",")]
    if len(parts) < 4:
        return 1.0
    try:
        alpha = float(parts[3])
    except ValueError:
        return 1.0
    return alpha if math.isfinite(alpha) else 1.0


def effective_alpha(global_alpha, style_alpha: float = 1.0) -> float:
    try:
        ga = float(global_alpha)
    except (TypeError, ValueError):
        ga = 1.0
    return ga * style_alpha


def _bitmap_size(image) -> tuple[float, float]:
    shape = getattr(image, "shape", None)
    if shape is not None and len(shape) >= 2:
        return (float(shape[1]), float(shape[0]))
    return (float(getattr(image, "width", 0) or 0), float(getattr(image, "height", 0) or 0))


def blit_destination(args: Sequence) -> tuple[float, float, float, float]:
    """
    Destination rectangle of a draw_image call.

    Args:
        args: Positional arguments including the bitmap, in one of the shapes
            (img, dx, dy), (img, dx, dy, dw, dh) or
            (img, sx, sy, sw, sh, dx, dy, dw, dh)

    Returns:
        (dx, dy, dw, dh) in the surface's local space
    """
    if len(args) == 3:
        dw, dh = _bitmap_size(args[0])
        return (args[1], args[2], dw, dh)
    if len(args) == 5:
        return (args[1], args[2], args[3], args[4])
    if len(args) == 9:
        return (args[5], args[6], args[7], args[8])
    raise TypeError(f"Unsupported draw_image call with {len(args)} arguments")


def capture_region(
    operation: str,
    local_rect: tuple[float, float, float, float],
    kind: RegionKind,
    alpha: float,
    surface,
    viewport: Viewport,
    params: AnalysisParams
) -> CaptureOutcome:
    """
    Run the capture filters for one intercepted draw.

    Filters, in order: minimum draw size, visibility floor, empty area after
    mapping and clamping, layout-like shape.
    """
    x, y, w, h = (float(v) for v in local_rect)
    if not all(math.isfinite(v) for v in (x, y, w, h, alpha)):
        raise ValueError(f"non-finite draw geometry {(x, y, w, h)} alpha={alpha}")

    if w < params.min_draw_width or h < params.min_draw_height:
        return Skip(operation, f"below minimum draw size ({w:g}x{h:g})")

    if alpha < params.min_effective_alpha:
        return Skip(operation, f"near-invisible (alpha {alpha:.2f})")

    rect = clamp(map_rect(surface_transform(surface), x, y, w, h), viewport)
    if not all(math.isfinite(v) for v in (rect.x, rect.y, rect.width, rect.height)):
        raise ValueError("transform produced non-finite coordinates")

    if rect.width <= 0 or rect.height <= 0:
        return Skip(operation, "empty after clamping to page")

    if is_layout_like(rect, viewport, params):
        return Skip(operation, "layout-like")

    return OverlayRegion(rect=rect, kind=kind, effective_alpha=alpha)


def capture_image_blit(
    args: Sequence,
    surface,
    viewport: Viewport,
    params: AnalysisParams
) -> CaptureOutcome:
    try:
        destination = blit_destination(args)
        # Bitmaps carry no fill alpha of their own
        alpha = effective_alpha(getattr(surface, "global_alpha", 1.0))
        return capture_region(
            "draw_image", destination, RegionKind.IMAGE, alpha, surface, viewport, params
        )
    except CAPTURE_FAILURES as e:
        return CaptureError("draw_image", str(e))


def capture_fill_rect(
    rect: tuple[float, float, float, float],
    surface,
    viewport: Viewport,
    params: AnalysisParams
) -> CaptureOutcome:
    try:
        style_alpha = parse_style_alpha(getattr(surface, "fill_style", None))
        alpha = effective_alpha(getattr(surface, "global_alpha", 1.0), style_alpha)
        return capture_region(
            "fill_rect", rect, RegionKind.VECTOR, alpha, surface, viewport, params
        )
    except CAPTURE_FAILURES as e:
        return CaptureError("fill_rect", str(e))


@dataclass
class CaptureLog:
    """Everything observed on one page's surface."""
    regions: list[OverlayRegion] = field(default_factory=list)
    skipped: list[Skip] = field(default_factory=list)
    errors: list[CaptureError] = field(default_factory=list)

    def record(self, outcome: CaptureOutcome) -> None:
        if isinstance(outcome, OverlayRegion):
            self.regions.append(outcome)
        elif isinstance(outcome, Skip):
            self.skipped.append(outcome)
        else:
            self.errors.append(outcome)

    @property
    def vector_count(self) -> int:
        return sum(1 for r in self.regions if r.kind is RegionKind.VECTOR)

    @property
    def image_count(self) -> int:
        return sum(1 for r in self.regions if r.kind is RegionKind.IMAGE)


class CaptureSurface:
    """
    A drawing surface that records overlay regions while delegating to
    an underlying surface.

    Only draw_image and fill_rect are observed; every other attribute is
    forwarded unchanged. Once closed the wrapper stops recording but keeps
    delegating.
    """

    def __init__(
        self,
        surface,
        viewport: Viewport,
        params: AnalysisParams,
        log: Optional[CaptureLog] = None
    ):
        self._surface = surface
        self._viewport = viewport
        self._params = params
        self.log = log if log is not None else CaptureLog()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def global_alpha(self):
        return self._surface.global_alpha

    @global_alpha.setter
    def global_alpha(self, value) -> None:
        self._surface.global_alpha = value

    @property
    def fill_style(self):
        return self._surface.fill_style

    @fill_style.setter
    def fill_style(self, value) -> None:
        self._surface.fill_style = value

    def _observe(self, operation: str, capture: Callable[[], CaptureOutcome]) -> None:
        if not self._active:
            return
        try:
            outcome = capture()
        except Exception as e:
            logger.warning(f"Unexpected error capturing {operation}: {e!r}")
            outcome = CaptureError(operation, repr(e))
        self.log.record(outcome)

    def draw_image(self, *args):
        try:
            self._observe(
                "draw_image",
                lambda: capture_image_blit(args, self._surface, self._viewport, self._params),
            )
        finally:
            self._surface.draw_image(*args)

    def fill_rect(self, x, y, w, h):
        try:
            self._observe(
                "fill_rect",
                lambda: capture_fill_rect((x, y, w, h), self._surface, self._viewport, self._params),
            )
        finally:
            self._surface.fill_rect(x, y, w, h)

    def close(self) -> None:
        self._active = False

    def __getattr__(self, name):
        # Only reached for attributes not defined on the wrapper
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._surface, name)


@contextmanager
def capture_overlays(
    surface,
    viewport: Viewport,
    params: Optional[AnalysisParams] = None
) -> Iterator[CaptureSurface]:
    """
    Observe one page render.

    Usage:
        with capture_overlays(surface, viewport, params) as capture:
            await page.render(capture, viewport)
        regions = capture.log.regions
    """
    capture = CaptureSurface(surface, viewport, params or AnalysisParams())
    try:
        yield capture
    finally:
        capture.close()
        log = capture.log
        logger.debug(
            f"Capture closed: {len(log.regions)} regions, "
            f"{len(log.skipped)} skipped, {len(log.errors)} errors"
        )
