"""
Raster drawing surface backed by a numpy BGR image.

Provides the compositing primitives a renderer draws a page with
(fill_rect, fill_path, draw_image, put_image_data) together with the
transform, global alpha and fill style state they read. Shapes are
rasterised with OpenCV and alpha-blended onto the page image.
"""

import re
from typing import Optional, Sequence

import cv2
import numpy as np

from .transform import Matrix, IDENTITY, as_matrix, compose, apply_to_point


NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
}

_FUNC_COLOR = re.compile(r"^(rgba?)\((.*)\)$")


def parse_color(style) -> tuple[int, int, int, float]:
    """
    Parse a CSS-like colour expression.

    Accepts #rgb, #rrggbb, rgb(r, g, b), rgba(r, g, b, a) and a few
    named colours. Anything else paints opaque black.

    Returns:
        (r, g, b, alpha) with channels 0-255 and alpha 0-1
    """
    if not isinstance(style, str):
        return (0, 0, 0, 1.0)
    s = style.strip().lower()

    if s in NAMED_COLORS:
        return (*NAMED_COLORS[s], 1.0)

    if s.startswith("#"):
        digits = s[1:]
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        if len(digits) == 6:
            try:
                return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16), 1.0)
            except ValueError:
                pass
        return (0, 0, 0, 1.0)

    match = _FUNC_COLOR.match(s)
    if match:
        parts = [p.strip() for p in match.group(2).split(",")]
        try:
            r, g, b = (int(round(float(p))) for p in parts[:3])
            alpha = float(parts[3]) if len(parts) > 3 else 1.0
        except ValueError:
            return (0, 0, 0, 1.0)
        return (
            max(0, min(255, r)),
            max(0, min(255, g)),
            max(0, min(255, b)),
            max(0.0, min(1.0, alpha)),
        )

    return (0, 0, 0, 1.0)


def _as_bgr(image: np.ndarray) -> np.ndarray:
    """Normalise a bitmap to 3-channel BGR uint8."""
    image = np.asarray(image)
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


class RasterSurface:
    """
    A page-sized drawing surface.

    Coordinates passed to the drawing primitives are in the surface's
    local space and go through the current transform, like an HTML
    canvas 2D context.
    """

    def __init__(
        self,
        width: int,
        height: int,
        background: tuple[int, int, int] = (255, 255, 255)
    ):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        r, g, b = background
        self.image = np.full((height, width, 3), (b, g, r), dtype=np.uint8)
        self.global_alpha = 1.0
        self.fill_style = "#000000"
        self._transform = IDENTITY
        self._stack: list[tuple[Matrix, float, str]] = []

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    # -- state --------------------------------------------------------------

    def get_transform(self) -> Matrix:
        return self._transform

    def set_transform(self, *args) -> None:
        """Replace the current transform (a Matrix or six numbers)."""
        self._transform = as_matrix(args[0] if len(args) == 1 else args)

    def transform(self, *args) -> None:
        """Multiply the current transform by another; the new one applies first."""
        m = as_matrix(args[0] if len(args) == 1 else args)
        self._transform = compose(self._transform, m)

    def save(self) -> None:
        self._stack.append((self._transform, self.global_alpha, self.fill_style))

    def restore(self) -> None:
        if self._stack:
            self._transform, self.global_alpha, self.fill_style = self._stack.pop()

    # -- primitives ---------------------------------------------------------

    def fill_rect(self, x: float, y: float, w: float, h: float) -> None:
        corners = [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
        self._fill_polygon(corners)

    def fill_path(self, points: Sequence[tuple[float, float]]) -> None:
        """Fill a closed polygon given in local space."""
        if len(points) >= 3:
            self._fill_polygon(points)

    def draw_image(self, image: np.ndarray, *coords: float) -> None:
        """
        Composite a bitmap.

        Call shapes:
            draw_image(img, dx, dy)
            draw_image(img, dx, dy, dw, dh)
            draw_image(img, sx, sy, sw, sh, dx, dy, dw, dh)
        """
        src = _as_bgr(image)
        ih, iw = src.shape[:2]

        if len(coords) == 2:
            sx, sy, sw, sh = 0, 0, iw, ih
            dx, dy = coords
            dw, dh = iw, ih
        elif len(coords) == 4:
            sx, sy, sw, sh = 0, 0, iw, ih
            dx, dy, dw, dh = coords
        elif len(coords) == 8:
            sx, sy, sw, sh, dx, dy, dw, dh = coords
        else:
            raise TypeError(f"draw_image() takes 3, 5 or 9 arguments ({len(coords) + 1} given)")

        # Non-finite coordinates draw nothing, as on a canvas
        if not np.isfinite(np.array([sx, sy, sw, sh, dx, dy, dw, dh], dtype=np.float64)).all():
            return

        crop = src[int(sy):int(sy + sh), int(sx):int(sx + sw)]
        if crop.size == 0 or dw == 0 or dh == 0:
            return
        ch, cw = crop.shape[:2]

        m = compose(self._transform, Matrix(dw / cw, 0, 0, dh / ch, dx, dy))
        affine = np.float32([[m.a, m.c, m.e], [m.b, m.d, m.f]])
        size = (self.width, self.height)

        warped = cv2.warpAffine(crop, affine, size, flags=cv2.INTER_LINEAR)
        coverage = cv2.warpAffine(
            np.full((ch, cw), 255, dtype=np.uint8), affine, size, flags=cv2.INTER_NEAREST
        )
        self._blend(warped, coverage, self.global_alpha)

    def put_image_data(self, data: np.ndarray, dx: int = 0, dy: int = 0) -> None:
        """
        Copy raw pixels onto the surface.

        Ignores transform, alpha and fill style.
        """
        src = _as_bgr(data)
        x0, y0 = max(0, dx), max(0, dy)
        x1 = min(self.width, dx + src.shape[1])
        y1 = min(self.height, dy + src.shape[0])
        if x1 <= x0 or y1 <= y0:
            return
        self.image[y0:y1, x0:x1] = src[y0 - dy:y1 - dy, x0 - dx:x1 - dx]

    # -- internals ----------------------------------------------------------

    def _fill_polygon(self, points: Sequence[tuple[float, float]]) -> None:
        r, g, b, style_alpha = parse_color(self.fill_style)
        alpha = style_alpha * self.global_alpha
        if alpha <= 0:
            return

        mapped = np.array(
            [apply_to_point(self._transform, px, py) for px, py in points], dtype=np.float64
        )
        # Non-finite coordinates draw nothing, as on a canvas
        if not np.isfinite(mapped).all():
            return
        pts = np.round(mapped).astype(np.int32)

        coverage = np.zeros((self.height, self.width), dtype=np.uint8)
        if len(pts) == 4:
            cv2.fillConvexPoly(coverage, pts, 255)
        else:
            cv2.fillPoly(coverage, [pts], 255)
        self._blend(np.array((b, g, r), dtype=np.uint8), coverage, alpha)

    def _blend(self, source: np.ndarray, coverage: np.ndarray, alpha: float) -> None:
        """Blend `source` (full-size image or a single colour) where coverage is set."""
        x, y, w, h = cv2.boundingRect(coverage)
        if w == 0 or h == 0:
            return

        weight = (coverage[y:y + h, x:x + w].astype(np.float32) / 255.0 * alpha)[..., None]
        if source.ndim == 3:
            source = source[y:y + h, x:x + w]
        target = self.image[y:y + h, x:x + w].astype(np.float32)

        blended = source.astype(np.float32) * weight + target * (1.0 - weight)
        self.image[y:y + h, x:x + w] = np.clip(blended, 0, 255).astype(np.uint8)


def new_surface_for(viewport, background: Optional[tuple[int, int, int]] = None) -> RasterSurface:
    """Create a surface sized to a viewport (rounded down, like a canvas)."""
    width = max(1, int(viewport.width))
    height = max(1, int(viewport.height))
    if background is None:
        return RasterSurface(width, height)
    return RasterSurface(width, height, background)
