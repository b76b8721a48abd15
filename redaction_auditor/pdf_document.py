"""
PyMuPDF-backed document renderer.

Opens a PDF from raw bytes and exposes, per page:
- a viewport (size in pixels plus the user-space to viewport transform)
- a render pass that paints the page onto a drawing surface, replaying
  filled rectangles and placed images through the surface's compositing
  primitives so they can be observed
- declared annotations with their raw /Rect entries
- text runs from the text layer, in PDF user space
"""

import logging
import math
from typing import Optional

import cv2
import fitz
import numpy as np

from .models import TextRun, Viewport
from .transform import Matrix, IDENTITY, as_matrix, compose, invert, apply_to_point


logger = logging.getLogger(__name__)


def pixmap_to_bgr(pix: fitz.Pixmap) -> np.ndarray:
    """
    Convert a PyMuPDF pixmap to a BGR numpy array for OpenCV.
    """
    if pix.colorspace is not None and pix.colorspace.n > 3:
        pix = fitz.Pixmap(fitz.csRGB, pix)
    if pix.alpha:
        pix = fitz.Pixmap(pix, 0)

    img = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
        pix.height, pix.width, pix.n
    )

    if pix.n == 1:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return cv2.cvtColor(img, cv2.COLOR_RGB2BGR)


def fill_style_for(color) -> str:
    """
    CSS-like fill style for a PyMuPDF colour (0-1 floats, gray or RGB).
    """
    if isinstance(color, (int, float)):
        color = (color, color, color)
    elif len(color) == 1:
        color = (color[0], color[0], color[0])
    elif len(color) == 4:
        c, m, y, k = color
        color = ((1 - c) * (1 - k), (1 - m) * (1 - k), (1 - y) * (1 - k))

    r, g, b = (int(round(max(0.0, min(1.0, v)) * 255)) for v in color[:3])
    return f"rgb({r}, {g}, {b})"


def parse_pdf_array(value: str) -> list:
    """
    Parse a PDF array literal such as "[0 0 612 792]".

    Numeric entries become floats; anything else is kept as a string.
    """
    items = []
    for token in value.strip().lstrip("[").rstrip("]").split():
        try:
            items.append(float(token))
        except ValueError:
            items.append(token)
    return items


class PdfPage:
    """One page of a PdfDocument."""

    def __init__(self, page: fitz.Page, page_num: int):
        self._page = page
        self.page_num = page_num

    def _page_matrix(self, scale: float) -> Matrix:
        """Unrotated page coordinates to viewport pixels."""
        return compose(Matrix(scale, 0, 0, scale, 0, 0), as_matrix(self._page.rotation_matrix))

    def get_viewport(self, scale: float) -> Viewport:
        rect = self._page.rect
        base = compose(self._page_matrix(scale), as_matrix(self._page.transformation_matrix))
        return Viewport(
            width=rect.width * scale,
            height=rect.height * scale,
            scale=scale,
            transform=tuple(base),
        )

    async def render(self, surface, viewport: Viewport) -> None:
        """
        Paint the page onto a surface.

        Args:
            surface: Drawing surface sized to the viewport
            viewport: Viewport from get_viewport()
        """
        page_matrix = self._page_matrix(viewport.scale)

        # Page background
        surface.save()
        surface.set_transform(IDENTITY)
        surface.global_alpha = 1.0
        surface.fill_style = "#ffffff"
        surface.fill_rect(0, 0, viewport.width, viewport.height)
        surface.restore()

        # Full raster of the page as raw pixel data
        pix = self._page.get_pixmap(matrix=fitz.Matrix(viewport.scale, viewport.scale), alpha=False)
        surface.put_image_data(pixmap_to_bgr(pix))

        for path in self._page.get_drawings():
            if path.get("fill") is None:
                continue
            self._replay_fill(surface, path, page_matrix)

        for info in self._page.get_image_info(xrefs=True):
            self._replay_image(surface, info, page_matrix)

    def _replay_fill(self, surface, path: dict, page_matrix: Matrix) -> None:
        opacity = path.get("fill_opacity")
        surface.save()
        surface.set_transform(page_matrix)
        surface.global_alpha = 1.0 if opacity is None else opacity
        surface.fill_style = fill_style_for(path["fill"])

        outline = []
        for item in path.get("items", []):
            op = item[0]
            if op == "re":
                r = fitz.Rect(item[1])
                surface.fill_rect(r.x0, r.y0, r.width, r.height)
            elif op == "qu":
                self._fill_quad(surface, fitz.Quad(item[1]), page_matrix)
            elif op == "l":
                outline.extend([(item[1].x, item[1].y), (item[2].x, item[2].y)])
            elif op == "c":
                outline.extend([(p.x, p.y) for p in item[1:5]])

        if len(outline) >= 3:
            surface.fill_path(outline)
        surface.restore()

    def _fill_quad(self, surface, quad: fitz.Quad, page_matrix: Matrix) -> None:
        """Fill a (possibly rotated) rectangle as a local rect under its own transform."""
        wx, wy = quad.ur.x - quad.ul.x, quad.ur.y - quad.ul.y
        hx, hy = quad.ll.x - quad.ul.x, quad.ll.y - quad.ul.y
        w, h = math.hypot(wx, wy), math.hypot(hx, hy)
        if w == 0 or h == 0:
            return
        surface.set_transform(page_matrix)
        surface.transform(Matrix(wx / w, wy / w, hx / h, hy / h, quad.ul.x, quad.ul.y))
        surface.fill_rect(0, 0, w, h)
        surface.set_transform(page_matrix)

    def _image_pixels(self, info: dict) -> Optional[np.ndarray]:
        xref = info.get("xref", 0)
        if xref:
            return pixmap_to_bgr(fitz.Pixmap(self._page.parent, xref))

        # Inline image: take its appearance from the page itself
        clip = fitz.Rect(info["bbox"])
        if clip.is_empty:
            return None
        return pixmap_to_bgr(self._page.get_pixmap(clip=clip, alpha=False))

    def _replay_image(self, surface, info: dict, page_matrix: Matrix) -> None:
        bitmap = self._image_pixels(info)
        if bitmap is None or bitmap.size == 0:
            return
        ih, iw = bitmap.shape[:2]

        # Placement maps the unit square onto the page
        placement = as_matrix(info["transform"])
        m = compose(page_matrix, compose(placement, Matrix(1 / iw, 0, 0, 1 / ih, 0, 0)))

        surface.save()
        surface.set_transform(m)
        surface.global_alpha = 1.0
        surface.draw_image(bitmap, 0, 0, iw, ih, 0, 0, iw, ih)
        surface.restore()

    async def get_annotations(self) -> list[dict]:
        """
        Declared annotations with their /Rect as stored in the PDF.

        Every /Annots entry is listed, links and form widgets included.
        """
        doc = self._page.parent
        annotations = []
        for xref, _, _ in self._page.annot_xrefs():
            subtype_kind, subtype = doc.xref_get_key(xref, "Subtype")
            kind, value = doc.xref_get_key(xref, "Rect")
            rect = parse_pdf_array(value) if kind == "array" else None
            annotations.append({
                "subtype": subtype.lstrip("/") if subtype_kind == "name" else "",
                "rect": rect,
            })
        return annotations

    async def get_text_content(self) -> list[TextRun]:
        """
        Text spans as runs in PDF user space.

        Each run's transform scales by the font size and translates to the
        span's baseline origin.
        """
        to_user = invert(self._page.transformation_matrix)
        text_dict = self._page.get_text("dict")

        runs = []
        for block in text_dict.get("blocks", []):
            if block.get("type") != 0:  # Text block
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    origin = span.get("origin")
                    bbox = span.get("bbox")
                    if not text or origin is None or bbox is None:
                        continue
                    size = span.get("size", 0.0)
                    ux, uy = apply_to_point(to_user, origin[0], origin[1])
                    runs.append(TextRun(
                        text=text,
                        transform=(size, 0.0, 0.0, size, ux, uy),
                        width=bbox[2] - bbox[0],
                        height=size,
                    ))
        return runs


class PdfDocument:
    """An opened PDF."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    async def get_page(self, page_num: int) -> PdfPage:
        """Load a page (1-indexed)."""
        if not 1 <= page_num <= self._doc.page_count:
            raise IndexError(f"Page {page_num} out of range 1..{self._doc.page_count}")
        return PdfPage(self._doc.load_page(page_num - 1), page_num)

    def close(self) -> None:
        self._doc.close()


class PdfRenderer:
    """Opens documents from raw bytes."""

    async def load(self, data: bytes) -> PdfDocument:
        doc = fitz.open(stream=data, filetype="pdf")
        logger.debug(f"Opened PDF with {doc.page_count} pages")
        return PdfDocument(doc)
