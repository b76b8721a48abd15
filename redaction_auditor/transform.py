"""
2x3 affine transforms and rectangle mapping into viewport space.

Matrices use the (a, b, c, d, e, f) convention:
    x' = a*x + c*y + e
    y' = b*x + d*y + f
"""

from typing import NamedTuple, Optional, Sequence, Union

from .models import Rect
from .geometry import bounding_box


class Matrix(NamedTuple):
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0


IDENTITY = Matrix()

MatrixLike = Union[Matrix, Sequence[float]]


def as_matrix(m) -> Matrix:
    """
    Coerce a 6-sequence or any object with a..f attributes (e.g. fitz.Matrix).
    """
    if isinstance(m, Matrix):
        return m
    if all(hasattr(m, name) for name in Matrix._fields):
        return Matrix(*(float(getattr(m, name)) for name in Matrix._fields))
    values = [float(v) for v in m]
    if len(values) != 6:
        raise ValueError(f"Affine transform needs 6 values, got {len(values)}")
    return Matrix(*values)


def compose(outer: MatrixLike, inner: MatrixLike) -> Matrix:
    """
    Concatenate two transforms: `inner` is applied first, then `outer`.
    """
    m1 = as_matrix(outer)
    m2 = as_matrix(inner)
    return Matrix(
        m1.a * m2.a + m1.c * m2.b,
        m1.b * m2.a + m1.d * m2.b,
        m1.a * m2.c + m1.c * m2.d,
        m1.b * m2.c + m1.d * m2.d,
        m1.a * m2.e + m1.c * m2.f + m1.e,
        m1.b * m2.e + m1.d * m2.f + m1.f,
    )


def invert(m: MatrixLike) -> Matrix:
    m = as_matrix(m)
    det = m.a * m.d - m.b * m.c
    if det == 0:
        raise ZeroDivisionError("Transform is not invertible")
    return Matrix(
        m.d / det,
        -m.b / det,
        -m.c / det,
        m.a / det,
        (m.c * m.f - m.d * m.e) / det,
        (m.b * m.e - m.a * m.f) / det,
    )


def apply_to_point(m: MatrixLike, x: float, y: float) -> tuple[float, float]:
    m = as_matrix(m)
    return (m.a * x + m.c * y + m.e, m.b * x + m.d * y + m.f)


def map_rect(
    transform: Optional[MatrixLike],
    x: float,
    y: float,
    width: float,
    height: float
) -> Rect:
    """
    Map a local-space rectangle into viewport space.

    All four corners are transformed so rotated and skewed rectangles keep
    their full extent; the result is their bounding box.

    Args:
        transform: Current surface transform, or None for no transform
        x, y, width, height: Rectangle in the surface's local space

    Returns:
        Axis-aligned bounding rectangle in viewport space (not clamped)
    """
    if transform is None:
        return Rect(x, y, width, height)

    m = as_matrix(transform)
    corners = [
        apply_to_point(m, x, y),
        apply_to_point(m, x + width, y),
        apply_to_point(m, x + width, y + height),
        apply_to_point(m, x, y + height),
    ]
    return bounding_box(corners)


def surface_transform(surface) -> Optional[Matrix]:
    """
    Current transform of a drawing surface, or None if it cannot report one.
    """
    get_transform = getattr(surface, "get_transform", None)
    if get_transform is None:
        return None
    return as_matrix(get_transform())
