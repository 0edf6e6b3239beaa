"""Page-mode layout math: page count, break offsets and page-number offsets.

Content stays in one continuous editor; pages are a visual overlay computed
from the measured content height and the zoom level. Everything here is a
pure function of ``(content_height, zoom_level, geometry)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

__all__ = [
    "DEFAULT_GEOMETRY",
    "DEFAULT_ZOOM",
    "ZOOM_LEVELS",
    "PageGeometry",
    "PageLayout",
    "PaginationEngine",
    "clamp_zoom",
    "compute_page_layout",
    "current_page",
    "zoom_in",
    "zoom_out",
]

# US Letter at 96 DPI: 8.5" x 11" with 1" margins.
_LETTER_WIDTH = 816.0
_LETTER_HEIGHT = 1056.0
_LETTER_MARGIN = 96.0
_PAGE_GAP = 40.0
_PAGE_NUMBER_MARGIN_FRACTION = 0.6
_RATIO_EPSILON = 1e-9

ZOOM_LEVELS: tuple[int, ...] = (50, 75, 90, 100, 110, 125, 150, 175, 200)
DEFAULT_ZOOM = 100


@dataclass(slots=True, frozen=True)
class PageGeometry:
    """Page dimensions at the 100% zoom baseline."""

    page_width: float = _LETTER_WIDTH
    page_height: float = _LETTER_HEIGHT
    margin_x: float = _LETTER_MARGIN
    margin_y: float = _LETTER_MARGIN
    page_gap: float = _PAGE_GAP

    def __post_init__(self) -> None:
        if self.page_height <= 0 or self.page_width <= 0:
            raise ValueError("Page dimensions must be positive")
        if self.margin_x < 0 or self.margin_y < 0 or self.page_gap < 0:
            raise ValueError("Margins and page gap cannot be negative")
        if self.page_height - 2 * self.margin_y <= 0:
            raise ValueError("Vertical margins leave no room for content")

    @property
    def content_height(self) -> float:
        """Usable height per page (page height minus top and bottom margins)."""

        return self.page_height - 2 * self.margin_y

    def scaled(self, zoom_level: float) -> "PageGeometry":
        """Return the geometry scaled to ``zoom_level`` percent."""

        scale = _zoom_scale(zoom_level)
        return PageGeometry(
            page_width=self.page_width * scale,
            page_height=self.page_height * scale,
            margin_x=self.margin_x * scale,
            margin_y=self.margin_y * scale,
            page_gap=self.page_gap * scale,
        )


DEFAULT_GEOMETRY = PageGeometry()


@dataclass(slots=True, frozen=True)
class PageLayout:
    """Derived layout; recomputed from scratch whenever an input changes."""

    page_count: int
    page_breaks: tuple[float, ...]
    page_number_offsets: tuple[float, ...]
    page_tops: tuple[float, ...]
    total_height: float
    content_height: float
    zoom_level: float


def compute_page_layout(
    content_height: float,
    zoom_level: float = DEFAULT_ZOOM,
    geometry: PageGeometry = DEFAULT_GEOMETRY,
) -> PageLayout:
    """Compute the page layout for ``content_height`` at ``zoom_level``."""

    scaled = geometry.scaled(zoom_level)
    height = _coerce_height(content_height)
    ratio = height / scaled.content_height
    page_count = max(1, math.ceil(ratio - _RATIO_EPSILON))

    page_h = scaled.page_height
    gap = scaled.page_gap
    breaks = tuple(
        n * page_h + (n - 1) * gap + gap / 2 for n in range(1, page_count)
    )
    numbers = tuple(
        n * page_h + (n - 1) * gap - _PAGE_NUMBER_MARGIN_FRACTION * scaled.margin_y
        for n in range(1, page_count + 1)
    )
    tops = tuple((n - 1) * (page_h + gap) for n in range(1, page_count + 1))
    total = page_count * page_h + (page_count - 1) * gap
    return PageLayout(
        page_count=page_count,
        page_breaks=breaks,
        page_number_offsets=numbers,
        page_tops=tops,
        total_height=total,
        content_height=height,
        zoom_level=float(zoom_level),
    )


def current_page(
    scroll_top: float,
    zoom_level: float,
    page_count: int,
    geometry: PageGeometry = DEFAULT_GEOMETRY,
) -> int:
    """Return the 1-based page visible at ``scroll_top``."""

    scaled = geometry.scaled(zoom_level)
    stride = scaled.content_height + scaled.page_gap
    page = math.floor(max(0.0, float(scroll_top)) / stride) + 1
    return min(max(1, page), max(1, int(page_count)))


class PaginationEngine:
    """Stateless facade binding :func:`compute_page_layout` to one geometry."""

    __slots__ = ("_geometry",)

    def __init__(self, geometry: PageGeometry | None = None) -> None:
        self._geometry = geometry or DEFAULT_GEOMETRY

    @property
    def geometry(self) -> PageGeometry:
        return self._geometry

    def compute(self, content_height: float, zoom_level: float = DEFAULT_ZOOM) -> PageLayout:
        return compute_page_layout(content_height, zoom_level, self._geometry)

    def current_page(self, scroll_top: float, zoom_level: float, page_count: int) -> int:
        return current_page(scroll_top, zoom_level, page_count, self._geometry)


# ----------------------------------------------------------------------
# Zoom stepping
# ----------------------------------------------------------------------
def clamp_zoom(zoom_level: float, levels: Sequence[int] = ZOOM_LEVELS) -> float:
    return min(max(float(zoom_level), float(levels[0])), float(levels[-1]))


def zoom_in(zoom_level: float, levels: Sequence[int] = ZOOM_LEVELS) -> int:
    """Step to the next zoom level above ``zoom_level``."""

    for level in levels:
        if level > zoom_level:
            return level
    return levels[-1]


def zoom_out(zoom_level: float, levels: Sequence[int] = ZOOM_LEVELS) -> int:
    """Step to the next zoom level below ``zoom_level``."""

    for level in reversed(levels):
        if level < zoom_level:
            return level
    return levels[0]


def _zoom_scale(zoom_level: float) -> float:
    zoom = float(zoom_level)
    if not math.isfinite(zoom) or zoom <= 0:
        raise ValueError(f"Zoom level must be a positive percentage, got {zoom_level!r}")
    return zoom / 100.0


def _coerce_height(content_height: float) -> float:
    height = float(content_height)
    if not math.isfinite(height) or height < 0:
        return 0.0
    return height
