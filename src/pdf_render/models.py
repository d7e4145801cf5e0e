from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urldefrag

# Points (72 DPI) -> CSS pixels (96 DPI)
PX_PER_INCH = 96
PT_PER_INCH = 72
POINTS_TO_PX = PX_PER_INCH / PT_PER_INCH


class AttemptState(str, Enum):
    """
    Stany jednej próby renderowania strony.
    Failed wraca do Idle (retry), Cancelled jest terminalny.
    """

    IDLE = "idle"
    SESSION_OPENING = "session_opening"
    NAVIGATING = "navigating"
    VERIFYING = "verifying"
    RESOLVING = "resolving"
    SUPPRESSING = "suppressing"
    CAPTURING = "capturing"
    RESTORING = "restoring"
    CLOSING = "closing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PageMetadata:
    """Physical page size as reported by the document (points at 72 DPI)."""

    width_pt: float
    height_pt: float
    rotation: int = 0

    @property
    def rotated(self) -> bool:
        return self.rotation % 180 == 90

    def to_pixels(self) -> tuple[float, float]:
        """Displayed (width, height) in host pixels, rotation applied."""
        w = self.width_pt * PX_PER_INCH / PT_PER_INCH
        h = self.height_pt * PX_PER_INCH / PT_PER_INCH
        return (h, w) if self.rotated else (w, h)


@dataclass(frozen=True)
class LayoutBaseline:
    """One-time measurement of the original viewing context."""

    sidebar_width: float
    content_x: float
    content_y: float
    content_width: float
    content_height: float
    viewport_width: float
    viewport_height: float
    toolbar_height: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "sidebar_width": self.sidebar_width,
            "content_x": self.content_x,
            "content_y": self.content_y,
            "content_width": self.content_width,
            "content_height": self.content_height,
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "toolbar_height": self.toolbar_height,
        }


@dataclass(frozen=True)
class PageRenderRequest:
    document_url: str
    page_number: int  # 1-based
    total_pages: int
    page_metadata: PageMetadata | None = None
    layout_baseline: LayoutBaseline | None = None

    def __post_init__(self) -> None:
        if self.total_pages < 1:
            raise ValueError(f"total_pages must be >= 1, got {self.total_pages}")
        if not 1 <= self.page_number <= self.total_pages:
            raise ValueError(
                f"page_number {self.page_number} out of range 1..{self.total_pages}"
            )

    @property
    def page_url(self) -> str:
        base, _ = urldefrag(self.document_url)
        return f"{base}#page={self.page_number}"


@dataclass
class RenderTarget:
    """
    Ephemeral viewport + attached debug session.

    Owned by exactly one page attempt. `owned=False` marks the user's
    original viewing context, which may be inspected but never closed.
    """

    target_id: str
    url: str
    page_number: int | None = None
    owned: bool = True
    handle: Any = None
    session: Any = None
    attached: bool = False
    closed: bool = False
    viewport: tuple[int, int] | None = None


@dataclass(frozen=True)
class Candidate:
    dimension: str  # "x" | "y" | "width" | "height"
    source: str
    value: float
    priority: int


@dataclass(frozen=True)
class ContentRegion:
    x: float
    y: float
    width: float
    height: float
    viewport_width: float
    viewport_height: float
    source: str
    sources: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"ContentRegion needs positive size, got {self.width}x{self.height}")

    def within_viewport(self) -> bool:
        return (
            self.x >= 0
            and self.y >= 0
            and self.x + self.width <= self.viewport_width
            and self.y + self.height <= self.viewport_height
        )

    def to_clip(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height, "scale": 1}


@dataclass(frozen=True)
class CapturedImage:
    image_bytes: bytes
    width: int
    height: int
    fingerprint: str
    image_format: str = "png"


@dataclass(frozen=True)
class PageRenderResult:
    page_number: int
    image_bytes: bytes
    width: int
    height: int
    fingerprint: str
    retries: int = 0
    navigation_verified: bool = True
    region_source: str = ""

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "page_number": self.page_number,
            "width": self.width,
            "height": self.height,
            "fingerprint": self.fingerprint,
            "retries": self.retries,
            "navigation_verified": self.navigation_verified,
            "region_source": self.region_source,
        }


@dataclass(frozen=True)
class PageFailure:
    page_number: int
    message: str
    retries: int

    def to_json_dict(self) -> dict[str, Any]:
        return {"page_number": self.page_number, "message": self.message, "retries": self.retries}


@dataclass
class BatchResult:
    total_pages: int
    pages: list[PageRenderResult] = field(default_factory=list)
    failures: list[PageFailure] = field(default_factory=list)
    suspect: bool = False
    cancelled: bool = False
    cancelled_at_page: int | None = None

    @property
    def rendered_count(self) -> int:
        return len(self.pages)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def page_numbers(self) -> list[int]:
        """All page numbers with an outcome, ascending."""
        return sorted([p.page_number for p in self.pages] + [f.page_number for f in self.failures])

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "total_pages": self.total_pages,
            "rendered": self.rendered_count,
            "failed": self.failed_count,
            "suspect": self.suspect,
            "cancelled": self.cancelled,
            "cancelled_at_page": self.cancelled_at_page,
            "pages": [p.to_json_dict() for p in self.pages],
            "failures": [f.to_json_dict() for f in self.failures],
        }
