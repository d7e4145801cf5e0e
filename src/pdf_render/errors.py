from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass(eq=False)
class RenderError(Exception):
    """
    Jawny błąd pipeline'u renderowania.

    `retryable` decyduje, czy orchestrator ponawia próbę dla strony,
    czy przerywa cały batch.
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    retryable: ClassVar[bool] = True

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class LayoutProbeError(RenderError):
    """Content area of the original viewing context could not be measured."""

    retryable = False


class RenderSurfaceError(RenderError):
    """A new render surface (viewport) could not be created."""

    retryable = False


class SessionAttachError(RenderError):
    """Debug session could not be attached after internal retries."""


class SessionDetachedError(RenderError):
    """Debug session went away under a protocol call."""


class NavigationError(RenderError):
    """Render surface failed to load the requested page."""


class CaptureError(RenderError):
    """Raster capture failed or returned unusable data."""


class HostProtocolError(RenderError):
    """Protocol command or injected script reported an error."""


class RenderCancelledError(Exception):
    """Raised when the batch cancellation predicate is observed."""

    def __init__(self, page_number: int, stage: str):
        super().__init__(f"Cancelled at page {page_number} ({stage})")
        self.page_number = page_number
        self.stage = stage
