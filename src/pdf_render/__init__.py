from .base import Box, RenderHost
from .batch import BatchCoordinator, render_document
from .config import RenderConfig
from .errors import (
    CaptureError,
    LayoutProbeError,
    NavigationError,
    RenderCancelledError,
    RenderError,
    RenderSurfaceError,
    SessionAttachError,
    SessionDetachedError,
)
from .models import (
    BatchResult,
    ContentRegion,
    LayoutBaseline,
    PageFailure,
    PageMetadata,
    PageRenderRequest,
    PageRenderResult,
)

__all__ = [
    "BatchCoordinator",
    "BatchResult",
    "Box",
    "CaptureError",
    "ContentRegion",
    "LayoutBaseline",
    "LayoutProbeError",
    "NavigationError",
    "PageFailure",
    "PageMetadata",
    "PageRenderRequest",
    "PageRenderResult",
    "RenderCancelledError",
    "RenderConfig",
    "RenderError",
    "RenderHost",
    "RenderSurfaceError",
    "SessionAttachError",
    "SessionDetachedError",
    "render_document",
]
