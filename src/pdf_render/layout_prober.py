"""
Layout prober.

One-time, read-only measurement of the user's original viewing context: how
wide the host sidebar is and where the document content sits. The result is an
optional baseline for per-page measurement.
"""

import logging

from . import scripts
from .base import Box, RenderHost
from .errors import LayoutProbeError, RenderError
from .models import LayoutBaseline, RenderTarget
from .viewer_selectors import selectors_for

logger = logging.getLogger(__name__)


def _first_box(boxes: list[Box]) -> Box | None:
    for box in boxes:
        if box.width > 0 and box.height > 0:
            return box
    return None


class LayoutProber:
    """Measures host chrome and content bounds without navigating."""

    def __init__(self, host: RenderHost):
        self.host = host

    def probe(self, original_context_id: str) -> LayoutBaseline:
        try:
            target = self.host.attach_existing(original_context_id)
        except RenderError as e:
            raise LayoutProbeError(
                "context_unavailable", f"Original context '{original_context_id}': {e}"
            ) from e

        try:
            self.host.attach_inspector(target)
        except RenderError as e:
            raise LayoutProbeError("attach_failed", str(e)) from e

        try:
            return self._measure(target)
        finally:
            try:
                self.host.detach_inspector(target)
            except Exception as e:
                logger.warning(f"[Layout] Detach from original context failed: {e}")

    def _measure(self, target: RenderTarget) -> LayoutBaseline:
        sidebar = self._structural(target, "sidebar")
        toolbar = self._structural(target, "toolbar")
        content = self._structural(target, "content")
        viewport = None

        if sidebar is None or toolbar is None or content is None:
            # overlay may live in a shadow root the structural query cannot see
            pierced = self._pierced(target)
            sidebar = sidebar or _rect_box(pierced.get("sidebar"))
            toolbar = toolbar or _rect_box(pierced.get("toolbar"))
            content = content or _rect_box(pierced.get("content"))
            viewport = pierced.get("viewport")

        if content is None:
            raise LayoutProbeError(
                "content_area_missing",
                f"No content area found in original context {target.target_id}",
            )

        vw, vh = _viewport_size(viewport, target, content)
        baseline = LayoutBaseline(
            sidebar_width=sidebar.width if sidebar else 0.0,
            content_x=content.x,
            content_y=content.y,
            content_width=content.width,
            content_height=content.height,
            viewport_width=vw,
            viewport_height=vh,
            toolbar_height=toolbar.height if toolbar else 0.0,
        )
        logger.info(
            f"[Layout] Baseline: sidebar={baseline.sidebar_width:.0f}px "
            f"toolbar={baseline.toolbar_height:.0f}px "
            f"content=({baseline.content_x:.0f},{baseline.content_y:.0f} "
            f"{baseline.content_width:.0f}x{baseline.content_height:.0f})"
        )
        return baseline

    def _structural(self, target: RenderTarget, kind: str) -> Box | None:
        for selector in selectors_for(kind):
            try:
                box = _first_box(self.host.query_structure(target, selector))
            except RenderError as e:
                logger.debug(f"[Layout] Structural query '{selector}' failed: {e}")
                continue
            if box is not None:
                return box
        return None

    def _pierced(self, target: RenderTarget) -> dict:
        try:
            result = self.host.evaluate(
                target,
                scripts.LAYOUT_PROBE,
                {
                    "sidebar": selectors_for("sidebar"),
                    "toolbar": selectors_for("toolbar"),
                    "content": selectors_for("content"),
                },
            )
        except RenderError as e:
            logger.warning(f"[Layout] Shadow-piercing probe failed: {e}")
            return {}
        return result if isinstance(result, dict) else {}


def _rect_box(rect: dict | None) -> Box | None:
    if not rect:
        return None
    try:
        box = Box(float(rect["x"]), float(rect["y"]), float(rect["width"]), float(rect["height"]))
    except (KeyError, TypeError, ValueError):
        return None
    return box if box.width > 0 and box.height > 0 else None


def _viewport_size(viewport: dict | None, target: RenderTarget, content: Box) -> tuple[float, float]:
    if viewport and viewport.get("width") and viewport.get("height"):
        return float(viewport["width"]), float(viewport["height"])
    if target.viewport and target.viewport[0] and target.viewport[1]:
        return float(target.viewport[0]), float(target.viewport[1])
    return content.x + content.width, content.y + content.height
