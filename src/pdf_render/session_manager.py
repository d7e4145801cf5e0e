"""
Render session manager.

Opens one ephemeral render surface (viewport + CDP session) per page attempt
and guarantees it is released. Cleanup never raises.
"""

import logging
import time
from collections.abc import Callable

from .base import RenderHost
from .config import RenderConfig
from .errors import RenderError, SessionAttachError
from .models import PageRenderRequest, RenderTarget

logger = logging.getLogger(__name__)

PROTOCOL_DOMAINS = ("Page", "Runtime", "DOM")


class RenderSessionManager:
    """Creates, attaches and destroys render targets."""

    def __init__(
        self,
        host: RenderHost,
        config: RenderConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.config = config or RenderConfig()
        self._sleep = sleep
        self.opened_count = 0
        self.closed_count = 0

    def viewport_for(self, request: PageRenderRequest) -> tuple[int, int]:
        """Configured viewport, grown so the whole page fits with margin."""
        width = self.config.viewport_width
        height = self.config.viewport_height
        if request.page_metadata is not None:
            page_w, page_h = request.page_metadata.to_pixels()
            margin = self.config.viewport_margin
            width = max(width, int(round(page_w)) + margin)
            height = max(height, int(round(page_h)) + margin)
        return width, height

    def open(self, request: PageRenderRequest) -> RenderTarget:
        url = request.page_url
        viewport = self.viewport_for(request)
        logger.info(f"[Session] Opening surface for page {request.page_number}: {url}")

        # RenderSurfaceError propagates as-is (fatal)
        target = self.host.open_target(
            url, viewport=viewport, timeout_s=self.config.target_load_timeout_s
        )
        target.page_number = request.page_number
        self.opened_count += 1

        try:
            self._attach_with_retry(target)
            self.host.enable_domains(target, PROTOCOL_DOMAINS)
        except Exception:
            self.close(target)
            raise

        logger.debug(f"[Session] {target.target_id} ready (viewport={viewport[0]}x{viewport[1]})")
        return target

    def _attach_with_retry(self, target: RenderTarget) -> None:
        attempts = max(1, self.config.attach_retries)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                self.host.attach_inspector(target)
                return
            except RenderError as e:
                last_error = e
                logger.warning(
                    f"[Session] Attach {attempt}/{attempts} failed on {target.target_id}: {e}"
                )
                if attempt < attempts:
                    self._sleep(self.config.attach_backoff_s)
        raise SessionAttachError(
            "attach_failed",
            f"Could not attach to {target.target_id} after {attempts} attempts",
            {"last_error": str(last_error)},
        )

    def reattach(self, target: RenderTarget) -> None:
        """Drop a stale session and attach a fresh one on the same surface."""
        logger.info(f"[Session] Reattaching {target.target_id}")
        try:
            self.host.detach_inspector(target)
        except Exception as e:
            logger.debug(f"[Session] Stale detach ignored: {e}")
        self._attach_with_retry(target)
        self.host.enable_domains(target, PROTOCOL_DOMAINS)

    def close(self, target: RenderTarget | None) -> None:
        """Detach then destroy. Each step logs and swallows its own errors."""
        if target is None or target.closed:
            return

        if target.attached:
            try:
                self.host.detach_inspector(target)
            except Exception as e:
                logger.warning(f"[Session] Detach failed on {target.target_id}: {e}")

        try:
            self.host.close_target(target)
        except Exception as e:
            logger.warning(f"[Session] Close failed on {target.target_id}: {e}")
        finally:
            target.closed = True
            target.attached = False
            self.closed_count += 1
        logger.debug(f"[Session] {target.target_id} closed")
