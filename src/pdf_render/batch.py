"""
Batch coordinator.

Pages are rendered strictly one after another: a render surface is expensive
and the protocol serializes anyway, so page N+1 never starts before page N
has resolved.
"""

import logging
import time
from collections.abc import Callable, Mapping

from .base import RenderHost
from .config import RenderConfig
from .dimension_resolver import DimensionResolver
from .errors import RenderCancelledError
from .layout_prober import LayoutProber
from .models import BatchResult, LayoutBaseline, PageFailure, PageMetadata, PageRenderRequest
from .navigator import Navigator
from .retry import RetryOrchestrator
from .screenshot import ScreenshotCapturer
from .session_manager import RenderSessionManager
from .ui_suppressor import UISuppressor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _metadata_for(
    page_metadata: PageMetadata | Mapping[int, PageMetadata] | None, page_number: int
) -> PageMetadata | None:
    if page_metadata is None or isinstance(page_metadata, PageMetadata):
        return page_metadata
    return page_metadata.get(page_number)


def all_identical(fingerprints: list[str]) -> bool:
    """True when more than one fingerprint exists and they are all equal."""
    return len(fingerprints) > 1 and len(set(fingerprints)) == 1


class BatchCoordinator:
    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        on_progress: ProgressCallback | None = None,
    ):
        self.orchestrator = orchestrator
        self.on_progress = on_progress

    @classmethod
    def for_host(
        cls,
        host: RenderHost,
        config: RenderConfig | None = None,
        should_cancel: Callable[[], bool] | None = None,
        on_progress: ProgressCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "BatchCoordinator":
        """Wire the full component chain around one host."""
        config = config or RenderConfig()
        sessions = RenderSessionManager(host, config, sleep=sleep)
        orchestrator = RetryOrchestrator(
            sessions=sessions,
            navigator=Navigator(host, config, sleep=sleep),
            resolver=DimensionResolver(host, config),
            suppressor=UISuppressor(host),
            capturer=ScreenshotCapturer(host, sessions, config),
            config=config,
            should_cancel=should_cancel,
            sleep=sleep,
        )
        return cls(orchestrator, on_progress=on_progress)

    def render_all(
        self,
        document_url: str,
        total_pages: int,
        page_metadata: PageMetadata | Mapping[int, PageMetadata] | None = None,
        layout_baseline: LayoutBaseline | None = None,
    ) -> BatchResult:
        if total_pages < 1:
            raise ValueError(f"total_pages must be >= 1, got {total_pages}")

        result = BatchResult(total_pages=total_pages)
        started = time.monotonic()
        logger.info(f"[Batch] 🚀 Rendering {total_pages} page(s) of {document_url}")

        for page_number in range(1, total_pages + 1):
            request = PageRenderRequest(
                document_url=document_url,
                page_number=page_number,
                total_pages=total_pages,
                page_metadata=_metadata_for(page_metadata, page_number),
                layout_baseline=layout_baseline,
            )
            try:
                outcome = self.orchestrator.attempt(request)
            except RenderCancelledError as e:
                result.cancelled = True
                result.cancelled_at_page = e.page_number
                logger.warning(
                    f"[Batch] 🛑 Cancelled at page {e.page_number} ({e.stage}); "
                    f"{result.rendered_count} page(s) rendered"
                )
                break

            if isinstance(outcome, PageFailure):
                result.failures.append(outcome)
            else:
                result.pages.append(outcome)
                logger.info(
                    f"[Batch] Page {page_number}/{total_pages} ✅ "
                    f"{outcome.width}x{outcome.height}"
                )
            if self.on_progress is not None:
                self.on_progress(page_number, total_pages)

        if all_identical([p.fingerprint for p in result.pages]):
            result.suspect = True
            logger.warning(
                f"[Batch] ⚠️ All {result.rendered_count} rendered pages are identical; "
                "navigation probably did not take effect"
            )

        logger.info(
            f"[Batch] Done in {time.monotonic() - started:.1f}s: "
            f"{result.rendered_count} rendered, {result.failed_count} failed"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result


def render_document(
    host: RenderHost,
    document_url: str,
    total_pages: int,
    page_metadata: PageMetadata | Mapping[int, PageMetadata] | None = None,
    original_context_id: str | None = None,
    config: RenderConfig | None = None,
    should_cancel: Callable[[], bool] | None = None,
    on_progress: ProgressCallback | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchResult:
    """
    Probe the original viewing context (when given), then render every page.

    LayoutProbeError from the probe is fatal and propagates.
    """
    baseline = None
    if original_context_id is not None:
        baseline = LayoutProber(host).probe(original_context_id)
    coordinator = BatchCoordinator.for_host(
        host, config, should_cancel=should_cancel, on_progress=on_progress, sleep=sleep
    )
    return coordinator.render_all(document_url, total_pages, page_metadata, baseline)
