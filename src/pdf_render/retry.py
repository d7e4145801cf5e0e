"""
Retry orchestrator.

Runs one page's full attempt (open -> navigate -> verify -> resolve ->
suppress -> capture -> restore -> close) under bounded retry with a fixed
backoff schedule. Cleanup for the in-flight attempt always runs, including
when cancellation is observed.
"""

import logging
import time
from collections.abc import Callable

from .config import RenderConfig
from .dimension_resolver import DimensionResolver
from .errors import RenderCancelledError, RenderError
from .models import AttemptState, PageFailure, PageRenderRequest, PageRenderResult, RenderTarget
from .navigator import Navigator
from .screenshot import ScreenshotCapturer
from .session_manager import RenderSessionManager
from .ui_suppressor import SuppressionState, UISuppressor

logger = logging.getLogger(__name__)


def _never_cancel() -> bool:
    return False


class RetryOrchestrator:
    def __init__(
        self,
        sessions: RenderSessionManager,
        navigator: Navigator,
        resolver: DimensionResolver,
        suppressor: UISuppressor,
        capturer: ScreenshotCapturer,
        config: RenderConfig | None = None,
        should_cancel: Callable[[], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.sessions = sessions
        self.navigator = navigator
        self.resolver = resolver
        self.suppressor = suppressor
        self.capturer = capturer
        self.config = config or RenderConfig()
        self.should_cancel = should_cancel or _never_cancel
        self._sleep = sleep
        self.state = AttemptState.IDLE
        self.history: list[AttemptState] = []

    def _transition(self, page_number: int, new_state: AttemptState) -> None:
        if new_state is not self.state:
            logger.debug(f"[Retry] Page {page_number}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def _check_cancel(self, page_number: int, stage: str) -> None:
        if self.should_cancel():
            logger.info(f"[Retry] 🛑 Cancellation observed for page {page_number} ({stage})")
            raise RenderCancelledError(page_number, stage)

    def attempt(self, request: PageRenderRequest) -> PageRenderResult | PageFailure:
        """
        Render one page with up to `max_retries` retries.

        Exhausted retries come back as PageFailure. Fatal errors and
        cancellation propagate.
        """
        page = request.page_number
        total_attempts = max(0, self.config.max_retries) + 1
        failures = 0
        last_error: Exception | None = None
        self.history = []

        for attempt_no in range(total_attempts):
            try:
                result = self._attempt_once(request, retries=failures)
            except RenderCancelledError:
                self._transition(page, AttemptState.CANCELLED)
                raise
            except RenderError as e:
                if not e.retryable:
                    self._transition(page, AttemptState.FAILED)
                    logger.error(f"[Retry] ❌ Page {page}: fatal {type(e).__name__}: {e}")
                    raise
                last_error = e
            except Exception as e:
                last_error = e
            else:
                self._transition(page, AttemptState.SUCCEEDED)
                if failures:
                    logger.info(f"[Retry] ✅ Page {page} rendered after {failures} failed attempt(s)")
                return result

            failures += 1
            self._transition(page, AttemptState.FAILED)
            if attempt_no + 1 >= total_attempts:
                break
            wait_s = self.config.backoff_for(attempt_no)
            logger.warning(
                f"⚠️ [Retry] Page {page} attempt {attempt_no + 1}/{total_attempts} failed: "
                f"{last_error}. Retrying in {wait_s}s"
            )
            self._transition(page, AttemptState.IDLE)
            self._sleep(wait_s)

        message = str(last_error) if last_error is not None else "unknown error"
        logger.error(f"[Retry] ❌ Page {page} failed after {total_attempts} attempts: {message}")
        return PageFailure(page_number=page, message=message, retries=failures - 1)

    def _attempt_once(self, request: PageRenderRequest, retries: int) -> PageRenderResult:
        page = request.page_number
        target: RenderTarget | None = None
        suppression: SuppressionState | None = None

        self._check_cancel(page, "before_open")
        try:
            self._transition(page, AttemptState.SESSION_OPENING)
            target = self.sessions.open(request)

            self._check_cancel(page, "before_navigate")
            self._transition(page, AttemptState.NAVIGATING)
            loaded = self.navigator.load(target, page)

            self._transition(page, AttemptState.VERIFYING)
            nav = self.navigator.verify(target, page, loaded=loaded)

            self._transition(page, AttemptState.RESOLVING)
            region = self.resolver.resolve(
                target,
                page_metadata=request.page_metadata,
                baseline=request.layout_baseline,
                page_number=page,
                total_pages=request.total_pages,
            )

            self._transition(page, AttemptState.SUPPRESSING)
            suppression = self.suppressor.suppress(target)

            self._check_cancel(page, "before_capture")
            self._transition(page, AttemptState.CAPTURING)
            image = self.capturer.capture(target, region)
        finally:
            if suppression is not None and target is not None:
                self._transition(page, AttemptState.RESTORING)
                self.suppressor.restore(target, suppression)
            if target is not None:
                self._transition(page, AttemptState.CLOSING)
                self.sessions.close(target)

        return PageRenderResult(
            page_number=page,
            image_bytes=image.image_bytes,
            width=image.width,
            height=image.height,
            fingerprint=image.fingerprint,
            retries=retries,
            navigation_verified=nav.verified,
            region_source=region.source,
        )
