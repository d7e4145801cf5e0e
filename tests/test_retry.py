"""Tests for pdf_render.retry: bounded retry, backoff order, cancellation."""

import pytest

from pdf_render import scripts
from pdf_render.batch import BatchCoordinator
from pdf_render.config import RenderConfig
from pdf_render.errors import CaptureError, RenderCancelledError, RenderSurfaceError
from pdf_render.models import AttemptState, PageFailure, PageRenderRequest, PageRenderResult

URL = "https://example.test/doc.pdf"


def _orchestrator(host, config, fake_sleep, should_cancel=None):
    return BatchCoordinator.for_host(
        host, config, should_cancel=should_cancel, sleep=fake_sleep
    ).orchestrator


def _request(page=1, total=1) -> PageRenderRequest:
    return PageRenderRequest(URL, page, total)


class TestAttempt:
    def test_success_first_try(self, host, config, sleeps, fake_sleep):
        """Should return a result with zero retries and close the surface."""
        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageRenderResult)
        assert result.retries == 0
        assert result.navigation_verified is True
        assert sleeps == []
        assert host.open_targets == []

    def test_state_sequence(self, host, config, fake_sleep):
        """Should walk the attempt states in order, ending in Succeeded."""
        orchestrator = _orchestrator(host, config, fake_sleep)
        orchestrator.attempt(_request())

        assert orchestrator.history == [
            AttemptState.SESSION_OPENING,
            AttemptState.NAVIGATING,
            AttemptState.VERIFYING,
            AttemptState.RESOLVING,
            AttemptState.SUPPRESSING,
            AttemptState.CAPTURING,
            AttemptState.RESTORING,
            AttemptState.CLOSING,
            AttemptState.SUCCEEDED,
        ]

    def test_transient_failures_retried(self, host, config, sleeps, fake_sleep):
        """Should retry after transient failures and report the retry count."""
        host.fail("capture_raster", CaptureError("capture_failed", "blank frame"), times=2)

        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageRenderResult)
        assert result.retries == 2
        assert sleeps == [2.0, 5.0]
        assert host.count("open_target") == 3
        assert host.open_targets == []

    def test_unexpected_exception_retried(self, host, config, fake_sleep):
        """Should treat non-RenderError exceptions as transient."""
        host.fail("capture_raster", RuntimeError("weird"), times=1)
        result = _orchestrator(host, config, fake_sleep).attempt(_request())
        assert result.retries == 1

    def test_retry_bound(self, host, config, sleeps, fake_sleep):
        """Should fail after exactly max_retries + 1 attempts with backoff in order."""
        host.fail("capture_raster", CaptureError("capture_failed", "blank frame"), times=100)

        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageFailure)
        assert result.retries == config.max_retries
        assert "blank frame" in result.message
        assert host.count("open_target") == config.max_retries + 1
        assert sleeps == [2.0, 5.0, 10.0, 20.0]
        assert host.open_targets == []

    def test_load_timeout_retried_until_exhausted(self, host, config, sleeps, fake_sleep):
        """Should treat a page that never signals load as a failed, retried attempt."""
        host.load_ok = False

        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageFailure)
        assert "load_timeout" in result.message
        assert host.count("open_target") == config.max_retries + 1
        assert sleeps == [2.0, 5.0, 10.0, 20.0]
        assert host.count("capture_raster") == 0
        assert host.open_targets == []

    def test_load_timeout_then_recovery(self, host, config, sleeps, fake_sleep, monkeypatch):
        """Should render on the next attempt once the load signal arrives."""
        host.load_ok = False
        answers = iter([False, True])
        monkeypatch.setattr(host, "wait_for_load", lambda target, timeout_s: next(answers))

        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageRenderResult)
        assert result.retries == 1
        assert sleeps == [2.0]

    def test_backoff_clamps_to_last_delay(self, host, sleeps, fake_sleep):
        """Should reuse the last delay when retries outnumber the schedule."""
        config = RenderConfig(max_retries=6, navigation_settle_s=0.0, verify_interval_s=0.0)
        host.fail("capture_raster", CaptureError("capture_failed", "blank"), times=100)

        _orchestrator(host, config, fake_sleep).attempt(_request())

        assert sleeps == [2.0, 5.0, 10.0, 20.0, 20.0, 20.0]

    def test_fatal_error_propagates(self, host, config, sleeps, fake_sleep):
        """Should not retry a render surface failure."""
        host.fail("open_target", RenderSurfaceError("no_surface", "browser gone"))

        with pytest.raises(RenderSurfaceError):
            _orchestrator(host, config, fake_sleep).attempt(_request())

        assert sleeps == []
        assert host.count("open_target") == 1

    def test_unverified_navigation_flagged(self, host, config, fake_sleep, monkeypatch):
        """Should capture anyway and flag the result when the page is not verified."""
        host.script(scripts.VIEWER_STATE_PAGE, 99)
        monkeypatch.setattr(host, "target_info", lambda target: {"url": "about:blank"})

        result = _orchestrator(host, config, fake_sleep).attempt(_request())

        assert isinstance(result, PageRenderResult)
        assert result.navigation_verified is False


class TestCancellation:
    def test_cancel_before_open(self, host, config, fake_sleep):
        """Should abort without opening a surface."""
        orchestrator = _orchestrator(host, config, fake_sleep, should_cancel=lambda: True)

        with pytest.raises(RenderCancelledError) as exc_info:
            orchestrator.attempt(_request())

        assert exc_info.value.stage == "before_open"
        assert host.targets == []
        assert orchestrator.state is AttemptState.CANCELLED

    def test_cancel_before_capture_still_cleans_up(self, host, config, fake_sleep):
        """Should restore chrome and close the surface before propagating."""
        cancelled = {"flag": False}

        def _hide(target, arg):
            cancelled["flag"] = True
            return [{"token": "toolbar-1", "kind": "toolbar", "selector": "geometry", "css": ""}]

        host.script(scripts.SUPPRESS_BY_GEOMETRY, _hide)
        orchestrator = _orchestrator(
            host, config, fake_sleep, should_cancel=lambda: cancelled["flag"]
        )

        with pytest.raises(RenderCancelledError) as exc_info:
            orchestrator.attempt(_request())

        assert exc_info.value.stage == "before_capture"
        assert host.count("capture_raster") == 0
        assert host.open_targets == []
        assert scripts.RESTORE_SUPPRESSED in [s for s, _ in host.evaluations]

    def test_cancel_during_backoff_stops_retries(self, host, config, fake_sleep):
        """Should stop at the next check after a failed attempt."""
        state = {"cancel": False}

        def _sleep(seconds):
            fake_sleep(seconds)
            state["cancel"] = True

        host.fail("capture_raster", CaptureError("capture_failed", "blank"), times=100)
        orchestrator = _orchestrator(host, config, _sleep, should_cancel=lambda: state["cancel"])

        with pytest.raises(RenderCancelledError):
            orchestrator.attempt(_request())

        assert host.count("open_target") == 1
