"""Tests for pdf_render.navigator."""

import pytest

from pdf_render import scripts
from pdf_render.errors import HostProtocolError, NavigationError
from pdf_render.models import RenderTarget
from pdf_render.navigator import Navigator


def _target() -> RenderTarget:
    return RenderTarget(
        target_id="t-1", url="https://example.test/doc.pdf#page=1", attached=True
    )


class TestNavigate:
    def test_reloads_at_page_fragment(self, host, config):
        """Should navigate to the page URL, reload and set the in-page fragment."""
        target = _target()
        Navigator(host, config).navigate(target, 3)

        assert ("navigate", "https://example.test/doc.pdf#page=3") in host.calls
        assert host.count("reload") == 1
        assert (scripts.SET_PAGE_FRAGMENT, {"page": 3}) in host.evaluations

    def test_verified_by_viewer_state(self, host, config):
        """Should accept arrival when any observable agrees."""
        result = Navigator(host, config).navigate(_target(), 3)

        assert result.verified is True
        assert result.loaded is True
        assert result.observed["viewer_state"] == 3

    def test_proceeds_unverified_after_bounded_checks(self, host, config, sleeps, fake_sleep, monkeypatch):
        """Should give up after the configured checks and flag the result."""
        host.script(scripts.VIEWER_STATE_PAGE, 1)
        host.script(scripts.URL_FRAGMENT_PAGE, 1)
        monkeypatch.setattr(host, "target_info", lambda target: {"url": "about:blank"})

        result = Navigator(host, config, sleep=fake_sleep).navigate(_target(), 3)

        assert result.verified is False
        assert result.observed["viewer_state"] == 1
        assert len(sleeps) == config.verify_attempts - 1

    def test_missing_load_signal_fails_navigation(self, host, config):
        """Should wait once more for load and raise a retryable error when it never arrives."""
        host.load_ok = False

        with pytest.raises(NavigationError) as exc:
            Navigator(host, config).navigate(_target(), 2)

        assert exc.value.code == "load_timeout"
        assert exc.value.retryable is True
        assert host.count("wait_for_load") == 1

    def test_late_load_signal_is_accepted(self, host, config, monkeypatch):
        """Should continue when only the fallback wait sees the load signal."""
        monkeypatch.setattr(host, "reload", lambda target, timeout_s: False)
        result = Navigator(host, config).navigate(_target(), 2)

        assert result.loaded is True
        assert result.verified is True

    def test_observable_errors_are_tolerated(self, host, config):
        """Should treat failing observables as unknown and use the rest."""
        host.fail("evaluate", HostProtocolError("eval", "context destroyed"), times=100)
        result = Navigator(host, config).navigate(_target(), 2)

        assert result.observed["viewer_state"] is None
        assert result.observed["target_url"] == 2
        assert result.verified is True

    def test_dom_page_number_counts(self, host, config, monkeypatch):
        """Should accept the page number read from the viewer's page selector."""
        host.script(scripts.VIEWER_STATE_PAGE, None)
        host.script(scripts.DOM_PAGE_NUMBER, "4")
        monkeypatch.setattr(host, "target_info", lambda target: {"url": ""})

        result = Navigator(host, config).verify(_target(), 4)

        assert result.verified is True
        assert result.observed["dom_page_number"] == 4


class TestPageUrl:
    def test_replaces_existing_fragment(self, host, config):
        """Should drop any existing fragment before adding the page."""
        target = RenderTarget(target_id="t", url="https://example.test/a.pdf#zoom=50")
        assert Navigator(host, config).page_url(target, 7) == "https://example.test/a.pdf#page=7"
