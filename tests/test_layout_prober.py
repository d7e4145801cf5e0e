"""Tests for pdf_render.layout_prober."""

import pytest

from pdf_render import scripts
from pdf_render.base import Box
from pdf_render.errors import LayoutProbeError
from pdf_render.layout_prober import LayoutProber
from pdf_render.models import RenderTarget


@pytest.fixture
def original(host) -> RenderTarget:
    target = RenderTarget(
        target_id="original-0",
        url="https://example.test/doc.pdf",
        owned=False,
        viewport=(1400, 900),
    )
    host.existing["0"] = target
    return target


class TestProbe:
    def test_structural_measurement(self, host, original):
        """Should measure sidebar, toolbar and content with structural queries."""
        host.structure["#sidenav-container"] = [Box(0, 56, 250, 844)]
        host.structure["viewer-toolbar"] = [Box(0, 0, 1400, 56)]
        host.structure["#main"] = [Box(250, 56, 1150, 844)]

        baseline = LayoutProber(host).probe("0")

        assert baseline.sidebar_width == 250
        assert baseline.toolbar_height == 56
        assert (baseline.content_x, baseline.content_y) == (250, 56)
        assert (baseline.viewport_width, baseline.viewport_height) == (1400, 900)
        assert scripts.LAYOUT_PROBE not in [s for s, _ in host.evaluations]

    def test_shadow_fallback(self, host, original):
        """Should fall back to the shadow-piercing script when queries find nothing."""
        host.script(
            scripts.LAYOUT_PROBE,
            {
                "sidebar": None,
                "toolbar": {"x": 0, "y": 0, "width": 1280, "height": 48},
                "content": {"x": 0, "y": 48, "width": 1280, "height": 752},
                "viewport": {"width": 1280, "height": 800},
            },
        )

        baseline = LayoutProber(host).probe("0")

        assert baseline.sidebar_width == 0
        assert baseline.toolbar_height == 48
        assert baseline.content_height == 752
        assert (baseline.viewport_width, baseline.viewport_height) == (1280, 800)

    def test_read_only_on_original_context(self, host, original):
        """Should detach afterwards and never navigate or close the original."""
        host.structure["#main"] = [Box(0, 0, 1000, 800)]

        LayoutProber(host).probe("0")

        assert host.count("detach_inspector") == 1
        assert host.count("close_target") == 0
        assert host.count("navigate") == 0
        assert original.attached is False

    def test_missing_content_is_fatal(self, host, original):
        """Should raise LayoutProbeError and still detach when content is absent."""
        with pytest.raises(LayoutProbeError) as exc_info:
            LayoutProber(host).probe("0")

        assert exc_info.value.code == "content_area_missing"
        assert exc_info.value.retryable is False
        assert host.count("detach_inspector") == 1

    def test_unknown_context(self, host):
        """Should report an unknown original context as LayoutProbeError."""
        with pytest.raises(LayoutProbeError) as exc_info:
            LayoutProber(host).probe("missing")

        assert exc_info.value.code == "context_unavailable"
