"""Tests for pdf_render.config."""

from pdf_render.config import RenderConfig


class TestBackoff:
    def test_schedule_in_order(self):
        """Should return the configured delays in order."""
        cfg = RenderConfig()
        assert [cfg.backoff_for(i) for i in range(4)] == [2.0, 5.0, 10.0, 20.0]

    def test_clamps_to_last(self):
        """Should reuse the last delay past the end of the schedule."""
        assert RenderConfig().backoff_for(9) == 20.0

    def test_empty_schedule(self):
        """Should not wait when no schedule is configured."""
        assert RenderConfig(backoff_s=()).backoff_for(0) == 0.0


class TestFromEnv:
    def test_defaults_without_env(self, monkeypatch):
        """Should equal the dataclass defaults when nothing is set."""
        for name in ("PDF_RENDER_MAX_RETRIES", "PDF_RENDER_BACKOFF_S", "PDF_RENDER_VERBOSE"):
            monkeypatch.delenv(name, raising=False)
        assert RenderConfig.from_env() == RenderConfig()

    def test_reads_overrides(self, monkeypatch):
        """Should read retry, backoff and verbose settings from the environment."""
        monkeypatch.setenv("PDF_RENDER_MAX_RETRIES", "2")
        monkeypatch.setenv("PDF_RENDER_BACKOFF_S", "1, 3")
        monkeypatch.setenv("PDF_RENDER_VERBOSE", "yes")
        monkeypatch.setenv("PDF_RENDER_CAPTURE_FORMAT", "JPG")

        cfg = RenderConfig.from_env()

        assert cfg.max_retries == 2
        assert cfg.backoff_s == (1.0, 3.0)
        assert cfg.verbose is True
        assert cfg.capture_format == "jpeg"

    def test_bad_values_fall_back(self, monkeypatch):
        """Should keep defaults for unparseable values."""
        monkeypatch.setenv("PDF_RENDER_MAX_RETRIES", "many")
        monkeypatch.setenv("PDF_RENDER_BACKOFF_S", "2,soon")
        monkeypatch.setenv("PDF_RENDER_CAPTURE_FORMAT", "gif")

        cfg = RenderConfig.from_env()

        assert cfg.max_retries == 4
        assert cfg.backoff_s == (2.0, 5.0, 10.0, 20.0)
        assert cfg.capture_format == "png"

    def test_clamps_out_of_range(self, monkeypatch):
        """Should clamp negative or tiny values into a sane range."""
        monkeypatch.setenv("PDF_RENDER_MAX_RETRIES", "-3")
        monkeypatch.setenv("PDF_RENDER_VIEWPORT_WIDTH", "10")

        cfg = RenderConfig.from_env()

        assert cfg.max_retries == 0
        assert cfg.viewport_width == 800
