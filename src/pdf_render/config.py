"""
Render pipeline configuration.

Defaults live on `RenderConfig`; `RenderConfig.from_env()` overrides them from
PDF_RENDER_* environment variables. Bad values fall back to the default.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    return val.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_float_tuple(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    parts = [p for p in re.split(r"[,;\s]+", val) if p.strip()]
    try:
        parsed = tuple(float(p) for p in parts)
    except ValueError:
        return default
    return parsed or default


def _env_capture_format(name: str, default: str) -> str:
    val = (os.environ.get(name) or "").strip().lower()
    if val == "jpg":
        val = "jpeg"
    return val if val in ("png", "jpeg") else default


@dataclass(frozen=True)
class RenderConfig:
    """
    Konfiguracja techniczna pipeline'u. Wstrzykiwana, nie hardcodowana.
    Czasy w sekundach.
    """

    verbose: bool = False

    # retry per page
    max_retries: int = 4
    backoff_s: tuple[float, ...] = (2.0, 5.0, 10.0, 20.0)

    # session attach
    attach_retries: int = 3
    attach_backoff_s: float = 0.5

    # timeouts
    target_load_timeout_s: float = 60.0
    page_load_timeout_s: float = 30.0
    navigation_settle_s: float = 0.5

    # page-number verification (best-effort)
    verify_attempts: int = 3
    verify_interval_s: float = 1.0

    # viewport
    viewport_width: int = 1400
    viewport_height: int = 900
    viewport_margin: int = 120
    headless: bool = True

    # plausibility bounds (exclusive)
    width_bounds: tuple[float, float] = (100.0, 5000.0)
    height_bounds: tuple[float, float] = (100.0, 10000.0)

    # fallback page size: A4 at 96 DPI
    default_page_width: float = 794.0
    default_page_height: float = 1123.0

    capture_format: str = "png"
    fingerprint_window: int = 4096

    def backoff_for(self, retry_index: int) -> float:
        """Delay before retry `retry_index` (0-based); clamps to the last entry."""
        if not self.backoff_s:
            return 0.0
        return self.backoff_s[min(max(0, retry_index), len(self.backoff_s) - 1)]

    @classmethod
    def from_env(cls) -> RenderConfig:
        d = cls()
        return cls(
            verbose=_env_bool("PDF_RENDER_VERBOSE", d.verbose),
            max_retries=max(0, _env_int("PDF_RENDER_MAX_RETRIES", d.max_retries)),
            backoff_s=_env_float_tuple("PDF_RENDER_BACKOFF_S", d.backoff_s),
            attach_retries=max(1, _env_int("PDF_RENDER_ATTACH_RETRIES", d.attach_retries)),
            attach_backoff_s=max(0.0, _env_float("PDF_RENDER_ATTACH_BACKOFF_S", d.attach_backoff_s)),
            target_load_timeout_s=max(
                1.0, _env_float("PDF_RENDER_TARGET_LOAD_TIMEOUT_S", d.target_load_timeout_s)
            ),
            page_load_timeout_s=max(
                1.0, _env_float("PDF_RENDER_PAGE_LOAD_TIMEOUT_S", d.page_load_timeout_s)
            ),
            navigation_settle_s=max(
                0.0, _env_float("PDF_RENDER_NAVIGATION_SETTLE_S", d.navigation_settle_s)
            ),
            verify_attempts=max(1, _env_int("PDF_RENDER_VERIFY_ATTEMPTS", d.verify_attempts)),
            verify_interval_s=max(
                0.0, _env_float("PDF_RENDER_VERIFY_INTERVAL_S", d.verify_interval_s)
            ),
            viewport_width=max(800, _env_int("PDF_RENDER_VIEWPORT_WIDTH", d.viewport_width)),
            viewport_height=max(600, _env_int("PDF_RENDER_VIEWPORT_HEIGHT", d.viewport_height)),
            viewport_margin=max(0, _env_int("PDF_RENDER_VIEWPORT_MARGIN", d.viewport_margin)),
            headless=_env_bool("PDF_RENDER_HEADLESS", d.headless),
            capture_format=_env_capture_format("PDF_RENDER_CAPTURE_FORMAT", d.capture_format),
            fingerprint_window=max(
                64, _env_int("PDF_RENDER_FINGERPRINT_WINDOW", d.fingerprint_window)
            ),
        )
