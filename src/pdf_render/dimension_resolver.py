"""
Dimension resolver.

There is no primitive for "content rectangle excluding viewer chrome", so the
resolver collects many individually unreliable measurements (candidates) and
reduces them per dimension with best-candidate selection:

1. drop candidates outside the plausibility bounds
2. rank by static source priority (higher wins)
3. ties go to the smaller value (less likely to include chrome)
4. nothing left -> fixed default tied to A4 proportions

Each measurement source is a small probe function registered with a static
priority. Probes only read host state.
"""

import io
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from PIL import Image

from . import scripts
from .base import RenderHost
from .config import RenderConfig
from .errors import RenderError
from .models import Candidate, ContentRegion, LayoutBaseline, PageMetadata, RenderTarget
from .viewer_selectors import selectors_for

logger = logging.getLogger(__name__)

DIMENSIONS = ("x", "y", "width", "height")

# Static source priorities
PRIORITY_RASTER = 100
PRIORITY_PAGE_ELEMENT = 95
PRIORITY_METADATA = 80
PRIORITY_BASELINE = 70
PRIORITY_PLUGIN_BOX = 60
PRIORITY_COMPUTED_STYLE = 50
PRIORITY_VIEWPORT_CHROME = 30
PRIORITY_VIEWPORT = 20
PRIORITY_SCREEN = 15
PRIORITY_GUESS = 10

# Near-white threshold for page pixels in a viewport raster
_PAGE_WHITE_LEVEL = 235
_PAGE_FILL_RATIO = 0.5

A4_RATIO = math.sqrt(2)

# Max size difference for a box position to count as the page position
EXTENT_TOLERANCE_PX = 1.0


@dataclass
class ProbeContext:
    host: RenderHost
    target: RenderTarget
    viewport: dict[str, float]
    page_metadata: PageMetadata | None = None
    baseline: LayoutBaseline | None = None
    page_number: int | None = None
    total_pages: int | None = None


ProbeFn = Callable[[ProbeContext], Mapping[str, Any] | None]


@dataclass(frozen=True)
class Probe:
    name: str
    priority: int
    fn: ProbeFn


PROBES: list[Probe] = []


def register_probe(name: str, priority: int, registry: list[Probe] | None = None):
    """Decorator adding a probe function to the registry."""
    target_registry = PROBES if registry is None else registry

    def deco(fn: ProbeFn) -> ProbeFn:
        target_registry.append(Probe(name=name, priority=priority, fn=fn))
        return fn

    return deco


def select_best(candidates: Iterable[Candidate], bounds: tuple[float, float]) -> Candidate | None:
    """Highest-priority plausible candidate; ties toward the smaller value."""
    low, high = bounds
    survivors = [c for c in candidates if low < c.value < high]
    if not survivors:
        return None
    return min(survivors, key=lambda c: (-c.priority, c.value, c.source))


def _same_extent(candidates: list[Candidate], source: str, size_dim: str, size: float) -> bool:
    """True when `source` gave no size on this axis or one within a pixel of `size`."""
    sizes = [c.value for c in candidates if c.source == source and c.dimension == size_dim]
    return not sizes or any(abs(v - size) <= EXTENT_TOLERANCE_PX for v in sizes)


def _num(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _rect(rect: Any) -> dict[str, Any] | None:
    if not isinstance(rect, dict):
        return None
    return {dim: rect.get(dim) for dim in DIMENSIONS}


# ----------------------------------------------------------------------
# Probes
# ----------------------------------------------------------------------


def page_bounds_from_raster(data: bytes) -> dict[str, float] | None:
    """
    Bounding box of the light page area inside a viewport raster.

    Viewer background and chrome are darker than paper; a white HTML page
    that fills the whole raster gives no signal and returns None.
    """
    with Image.open(io.BytesIO(data)) as img:
        gray = np.asarray(img.convert("L"), dtype=np.uint8)
    if gray.size == 0:
        return None
    white = gray >= _PAGE_WHITE_LEVEL
    cols = np.flatnonzero(white.mean(axis=0) > _PAGE_FILL_RATIO)
    if cols.size == 0:
        return None
    x0, x1 = int(cols[0]), int(cols[-1]) + 1
    rows = np.flatnonzero(white[:, x0:x1].mean(axis=1) > _PAGE_FILL_RATIO)
    if rows.size == 0:
        return None
    y0, y1 = int(rows[0]), int(rows[-1]) + 1
    h, w = gray.shape
    if (x1 - x0) >= w * 0.98 and (y1 - y0) >= h * 0.98:
        return None
    return {"x": float(x0), "y": float(y0), "width": float(x1 - x0), "height": float(y1 - y0)}


@register_probe("raster_page_bounds", PRIORITY_RASTER)
def _probe_raster(ctx: ProbeContext):
    data = ctx.host.capture_raster(ctx.target, None, "png")
    return page_bounds_from_raster(data)


@register_probe("page_element_box", PRIORITY_PAGE_ELEMENT)
def _probe_page_element(ctx: ProbeContext):
    rect = ctx.host.evaluate(
        ctx.target, scripts.ELEMENT_RECT, {"selectors": selectors_for("page", ctx.page_number)}
    )
    return _rect(rect)


@register_probe("page_metadata", PRIORITY_METADATA)
def _probe_metadata(ctx: ProbeContext):
    if ctx.page_metadata is None:
        return None
    width, height = ctx.page_metadata.to_pixels()
    return {"width": width, "height": height}


@register_probe("layout_baseline", PRIORITY_BASELINE)
def _probe_baseline(ctx: ProbeContext):
    b = ctx.baseline
    if b is None:
        return None
    return {
        "x": max(b.content_x, b.sidebar_width),
        "y": b.content_y,
        "width": b.content_width,
        "height": b.content_height,
    }


@register_probe("plugin_box", PRIORITY_PLUGIN_BOX)
def _probe_plugin_box(ctx: ProbeContext):
    for selector in selectors_for("plugin"):
        for box in ctx.host.query_structure(ctx.target, selector):
            if box.width > 0 and box.height > 0:
                return {"x": box.x, "y": box.y, "width": box.width, "height": box.height}
    return None


@register_probe("computed_style", PRIORITY_COMPUTED_STYLE)
def _probe_computed_style(ctx: ProbeContext):
    selectors = selectors_for("page", ctx.page_number) + selectors_for("plugin")
    size = ctx.host.evaluate(ctx.target, scripts.COMPUTED_SIZE, {"selectors": selectors})
    if not isinstance(size, dict):
        return None
    return {"width": size.get("width"), "height": size.get("height")}


@register_probe("viewport_minus_chrome", PRIORITY_VIEWPORT_CHROME)
def _probe_viewport_minus_chrome(ctx: ProbeContext):
    side = ctx.baseline.sidebar_width if ctx.baseline else 0.0
    bar = ctx.baseline.toolbar_height if ctx.baseline else 0.0
    vw = _num(ctx.viewport.get("width"))
    vh = _num(ctx.viewport.get("height"))
    if vw is None or vh is None:
        return None
    # x left out: the page is centred in the area, not flush with the sidebar
    return {"y": bar, "width": vw - side, "height": vh - bar}


@register_probe("viewport_client", PRIORITY_VIEWPORT)
def _probe_viewport_client(ctx: ProbeContext):
    return {
        "width": ctx.viewport.get("clientWidth"),
        "height": ctx.viewport.get("clientHeight"),
    }


@register_probe("screen_metrics", PRIORITY_SCREEN)
def _probe_screen(ctx: ProbeContext):
    return {
        "width": ctx.viewport.get("screenWidth"),
        "height": ctx.viewport.get("screenHeight"),
    }


@register_probe("scroll_size_guess", PRIORITY_GUESS)
def _probe_scroll_guess(ctx: ProbeContext):
    scroll_h = _num(ctx.viewport.get("scrollHeight"))
    height = scroll_h / ctx.total_pages if scroll_h and ctx.total_pages else None
    return {"width": ctx.viewport.get("scrollWidth"), "height": height}


# ----------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------


@dataclass
class DimensionResolver:
    host: RenderHost
    config: RenderConfig = field(default_factory=RenderConfig)
    probes: list[Probe] | None = None

    @property
    def bounds(self) -> dict[str, tuple[float, float]]:
        width_high = self.config.width_bounds[1]
        height_high = self.config.height_bounds[1]
        return {
            "x": (-1.0, width_high),
            "y": (-1.0, height_high),
            "width": self.config.width_bounds,
            "height": self.config.height_bounds,
        }

    def viewport_metrics(self, target: RenderTarget) -> dict[str, float]:
        metrics: dict[str, float] = {}
        try:
            raw = self.host.evaluate(target, scripts.VIEWPORT_METRICS)
            if isinstance(raw, dict):
                metrics = {k: v for k, v in raw.items() if _num(v) is not None}
        except RenderError as e:
            logger.debug(f"[Resolver] Viewport metrics unavailable: {e}")
        if not metrics.get("width") or not metrics.get("height"):
            vw, vh = target.viewport or (self.config.viewport_width, self.config.viewport_height)
            metrics["width"], metrics["height"] = float(vw), float(vh)
        return metrics

    def collect(self, ctx: ProbeContext) -> list[Candidate]:
        out: list[Candidate] = []
        for probe in PROBES if self.probes is None else self.probes:
            try:
                values = probe.fn(ctx)
            except Exception as e:
                logger.debug(f"[Resolver] Probe {probe.name} failed: {e}")
                continue
            if not values:
                continue
            for dim in DIMENSIONS:
                value = _num(values.get(dim))
                if value is not None:
                    out.append(Candidate(dim, probe.name, value, probe.priority))
        return out

    def resolve(
        self,
        target: RenderTarget,
        page_metadata: PageMetadata | None = None,
        baseline: LayoutBaseline | None = None,
        page_number: int | None = None,
        total_pages: int | None = None,
    ) -> ContentRegion:
        viewport = self.viewport_metrics(target)
        ctx = ProbeContext(
            host=self.host,
            target=target,
            viewport=viewport,
            page_metadata=page_metadata,
            baseline=baseline,
            page_number=page_number if page_number is not None else target.page_number,
            total_pages=total_pages,
        )
        candidates = self.collect(ctx)
        if self.config.verbose:
            for c in sorted(candidates, key=lambda c: (c.dimension, -c.priority, c.value)):
                logger.info(
                    f"[Resolver] candidate {c.dimension:<6} {c.value:>9.1f} "
                    f"pri={c.priority:<3} src={c.source}"
                )
        left_inset = baseline.sidebar_width if baseline else 0.0
        return self.reduce(candidates, viewport["width"], viewport["height"], left_inset)

    def reduce(
        self,
        candidates: list[Candidate],
        viewport_width: float,
        viewport_height: float,
        left_inset: float = 0.0,
    ) -> ContentRegion:
        """Best-candidate selection per dimension, defaults, then clamp into the viewport."""
        bounds = self.bounds
        chosen = {
            dim: select_best([c for c in candidates if c.dimension == dim], bounds[dim])
            for dim in ("width", "height")
        }
        sources = {dim: (c.source if c else "default") for dim, c in chosen.items()}

        if chosen["width"] is not None:
            width = chosen["width"].value
        else:
            width = self.config.default_page_width
        if chosen["height"] is not None:
            height = chosen["height"].value
        elif chosen["width"] is not None:
            height = width * A4_RATIO
            sources["height"] = "default_ratio"
        else:
            height = self.config.default_page_height

        # x/y only from sources that measured the same extent on that axis
        for pos_dim, size_dim, size in (("x", "width", width), ("y", "height", height)):
            aligned = [
                c
                for c in candidates
                if c.dimension == pos_dim and _same_extent(candidates, c.source, size_dim, size)
            ]
            chosen[pos_dim] = select_best(aligned, bounds[pos_dim])
            sources[pos_dim] = chosen[pos_dim].source if chosen[pos_dim] else "default"

        width = min(width, viewport_width)
        height = min(height, viewport_height)
        if chosen["x"] is not None:
            x = chosen["x"].value
        else:
            x = left_inset + (viewport_width - left_inset - width) / 2
            sources["x"] = "centered"
        y = chosen["y"].value if chosen["y"] is not None else 0.0

        x = min(max(0.0, x), viewport_width - width)
        y = min(max(0.0, y), viewport_height - height)

        region = ContentRegion(
            x=float(math.floor(x)),
            y=float(math.floor(y)),
            width=float(max(1, math.floor(width))),
            height=float(max(1, math.floor(height))),
            viewport_width=float(viewport_width),
            viewport_height=float(viewport_height),
            source=f"{sources['width']}/{sources['height']}",
            sources=sources,
        )
        logger.debug(
            f"[Resolver] Region {region.width:.0f}x{region.height:.0f} "
            f"at ({region.x:.0f},{region.y:.0f}) from {region.source}"
        )
        return region
