"""Shared fixtures: a scripted in-memory RenderHost, no browser needed."""

import io
import re
from pathlib import Path

import pytest
from PIL import Image

from pdf_render.base import Box
from pdf_render.config import RenderConfig
from pdf_render.errors import HostProtocolError
from pdf_render.models import ContentRegion, RenderTarget
from pdf_render import scripts

_PAGE_RE = re.compile(r"[#&]page=(\d+)")


def make_png(width: int, height: int, color=(255, 255, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def page_of(url: str | None) -> int | None:
    m = _PAGE_RE.search(url or "")
    return int(m.group(1)) if m else None


def page_color(page: int | None) -> tuple[int, int, int]:
    n = page or 0
    return ((n * 37) % 200 + 20, (n * 71) % 200 + 20, 120)


class FakeRenderHost:
    """
    In-memory RenderHost.

    - evaluate() answers from `scripted` (value or callable(target, arg))
    - failures are queued per method, optionally for one page only
    - clipped captures are solid PNGs coloured per page
    """

    def __init__(self, viewport=(1400, 900)):
        self.default_viewport = viewport
        self.targets: list[RenderTarget] = []
        self.existing: dict[str, RenderTarget] = {}
        self.scripted: dict[str, object] = {}
        self.structure: dict[str, list[Box]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.evaluations: list[tuple[str, object]] = []
        self.captures: list[ContentRegion | None] = []
        self.load_ok = True
        self.same_image = False
        self.full_raster: bytes | None = None
        self._failures: list[list] = []

    # --- test helpers ---

    def script(self, script: str, value) -> None:
        self.scripted[script] = value

    def fail(self, method: str, exc: Exception, times: int = 1, page: int | None = None) -> None:
        self._failures.append([method, page, exc, times])

    def _maybe_fail(self, method: str, page: int | None) -> None:
        for entry in self._failures:
            m, p, exc, remaining = entry
            if m == method and remaining > 0 and (p is None or p == page):
                entry[3] -= 1
                raise exc

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    @property
    def open_targets(self) -> list[RenderTarget]:
        return [t for t in self.targets if not t.closed]

    # --- RenderHost ---

    def open_target(self, url, viewport=None, timeout_s=60.0):
        self.calls.append(("open_target", url))
        self._maybe_fail("open_target", page_of(url))
        target = RenderTarget(
            target_id=f"fake-{len(self.targets) + 1}",
            url=url,
            viewport=viewport or self.default_viewport,
        )
        self.targets.append(target)
        return target

    def attach_existing(self, context_id):
        self.calls.append(("attach_existing", context_id))
        if context_id not in self.existing:
            raise HostProtocolError("no_such_context", f"No page matches '{context_id}'")
        return self.existing[context_id]

    def attach_inspector(self, target):
        self.calls.append(("attach_inspector", target.target_id))
        self._maybe_fail("attach_inspector", page_of(target.url))
        target.attached = True

    def detach_inspector(self, target):
        self.calls.append(("detach_inspector", target.target_id))
        target.attached = False

    def enable_domains(self, target, domains):
        self.calls.append(("enable_domains", target.target_id))

    def navigate(self, target, url, timeout_s):
        self.calls.append(("navigate", url))
        self._maybe_fail("navigate", page_of(url))
        target.url = url
        return self.load_ok

    def reload(self, target, timeout_s):
        self.calls.append(("reload", target.target_id))
        return self.load_ok

    def wait_for_load(self, target, timeout_s):
        self.calls.append(("wait_for_load", target.target_id))
        return self.load_ok

    def evaluate(self, target, script, arg=None):
        self.evaluations.append((script, arg))
        self._maybe_fail("evaluate", page_of(target.url))
        if script in self.scripted:
            value = self.scripted[script]
            return value(target, arg) if callable(value) else value
        if script == scripts.VIEWER_STATE_PAGE:
            return page_of(target.url)
        if script == scripts.RESTORE_SUPPRESSED:
            return len(arg["items"])
        if script in (scripts.SUPPRESS_BY_SELECTOR, scripts.SUPPRESS_BY_GEOMETRY):
            return []
        return None

    def query_structure(self, target, selector):
        self.calls.append(("query_structure", selector))
        return list(self.structure.get(selector, []))

    def target_info(self, target):
        return {"targetId": target.target_id, "url": target.url}

    def capture_raster(self, target, clip=None, image_format="png", quality=100):
        if clip is None:
            # viewport raster: plain white gives no page-bounds signal
            vw, vh = target.viewport or self.default_viewport
            return self.full_raster or make_png(vw, vh)
        self.calls.append(("capture_raster", target.target_id))
        self._maybe_fail("capture_raster", page_of(target.url))
        self.captures.append(clip)
        color = page_color(1 if self.same_image else page_of(target.url))
        return make_png(int(clip.width), int(clip.height), color)

    def close_target(self, target):
        self.calls.append(("close_target", target.target_id))
        if target.owned:
            target.closed = True


@pytest.fixture
def host() -> FakeRenderHost:
    return FakeRenderHost()


@pytest.fixture
def config() -> RenderConfig:
    return RenderConfig(navigation_settle_s=0.0, verify_interval_s=0.0, attach_backoff_s=0.0)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "render_out"
