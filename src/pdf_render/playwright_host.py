"""
Playwright implementation of the render host.

Drives Chromium through Playwright's sync API, either a freshly launched
browser or one reached over CDP. Each render surface is a new page in one
shared BrowserContext; protocol access goes through a CDP session
attached with `BrowserContext.new_cdp_session`.
"""

import base64
import itertools
import json
import logging
import re
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from playwright.sync_api import BrowserContext, sync_playwright
from playwright.sync_api import Error as PwError
from playwright.sync_api import TimeoutError as PwTimeoutError

from .base import Box
from .errors import (
    CaptureError,
    HostProtocolError,
    NavigationError,
    RenderSurfaceError,
    SessionDetachedError,
)
from .models import ContentRegion, RenderTarget

logger = logging.getLogger(__name__)

# Messages Playwright/CDP use when the session or page is gone
_DETACHED_RE = re.compile(
    r"(Target closed|Session closed|has been closed|not attached|No target with given id|"
    r"Target page, context or browser has been closed)",
    re.IGNORECASE,
)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-session-crashed-bubble",
    "--disable-features=TranslateUI",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--hide-scrollbars",
]


class PlaywrightRenderHost:
    """Render host backed by a Playwright BrowserContext."""

    def __init__(self, context: BrowserContext, default_viewport: tuple[int, int] = (1400, 900)):
        self.context = context
        self.default_viewport = default_viewport
        self._ids = itertools.count(1)

    @classmethod
    @contextmanager
    def launch(
        cls,
        headless: bool = True,
        viewport: tuple[int, int] = (1400, 900),
        channel: str | None = None,
    ) -> Iterator["PlaywrightRenderHost"]:
        """Start Chromium and yield a host; browser is closed on exit."""
        logger.info(f"[Browser] Starting Playwright (headless={headless}, channel={channel})")
        with sync_playwright() as p:
            browser = p.chromium.launch(
                headless=headless,
                args=_LAUNCH_ARGS,
                chromium_sandbox=False,
                channel=channel,
            )
            try:
                context = browser.new_context(
                    viewport={"width": viewport[0], "height": viewport[1]},
                    device_scale_factor=1,
                    reduced_motion="reduce",
                )
                yield cls(context, default_viewport=viewport)
            finally:
                try:
                    browser.close()
                except Exception as e:
                    logger.warning(f"[Browser] Close failed: {e}")

    @classmethod
    @contextmanager
    def connect(
        cls,
        cdp_url: str,
        viewport: tuple[int, int] = (1400, 900),
        attempts: int = 6,
        retry_delay_s: float = 1.0,
    ) -> Iterator["PlaywrightRenderHost"]:
        """
        Podłącza się do już działającego Chromium przez CDP.

        Karty otwarte w przeglądarce pozostają widoczne (`attach_existing`),
        nowe powierzchnie renderowania trafiają do jej pierwszego kontekstu.
        Na wyjściu tylko rozłącza, przeglądarka działa dalej.
        """
        logger.info(f"[Browser] Connecting to remote Chromium over CDP: {cdp_url}")
        with sync_playwright() as p:
            browser = None
            last_error: Exception | None = None
            for attempt in range(max(1, attempts)):
                try:
                    browser = p.chromium.connect_over_cdp(cdp_url)
                    break
                except PwError as e:
                    last_error = e
                    logger.warning(
                        f"[Browser] Remote CDP connect retry {attempt + 1}/{attempts} failed: {e}"
                    )
                    time.sleep(retry_delay_s)
            if browser is None:
                raise RenderSurfaceError(
                    "cdp_connect_failed", f"Could not connect to {cdp_url}: {last_error}"
                )
            try:
                if browser.contexts:
                    context = browser.contexts[0]
                else:
                    context = browser.new_context(
                        viewport={"width": viewport[0], "height": viewport[1]},
                        device_scale_factor=1,
                    )
                yield cls(context, default_viewport=viewport)
            finally:
                try:
                    browser.close()
                except Exception as e:
                    logger.warning(f"[Browser] Disconnect failed: {e}")

    # ------------------------------------------------------------------
    # Surfaces
    # ------------------------------------------------------------------

    def open_target(
        self,
        url: str,
        viewport: tuple[int, int] | None = None,
        timeout_s: float = 60.0,
    ) -> RenderTarget:
        try:
            page = self.context.new_page()
        except PwError as e:
            raise RenderSurfaceError("surface_create_failed", f"new_page failed: {e}") from e

        size = viewport or self.default_viewport
        target = RenderTarget(
            target_id=f"page-{next(self._ids)}",
            url=url,
            handle=page,
            viewport=size,
        )
        try:
            page.set_viewport_size({"width": size[0], "height": size[1]})
            page.goto(url, wait_until="load", timeout=timeout_s * 1000)
        except PwTimeoutError as e:
            logger.warning(f"[Browser] {target.target_id}: load not signalled in {timeout_s}s")
            self.close_target(target)
            raise NavigationError("target_load_timeout", f"{url}: no load in {timeout_s}s") from e
        except PwError as e:
            self.close_target(target)
            raise NavigationError("target_load_failed", f"{url}: {e}") from e
        return target

    def attach_existing(self, context_id: str) -> RenderTarget:
        pages = list(self.context.pages)
        for idx, page in enumerate(pages):
            if context_id == str(idx) or (page.url or "").startswith(context_id):
                size = page.viewport_size or {}
                return RenderTarget(
                    target_id=f"orig-{idx}",
                    url=page.url,
                    owned=False,
                    handle=page,
                    viewport=(size.get("width", 0), size.get("height", 0)) if size else None,
                )
        raise HostProtocolError(
            "context_not_found",
            f"No open page matches '{context_id}'",
            {"pages": [p.url for p in pages]},
        )

    def close_target(self, target: RenderTarget) -> None:
        if target.closed:
            return
        if not target.owned:
            logger.debug(f"[Browser] Not closing foreign context {target.target_id}")
            return
        try:
            target.handle.close()
        finally:
            target.closed = True

    # ------------------------------------------------------------------
    # Inspector session
    # ------------------------------------------------------------------

    def attach_inspector(self, target: RenderTarget) -> None:
        try:
            target.session = self.context.new_cdp_session(target.handle)
        except PwError as e:
            raise self._translate(e, "attach") from e
        target.attached = True

    def detach_inspector(self, target: RenderTarget) -> None:
        session = target.session
        target.session = None
        target.attached = False
        if session is None:
            return
        try:
            session.detach()
        except PwError as e:
            raise self._translate(e, "detach") from e

    def enable_domains(self, target: RenderTarget, domains: Iterable[str]) -> None:
        for domain in domains:
            self._send(target, f"{domain}.enable")

    def _send(self, target: RenderTarget, method: str, params: dict | None = None) -> dict:
        if not target.attached or target.session is None:
            raise SessionDetachedError(
                "session_not_attached", f"{method}: no session on {target.target_id}"
            )
        try:
            return target.session.send(method, params or {})
        except PwError as e:
            raise self._translate(e, method) from e

    def _translate(self, e: Exception, method: str):
        msg = str(e)
        if _DETACHED_RE.search(msg):
            return SessionDetachedError("session_detached", f"{method}: {msg}")
        return HostProtocolError("protocol_error", f"{method}: {msg}")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(self, target: RenderTarget, url: str, timeout_s: float) -> bool:
        try:
            target.handle.goto(url, wait_until="load", timeout=timeout_s * 1000)
        except PwTimeoutError:
            return False
        except PwError as e:
            raise NavigationError("navigate_failed", f"{url}: {e}") from e
        target.url = url
        return True

    def reload(self, target: RenderTarget, timeout_s: float) -> bool:
        try:
            target.handle.reload(wait_until="load", timeout=timeout_s * 1000)
        except PwTimeoutError:
            return False
        except PwError as e:
            raise NavigationError("reload_failed", str(e)) from e
        return True

    def wait_for_load(self, target: RenderTarget, timeout_s: float) -> bool:
        try:
            target.handle.wait_for_load_state("load", timeout=timeout_s * 1000)
        except PwTimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def evaluate(self, target: RenderTarget, script: str, arg: Any = None) -> Any:
        expression = f"({script})({json.dumps(arg)})"
        result = self._send(
            target,
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        if result.get("exceptionDetails"):
            details = result["exceptionDetails"]
            text = details.get("exception", {}).get("description") or details.get("text", "")
            raise HostProtocolError("script_exception", text)
        return result.get("result", {}).get("value")

    def query_structure(self, target: RenderTarget, selector: str) -> list[Box]:
        doc = self._send(target, "DOM.getDocument", {"depth": 0})
        root_id = doc["root"]["nodeId"]
        found = self._send(target, "DOM.querySelectorAll", {"nodeId": root_id, "selector": selector})
        boxes: list[Box] = []
        for node_id in found.get("nodeIds", []):
            try:
                model = self._send(target, "DOM.getBoxModel", {"nodeId": node_id})
            except HostProtocolError:
                # node without layout (display:none)
                continue
            quad = model.get("model", {}).get("border")
            if quad:
                boxes.append(Box.from_quad(quad))
        return boxes

    def target_info(self, target: RenderTarget) -> dict[str, Any]:
        try:
            return self._send(target, "Target.getTargetInfo").get("targetInfo", {})
        except HostProtocolError:
            return {"url": target.handle.url}

    def capture_raster(
        self,
        target: RenderTarget,
        clip: ContentRegion | None = None,
        image_format: str = "png",
        quality: int = 100,
    ) -> bytes:
        params: dict[str, Any] = {
            "format": image_format,
            "fromSurface": True,
            "captureBeyondViewport": False,
        }
        if image_format == "jpeg":
            params["quality"] = quality
        if clip is not None:
            params["clip"] = clip.to_clip()
        result = self._send(target, "Page.captureScreenshot", params)
        data = result.get("data")
        if not data:
            raise CaptureError("empty_capture", f"No image data from {target.target_id}")
        return base64.b64decode(data)
