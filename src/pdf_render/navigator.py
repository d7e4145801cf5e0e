"""
Drives a render surface to a given page and checks that it got there.

Fragment-only updates after the first load are not reliably honoured by the
viewer, so navigation is a full reload at the `#page=N` URL plus a scripted
`location.hash` update. A page that never signals load is a failed attempt;
verification is best-effort and never blocks forever.
"""

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from . import scripts
from .base import RenderHost
from .config import RenderConfig
from .errors import NavigationError, RenderError
from .models import RenderTarget
from .viewer_selectors import selectors_for

logger = logging.getLogger(__name__)

_FRAGMENT_PAGE_RE = re.compile(r"[#&]page=(\d+)")


@dataclass(frozen=True)
class NavigationResult:
    page_number: int
    verified: bool
    loaded: bool
    observed: dict[str, Any] = field(default_factory=dict)


def _page_from_url(url: str | None) -> int | None:
    m = _FRAGMENT_PAGE_RE.search(url or "")
    return int(m.group(1)) if m else None


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class Navigator:
    """Navigates a target to a page and verifies arrival."""

    def __init__(
        self,
        host: RenderHost,
        config: RenderConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.config = config or RenderConfig()
        self._sleep = sleep

    def page_url(self, target: RenderTarget, page_number: int) -> str:
        base = target.url.split("#", 1)[0]
        return f"{base}#page={page_number}"

    def navigate(self, target: RenderTarget, page_number: int) -> NavigationResult:
        loaded = self.load(target, page_number)
        return self.verify(target, page_number, loaded=loaded)

    def load(self, target: RenderTarget, page_number: int) -> bool:
        """Reload at the page URL. No load signal after the fallback wait raises NavigationError."""
        url = self.page_url(target, page_number)
        timeout = self.config.page_load_timeout_s

        self.host.navigate(target, url, timeout)
        loaded = self.host.reload(target, timeout)

        try:
            self.host.evaluate(target, scripts.SET_PAGE_FRAGMENT, {"page": page_number})
        except RenderError as e:
            logger.debug(f"[Navigator] Fragment update failed on {target.target_id}: {e}")

        if not loaded:
            # reload hit its ceiling; one short last chance for the load signal
            loaded = self.host.wait_for_load(target, min(timeout, 5.0))
            if not loaded:
                logger.warning(
                    f"[Navigator] ⚠️ Page {page_number}: no load signal after fallback wait"
                )
                raise NavigationError(
                    "load_timeout",
                    f"Page {page_number} did not load within {timeout}s",
                    {"url": url, "target_id": target.target_id},
                )
        if self.config.navigation_settle_s > 0:
            self._sleep(self.config.navigation_settle_s)
        return loaded

    def observe(self, target: RenderTarget, page_number: int) -> dict[str, Any]:
        """Current page number according to each independent observable."""
        observed: dict[str, Any] = {}
        probes: list[tuple[str, Callable[[], Any]]] = [
            ("viewer_state", lambda: self.host.evaluate(target, scripts.VIEWER_STATE_PAGE)),
            (
                "dom_page_number",
                lambda: self.host.evaluate(
                    target,
                    scripts.DOM_PAGE_NUMBER,
                    {"selectors": selectors_for("page_number")},
                ),
            ),
            ("url_fragment", lambda: self.host.evaluate(target, scripts.URL_FRAGMENT_PAGE)),
            ("target_url", lambda: _page_from_url(self.host.target_info(target).get("url"))),
        ]
        for name, read in probes:
            try:
                observed[name] = _as_int(read())
            except RenderError as e:
                logger.debug(f"[Navigator] Observable {name} unavailable: {e}")
                observed[name] = None
        return observed

    def verify(self, target: RenderTarget, page_number: int, loaded: bool = True) -> NavigationResult:
        attempts = max(1, self.config.verify_attempts)
        observed: dict[str, Any] = {}
        for attempt in range(1, attempts + 1):
            observed = self.observe(target, page_number)
            agreeing = [name for name, value in observed.items() if value == page_number]
            if agreeing:
                logger.debug(f"[Navigator] Page {page_number} verified by {', '.join(agreeing)}")
                return NavigationResult(page_number, True, loaded, observed)
            if attempt < attempts:
                self._sleep(self.config.verify_interval_s)

        logger.warning(
            f"[Navigator] ⚠️ Page {page_number} not verified after {attempts} checks "
            f"(observed={observed}); proceeding unverified"
        )
        return NavigationResult(page_number, False, loaded, observed)
