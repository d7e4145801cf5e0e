"""
UI suppressor.

Hides viewer chrome (toolbar, sidebar) right before capture and puts it back
afterwards. The original inline style of every hidden element travels in an
explicit SuppressionState value; nothing is stored on the page's window.
"""

import logging
from dataclasses import dataclass, field

from . import scripts
from .base import RenderHost
from .errors import RenderError
from .models import RenderTarget
from .viewer_selectors import SUPPRESSIBLE_KINDS, selectors_for

logger = logging.getLogger(__name__)

MARKER_ATTR = "data-pdf-render-hidden"


@dataclass(frozen=True)
class SuppressedElement:
    token: str
    kind: str
    strategy: str
    selector: str
    original_css: str


@dataclass(frozen=True)
class SuppressionState:
    target_id: str
    elements: tuple[SuppressedElement, ...] = field(default_factory=tuple)

    @property
    def empty(self) -> bool:
        return not self.elements

    def kinds(self) -> set[str]:
        return {e.kind for e in self.elements}


class UISuppressor:
    """Layered lookup of chrome overlays: direct selectors, shadow piercing, geometry."""

    def __init__(
        self,
        host: RenderHost,
        max_sidebar_ratio: float = 0.35,
        max_toolbar_ratio: float = 0.15,
    ):
        self.host = host
        self.max_sidebar_ratio = max_sidebar_ratio
        self.max_toolbar_ratio = max_toolbar_ratio

    def suppress(self, target: RenderTarget) -> SuppressionState:
        hidden: list[SuppressedElement] = []

        for kind in SUPPRESSIBLE_KINDS:
            selectors = selectors_for(kind)
            hidden += self._run(target, "selector", {"selectors": selectors, "pierce": False, "kind": kind})
            if not any(e.kind == kind for e in hidden):
                hidden += self._run(
                    target, "shadow", {"selectors": selectors, "pierce": True, "kind": kind}
                )

        missing = set(SUPPRESSIBLE_KINDS) - {e.kind for e in hidden}
        if missing:
            hidden += self._run(
                target,
                "geometry",
                {"maxSideRatio": self.max_sidebar_ratio, "maxBarRatio": self.max_toolbar_ratio},
            )

        state = SuppressionState(target_id=target.target_id, elements=tuple(hidden))
        if state.empty:
            logger.info(f"[UI] No chrome found on {target.target_id}; relying on clip only")
        else:
            logger.debug(
                f"[UI] Hid {len(state.elements)} element(s) on {target.target_id}: "
                f"{sorted(state.kinds())}"
            )
        return state

    def _run(self, target: RenderTarget, strategy: str, arg: dict) -> list[SuppressedElement]:
        script = scripts.SUPPRESS_BY_GEOMETRY if strategy == "geometry" else scripts.SUPPRESS_BY_SELECTOR
        try:
            found = self.host.evaluate(target, script, {**arg, "marker": MARKER_ATTR})
        except RenderError as e:
            logger.warning(f"[UI] Strategy '{strategy}' failed on {target.target_id}: {e}")
            return []
        out = []
        for item in found or []:
            if not isinstance(item, dict) or not item.get("token"):
                continue
            out.append(
                SuppressedElement(
                    token=str(item["token"]),
                    kind=str(item.get("kind") or arg.get("kind") or "unknown"),
                    strategy=strategy,
                    selector=str(item.get("selector") or ""),
                    original_css=str(item.get("css") or ""),
                )
            )
        return out

    def restore(self, target: RenderTarget, state: SuppressionState | None) -> int:
        """Revert every recorded element. Never raises."""
        if state is None or state.empty:
            return 0
        if target.closed or not target.attached:
            logger.debug(f"[UI] Skip restore on {target.target_id}: surface gone")
            return 0
        items = [{"token": e.token, "css": e.original_css} for e in state.elements]
        try:
            restored = self.host.evaluate(
                target, scripts.RESTORE_SUPPRESSED, {"marker": MARKER_ATTR, "items": items}
            )
        except Exception as e:
            logger.warning(f"[UI] Restore failed on {target.target_id}: {e}")
            return 0
        restored = int(restored or 0)
        if restored != len(items):
            logger.warning(f"[UI] Restored {restored}/{len(items)} element(s) on {target.target_id}")
        return restored
