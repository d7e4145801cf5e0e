from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .models import ContentRegion, RenderTarget


@dataclass(frozen=True)
class Box:
    """Border box of a DOM node in viewport pixels."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_quad(cls, quad: list[float]) -> Box:
        xs = quad[0::2]
        ys = quad[1::2]
        return cls(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


@runtime_checkable
class RenderHost(Protocol):
    """
    Minimalny kontrakt hosta renderującego.

    Założenia:
    - host otwiera i zamyka powierzchnie (viewport + sesja debug)
    - wszystkie wywołania są blokujące; host sam pilnuje timeoutów
    - błąd "sesja odłączona" host zgłasza jako SessionDetachedError
    """

    def open_target(
        self, url: str, viewport: tuple[int, int] | None = None, timeout_s: float = 60.0
    ) -> RenderTarget:
        """
        Creates a new, non-visible viewport at `url`. No session yet.
        A missing load signal within `timeout_s` is not an error.
        """
        ...

    def attach_existing(self, context_id: str) -> RenderTarget:
        """
        Returns a handle (owned=False) to the user's original viewing context.
        """
        ...

    def attach_inspector(self, target: RenderTarget) -> None: ...

    def detach_inspector(self, target: RenderTarget) -> None: ...

    def enable_domains(self, target: RenderTarget, domains: Iterable[str]) -> None: ...

    def navigate(self, target: RenderTarget, url: str, timeout_s: float) -> bool:
        """
        Navigates to `url`. Returns False when the load signal did not arrive in time.
        """
        ...

    def reload(self, target: RenderTarget, timeout_s: float) -> bool: ...

    def wait_for_load(self, target: RenderTarget, timeout_s: float) -> bool: ...

    def evaluate(self, target: RenderTarget, script: str, arg: Any = None) -> Any:
        """
        Runs a JS function source `script` as `(script)(arg)` and returns its JSON value.
        """
        ...

    def query_structure(self, target: RenderTarget, selector: str) -> list[Box]: ...

    def target_info(self, target: RenderTarget) -> dict[str, Any]: ...

    def capture_raster(
        self,
        target: RenderTarget,
        clip: ContentRegion | None = None,
        image_format: str = "png",
        quality: int = 100,
    ) -> bytes: ...

    def close_target(self, target: RenderTarget) -> None: ...
