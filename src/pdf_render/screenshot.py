"""
Screenshot capturer.

Clipped raster capture of the resolved content region. The decoded image
header, not the requested clip, is the authority on pixel size.
"""

import hashlib
import io
import logging

from PIL import Image, UnidentifiedImageError

from .base import RenderHost
from .config import RenderConfig
from .errors import CaptureError, SessionDetachedError
from .models import CapturedImage, ContentRegion, RenderTarget
from .session_manager import RenderSessionManager

logger = logging.getLogger(__name__)


def image_size(data: bytes) -> tuple[int, int]:
    """(width, height) read from the image container header."""
    if not data:
        raise CaptureError("empty_capture", "Capture returned no bytes")
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        raise CaptureError("undecodable_capture", f"Cannot read image header: {e}") from e


def fingerprint(data: bytes, window: int = 4096) -> str:
    """Digest over length + fixed prefix/suffix of the encoded bytes."""
    h = hashlib.sha256()
    h.update(len(data).to_bytes(8, "big"))
    h.update(data[:window])
    h.update(data[-window:])
    return h.hexdigest()


class ScreenshotCapturer:
    def __init__(
        self,
        host: RenderHost,
        sessions: RenderSessionManager,
        config: RenderConfig | None = None,
    ):
        self.host = host
        self.sessions = sessions
        self.config = config or RenderConfig()

    def capture(self, target: RenderTarget, region: ContentRegion) -> CapturedImage:
        fmt = self.config.capture_format
        try:
            data = self.host.capture_raster(target, region, fmt, 100)
        except SessionDetachedError as e:
            logger.warning(f"[Capture] {target.target_id} detached ({e}); reattaching once")
            self.sessions.reattach(target)
            data = self.host.capture_raster(target, region, fmt, 100)

        width, height = image_size(data)
        if (width, height) != (int(region.width), int(region.height)):
            logger.debug(
                f"[Capture] Requested {region.width:.0f}x{region.height:.0f}, "
                f"got {width}x{height} on {target.target_id}"
            )
        digest = fingerprint(data, self.config.fingerprint_window)
        logger.debug(f"[Capture] {target.target_id}: {width}x{height} {len(data)}B fp={digest[:12]}")
        return CapturedImage(
            image_bytes=data, width=width, height=height, fingerprint=digest, image_format=fmt
        )
