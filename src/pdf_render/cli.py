from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path

from .artifacts import summarize, write_batch_artifacts
from .batch import render_document
from .config import RenderConfig
from .errors import RenderError
from .models import PageMetadata
from .playwright_host import PlaywrightRenderHost

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PAGE_FAILURES = 1
EXIT_FATAL = 2
EXIT_CANCELLED = 130


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling after current step...")
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-render",
        description="Render every page of a browser-displayed document to images",
    )
    parser.add_argument("url", help="Document URL (any #fragment is replaced per page)")
    parser.add_argument("--pages", type=int, required=True, help="Total number of pages")
    parser.add_argument(
        "--out", type=Path, default=Path("render_out"), help="Output directory (default: render_out)"
    )
    parser.add_argument("--page-width-pt", type=float, help="Page width in points (72 DPI)")
    parser.add_argument("--page-height-pt", type=float, help="Page height in points (72 DPI)")
    parser.add_argument("--rotation", type=int, default=0, help="Page rotation in degrees")
    parser.add_argument(
        "--original-context",
        help="Index or URL prefix of an already open page to measure the viewer layout from "
        "(needs --cdp-url)",
    )
    parser.add_argument(
        "--cdp-url",
        help="Connect to a running Chromium (e.g. http://127.0.0.1:9222) instead of launching one",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--channel", help="Chromium channel, e.g. 'chrome'")
    parser.add_argument("--verbose", action="store_true", help="Debug logging and candidate tables")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = RenderConfig.from_env()
    if args.verbose:
        config = replace(config, verbose=True)
    if args.headed:
        config = replace(config, headless=False)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.pages < 1:
        print(f"[RENDER][ERROR] --pages must be >= 1, got {args.pages}", file=sys.stderr)
        return EXIT_FATAL
    if args.original_context and not args.cdp_url:
        print(
            "[RENDER][ERROR] --original-context needs --cdp-url: "
            "a freshly launched browser has no open pages",
            file=sys.stderr,
        )
        return EXIT_FATAL

    metadata = None
    if args.page_width_pt and args.page_height_pt:
        metadata = PageMetadata(args.page_width_pt, args.page_height_pt, args.rotation)

    stop = threading.Event()
    _install_signal_handlers(stop)

    viewport = (config.viewport_width, config.viewport_height)
    if args.cdp_url:
        browser = PlaywrightRenderHost.connect(args.cdp_url, viewport=viewport)
    else:
        browser = PlaywrightRenderHost.launch(
            headless=config.headless, viewport=viewport, channel=args.channel
        )

    try:
        with browser as host:
            result = render_document(
                host,
                args.url,
                args.pages,
                page_metadata=metadata,
                original_context_id=args.original_context,
                config=config,
                should_cancel=stop.is_set,
            )
    except RenderError as e:
        print(f"[RENDER][ERROR] {e}", file=sys.stderr)
        return EXIT_FATAL

    status_path = write_batch_artifacts(args.out, result, args.url, config.capture_format)
    print(summarize(result))
    print(f"[RENDER] status={status_path}")

    if result.cancelled:
        return EXIT_CANCELLED
    return EXIT_PAGE_FAILURES if result.failures else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
