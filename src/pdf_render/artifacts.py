from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import BatchResult


def _utc_now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def page_filename(page_number: int, image_format: str = "png") -> str:
    ext = "jpg" if image_format == "jpeg" else image_format
    return f"page_{page_number:04d}.{ext}"


def technical_state(result: BatchResult) -> str:
    if result.cancelled:
        return "CANCELLED"
    if result.failures:
        return "PARTIAL" if result.pages else "FAILED"
    return "DONE"


def write_status(
    out_dir: Path,
    result: BatchResult,
    *,
    document_url: str,
    files: dict[int, str] | None = None,
) -> Path:
    """
    Zapisuje status batcha do <out_dir>/status.json.
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    payload: dict[str, Any] = {
        "technical_state": technical_state(result),
        "updated_at": _utc_now_iso(),
        "document_url": document_url,
        **result.to_json_dict(),
    }
    if files:
        for page in payload["pages"]:
            page["file"] = files.get(page["page_number"])

    path = out_dir / "status.json"
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


def write_batch_artifacts(
    out_dir: Path,
    result: BatchResult,
    document_url: str,
    image_format: str = "png",
) -> Path:
    """Page images (page_0001.png, ...) plus status.json. Returns the status path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    files: dict[int, str] = {}
    for page in result.pages:
        name = page_filename(page.page_number, image_format)
        (out_dir / name).write_bytes(page.image_bytes)
        files[page.page_number] = name
    return write_status(out_dir, result, document_url=document_url, files=files)


def summarize(result: BatchResult) -> str:
    """Human-readable outcome: counts first, then one line per failed page."""
    lines = [
        f"{result.rendered_count} of {result.total_pages} pages rendered, "
        f"{result.failed_count} failed"
    ]
    if result.cancelled:
        lines.append(f"cancelled at page {result.cancelled_at_page}")
    if result.suspect:
        lines.append("warning: all rendered pages are identical")
    for failure in result.failures:
        lines.append(
            f"page {failure.page_number}: {failure.message} (retries={failure.retries})"
        )
    return "\n".join(lines)
