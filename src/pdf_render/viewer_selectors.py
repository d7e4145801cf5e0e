"""
Selectors for document viewer chrome and content.

Covers Chromium's built-in PDF viewer (shadow DOM under <pdf-viewer>) and
PDF.js-style viewers. Order matters: first visible match wins.
"""

VIEWER_ELEMENTS: dict[str, list[str]] = {
    "toolbar": [
        "viewer-toolbar",
        "#toolbar",
        "#toolbarContainer",
        "[role='toolbar']",
    ],
    "sidebar": [
        "#sidenav-container",
        "viewer-pdf-sidenav",
        "#sidebarContainer",
        "#outerContainer.sidebarOpen #sidebarContainer",
        "[role='navigation']",
    ],
    "content": [
        "#main",
        "#viewer",
        "#viewerContainer",
        "embed[type='application/pdf']",
        "embed",
    ],
    "plugin": [
        "#plugin",
        "embed[type='application/pdf']",
        "embed",
    ],
    "page": [
        ".page[data-page-number='{page}']",
        "#page-{page}",
        ".page",
    ],
    "page_number": [
        "#pageselector input",
        "viewer-page-selector input",
        "input#pageNumber",
        "#pageNumber",
    ],
}

# Chrome overlays hidden right before capture
SUPPRESSIBLE_KINDS = ("toolbar", "sidebar")


def selectors_for(kind: str, page: int | None = None) -> list[str]:
    """Selector list for `kind`, with `{page}` filled in when given."""
    out = []
    for sel in VIEWER_ELEMENTS.get(kind, []):
        if "{page}" in sel:
            if page is None:
                continue
            sel = sel.replace("{page}", str(page))
        out.append(sel)
    return out
