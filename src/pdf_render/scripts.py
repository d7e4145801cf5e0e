"""
Injected scripts for the render host.

Every script is a JS function source; the host evaluates it as
`(script)(arg)` and returns the JSON value. Helpers walk open shadow roots,
because the built-in PDF viewer keeps its toolbar and sidenav inside them.
"""

# Shared helpers, inlined into each script body
_HELPERS = r"""
  const deepAll = (selector) => {
    const out = [];
    const walk = (root) => {
      try { root.querySelectorAll(selector).forEach((el) => out.push(el)); } catch (e) { return; }
      root.querySelectorAll('*').forEach((el) => { if (el.shadowRoot) walk(el.shadowRoot); });
    };
    walk(document);
    return out;
  };
  const isVisible = (el) => {
    const r = el.getBoundingClientRect();
    const s = getComputedStyle(el);
    return r.width > 0 && r.height > 0 && s.display !== 'none' && s.visibility !== 'hidden'
      && parseFloat(s.opacity || '1') > 0;
  };
  const rectOf = (el) => {
    const r = el.getBoundingClientRect();
    return {x: r.left, y: r.top, width: r.width, height: r.height};
  };
  const firstVisible = (selectors) => {
    for (const sel of selectors) {
      const hit = deepAll(sel).find(isVisible);
      if (hit) return hit;
    }
    return null;
  };
"""


def _fn(body: str) -> str:
    return "(arg) => {\n" + _HELPERS + body + "\n}"


# Viewport / screen / scroll metrics
VIEWPORT_METRICS = _fn(
    r"""
  const de = document.documentElement;
  return {
    width: window.innerWidth,
    height: window.innerHeight,
    clientWidth: de ? de.clientWidth : 0,
    clientHeight: de ? de.clientHeight : 0,
    scrollWidth: de ? de.scrollWidth : 0,
    scrollHeight: de ? de.scrollHeight : 0,
    screenWidth: window.screen ? window.screen.availWidth : 0,
    screenHeight: window.screen ? window.screen.availHeight : 0,
    dpr: window.devicePixelRatio || 1,
  };
"""
)

# Rect of the first visible element matching any of arg.selectors (shadow-piercing)
ELEMENT_RECT = _fn(
    r"""
  const el = firstVisible(arg.selectors || []);
  return el ? rectOf(el) : null;
"""
)

# Computed CSS width/height of the first element matching arg.selectors
COMPUTED_SIZE = _fn(
    r"""
  for (const sel of (arg.selectors || [])) {
    const el = deepAll(sel)[0];
    if (!el) continue;
    const s = getComputedStyle(el);
    const w = parseFloat(s.width);
    const h = parseFloat(s.height);
    if (w > 0 || h > 0) return {width: isNaN(w) ? null : w, height: isNaN(h) ? null : h};
  }
  return null;
"""
)

# Original-context layout, used when direct DOM queries cannot see into shadow roots
LAYOUT_PROBE = _fn(
    r"""
  const side = firstVisible(arg.sidebar || []);
  const bar = firstVisible(arg.toolbar || []);
  const content = firstVisible(arg.content || []);
  return {
    sidebar: side ? rectOf(side) : null,
    toolbar: bar ? rectOf(bar) : null,
    content: content ? rectOf(content) : null,
    viewport: {width: window.innerWidth, height: window.innerHeight},
  };
"""
)

# Page-number observables
VIEWER_STATE_PAGE = _fn(
    r"""
  try {
    if (window.PDFViewerApplication && window.PDFViewerApplication.page) {
      return window.PDFViewerApplication.page;
    }
    const viewer = window.viewer || (document.querySelector('pdf-viewer') || {});
    const vp = viewer.viewport || viewer.viewport_;
    if (vp && typeof vp.getMostVisiblePage === 'function') return vp.getMostVisiblePage() + 1;
  } catch (e) {}
  return null;
"""
)

DOM_PAGE_NUMBER = _fn(
    r"""
  const el = firstVisible(arg.selectors || []);
  if (!el) return null;
  const raw = (el.value !== undefined && el.value !== '') ? el.value : el.textContent;
  const n = parseInt(String(raw || '').trim(), 10);
  return isNaN(n) ? null : n;
"""
)

URL_FRAGMENT_PAGE = _fn(
    r"""
  const m = /page=(\d+)/.exec(window.location.hash || '');
  return m ? parseInt(m[1], 10) : null;
"""
)

SET_PAGE_FRAGMENT = _fn(
    r"""
  window.location.hash = 'page=' + arg.page;
  return window.location.hash;
"""
)

# Hide elements matched by selectors; arg = {selectors, marker, pierce, kind}
SUPPRESS_BY_SELECTOR = _fn(
    r"""
  const found = [];
  for (const sel of (arg.selectors || [])) {
    const els = arg.pierce ? deepAll(sel) : Array.from(document.querySelectorAll(sel));
    for (const el of els) {
      if (el.hasAttribute(arg.marker) || !isVisible(el)) continue;
      const token = arg.kind + '-' + Math.random().toString(36).slice(2, 10);
      found.push({token: token, kind: arg.kind, selector: sel, css: el.style.cssText});
      el.setAttribute(arg.marker, token);
      el.style.setProperty('visibility', 'hidden', 'important');
      el.style.setProperty('opacity', '0', 'important');
    }
  }
  return found;
"""
)

# Hide chrome by geometry; arg = {marker, maxSideRatio, maxBarRatio}
SUPPRESS_BY_GEOMETRY = _fn(
    r"""
  const vw = window.innerWidth, vh = window.innerHeight;
  const found = [];
  for (const el of deepAll('*')) {
    if (el === document.body || el === document.documentElement) continue;
    if (el.hasAttribute(arg.marker) || !isVisible(el)) continue;
    const tag = el.tagName.toLowerCase();
    if (tag === 'embed' || tag === 'canvas' || tag === 'iframe') continue;
    const r = el.getBoundingClientRect();
    let kind = null;
    if (r.left <= 2 && r.top <= 2 + vh * 0.1 && r.width < vw * arg.maxSideRatio && r.height >= vh * 0.9) {
      kind = 'sidebar';
    } else if (r.top <= 2 && r.height <= vh * arg.maxBarRatio && r.width >= vw * 0.9) {
      kind = 'toolbar';
    }
    if (!kind) continue;
    const token = kind + '-' + Math.random().toString(36).slice(2, 10);
    found.push({token: token, kind: kind, selector: 'geometry', css: el.style.cssText});
    el.setAttribute(arg.marker, token);
    el.style.setProperty('visibility', 'hidden', 'important');
    el.style.setProperty('opacity', '0', 'important');
  }
  return found;
"""
)

# Revert suppressed elements; arg = {marker, items: [{token, css}]}
RESTORE_SUPPRESSED = _fn(
    r"""
  const byToken = {};
  for (const el of deepAll('[' + arg.marker + ']')) byToken[el.getAttribute(arg.marker)] = el;
  let restored = 0;
  for (const item of (arg.items || [])) {
    const el = byToken[item.token];
    if (!el) continue;
    el.style.cssText = item.css || '';
    el.removeAttribute(arg.marker);
    restored += 1;
  }
  return restored;
"""
)
