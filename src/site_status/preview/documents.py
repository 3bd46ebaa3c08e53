"""
Static HTML documents served by the preview endpoint.

Every dynamic string is HTML-escaped before interpolation.
"""

from html import escape
from urllib.parse import urlsplit


def _safe_link_target(url: str) -> str:
    """Returns the URL if it is an http(s) URL, otherwise an empty string."""
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return ""
    return url if scheme in ("http", "https") else ""


def method_not_allowed_document(url: str) -> str:
    return (
        '<html lang="en"><body><h1>405 Method Not Allowed</h1>'
        f"<p>The requested URL {escape(url)} returned 405. "
        "Preview is not available for non-GET endpoints.</p></body></html>"
    )


def unavailable_document(url: str, reason: str = "Preview unavailable") -> str:
    """
    The graceful fallback shown instead of a preview, with a link to the target.

    The link is omitted unless the target is an http(s) URL.
    """
    target = _safe_link_target(url)
    link = (
        f'<a href="{escape(target)}" target="_blank" rel="noopener noreferrer">Open in new tab</a>'
        if target
        else ""
    )
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="utf-8">'
        "<title>Preview unavailable</title>"
        "<style>body{font-family:sans-serif;display:flex;align-items:center;"
        "justify-content:center;height:100vh;margin:0;color:#6b7280}"
        "div{text-align:center}a{font-size:12px}</style></head>"
        f"<body><div><p>{escape(reason)}</p>{link}</div></body></html>"
    )


WRAPPER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Preview of {title}</title>
<style>
html, body {{ margin: 0; height: 100%; overflow: hidden; font-family: sans-serif; }}
.state {{ display: none; height: 100%; align-items: center; justify-content: center; color: #6b7280; }}
body[data-state="loading"] #preview-loader {{ display: flex; }}
body[data-state="error"] #preview-error {{ display: flex; }}
#preview-frame {{ border: 0; width: 100%; height: 100%; visibility: hidden; pointer-events: none; }}
body[data-state="loaded"] #preview-frame {{ visibility: visible; }}
body:not([data-state="loaded"]) #preview-frame {{ position: absolute; }}
</style>
<script>
var previewSettled = false;
function previewSettle(state) {{
  if (previewSettled) {{ return; }}
  previewSettled = true;
  document.body.setAttribute("data-state", state);
}}
setTimeout(function () {{ previewSettle("error"); }}, {load_timeout_ms});
</script>
</head>
<body data-state="loading">
<div id="preview-loader" class="state"><p>Loading preview&hellip;</p></div>
<div id="preview-error" class="state"><div style="text-align:center">
<p>Preview unavailable</p>
<a href="{url}" target="_blank" rel="noopener noreferrer">Open in new tab</a>
</div></div>
<iframe id="preview-frame" src="{url}" title="Preview of {title}" sandbox="allow-same-origin"
 scrolling="no" referrerpolicy="no-referrer"
 onload="previewSettle('loaded')" onerror="previewSettle('error')"></iframe>
</body>
</html>
"""


def full_load_wrapper_document(url: str, load_timeout_ms: int) -> str:
    """
    A loader page that embeds the validated URL in a sandboxed frame.

    The page flips to its content state on the frame's load event, or to its
    error state on the frame's error event or after the timeout, whichever
    comes first. The state changes exactly once.

    Args:
        url: The validated final URL to embed.
        load_timeout_ms: How long to wait for the frame before showing the error state.
    """
    escaped = escape(url)
    return WRAPPER_TEMPLATE.format(
        url=escaped, title=escaped, load_timeout_ms=int(load_timeout_ms)
    )
