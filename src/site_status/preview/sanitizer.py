"""
HTML sanitizer and rewriter for embeddable previews.

The document is parsed with BeautifulSoup on the html5lib tree builder, which
builds the same tree a browser does, and walked once. Executable content is
removed, dangerous URIs are neutralized by renaming the attribute,
and a <base>, a script-blocking Content-Security-Policy and a no-scroll style
are installed at the start of <head>. Applying the sanitizer to its own output
yields the same output.
"""

import logging
import re
from typing import Iterable, List, Union
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

# Module logger
logger = logging.getLogger(__name__)

# Elements removed together with their content
REMOVED_ELEMENTS = ["script", "noscript", "object", "embed", "applet"]

JAVASCRIPT_URI_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "data"})
DATA_HTML_URI_ATTRIBUTES = frozenset({"href", "src", "action", "formaction"})
BLOCKED_ATTRIBUTE_PREFIX = "data-blocked-"

HTML_NAMESPACE = "http://www.w3.org/1999/xhtml"

# Marks the elements this module installs so that a second pass can replace them
INJECTED_MARKER = "data-preview-injected"

PREVIEW_CSP = (
    "default-src *; script-src 'none'; object-src 'none'; "
    "style-src * 'unsafe-inline'; img-src * data: blob:; "
    "font-src * data:; connect-src * data: blob:;"
)
NO_SCROLL_CSS = (
    "html, body { overflow: hidden !important; } "
    "body { pointer-events: none; user-select: none; }"
)

# Browsers ignore ASCII whitespace and control characters inside a URI scheme
_URI_NOISE = re.compile(r"[\x00-\x20\x7f]+")


def base_href_for(final_url: str) -> str:
    """
    Returns the origin of a URL with a trailing slash, e.g. "https://example.com:8443/".
    """
    parts = urlsplit(final_url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{host}{port}/"


def _attribute_text(value: Union[str, List[str], None]) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _tokens(value: Union[str, List[str], None]) -> List[str]:
    return _attribute_text(value).lower().split()


def _normalized_uri(value: Union[str, List[str], None]) -> str:
    return _URI_NOISE.sub("", _attribute_text(value)).lower()


def _is_script_resource_hint(link: Tag) -> bool:
    rel = _tokens(link.get("rel"))
    if "modulepreload" in rel:
        return True
    return "preload" in rel and _attribute_text(link.get("as")).strip().lower() == "script"


def _is_csp_meta(meta: Tag) -> bool:
    return _attribute_text(meta.get("http-equiv")).strip().lower() == "content-security-policy"


def _decompose_all(tags: Iterable[Tag]) -> int:
    removed = 0
    for tag in list(tags):
        # A parent decomposed earlier in this loop already took the tag with it
        if tag.decomposed:
            continue
        tag.decompose()
        removed += 1
    return removed


def _neutralize_attributes(tag: Tag) -> None:
    for name in list(tag.attrs):
        lowered = name.lower()
        if lowered.startswith(BLOCKED_ATTRIBUTE_PREFIX):
            continue
        if lowered.startswith("on"):
            del tag.attrs[name]
            continue

        # xlink:href and friends are checked by their local name
        local_name = lowered.rsplit(":", 1)[-1]
        value = _normalized_uri(tag.attrs[name])
        dangerous = (
            local_name in JAVASCRIPT_URI_ATTRIBUTES and value.startswith("javascript:")
        ) or (local_name in DATA_HTML_URI_ATTRIBUTES and value.startswith("data:text/html"))
        if dangerous:
            tag.attrs[f"{BLOCKED_ATTRIBUTE_PREFIX}{lowered}"] = tag.attrs.pop(name)


def _is_markup_in_foreign_style(style: Tag) -> bool:
    # Inside <svg> and <math>, <style> content is markup rather than raw text.
    # Its text is serialized unescaped, so "<" or "&" would be re-read as markup.
    if style.namespace in (None, HTML_NAMESPACE):
        return False
    text = style.get_text()
    return "<" in text or "&" in text


def sanitize_html(html: str, final_url: str) -> str:
    """
    Makes third-party markup safe to place in a sandboxed embedding frame.

    Removes script, noscript, object, embed and applet elements, script
    preload hints, inline event handlers and any existing CSP meta or base
    element. A <style> inside <svg> or <math> is removed when its text would
    be read back as markup. javascript: and data:text/html URIs are kept but
    moved to a data-blocked-* attribute so the markup structure survives.

    Args:
        html: The fetched document.
        final_url: The post-redirect URL the document was served from.

    Returns:
        str: The rewritten document.
    """
    # html5lib always produces <html>, <head> and <body>
    soup = BeautifulSoup(html, "html5lib")

    removed = _decompose_all(soup.find_all(REMOVED_ELEMENTS))
    removed += _decompose_all(
        style for style in soup.find_all("style") if _is_markup_in_foreign_style(style)
    )
    removed += _decompose_all(
        link for link in soup.find_all("link") if _is_script_resource_hint(link)
    )
    removed += _decompose_all(meta for meta in soup.find_all("meta") if _is_csp_meta(meta))
    _decompose_all(soup.find_all("base"))
    _decompose_all(soup.find_all(attrs={INJECTED_MARKER: True}))

    for tag in soup.find_all(True):
        _neutralize_attributes(tag)

    base_href = base_href_for(final_url)
    head = soup.head
    injected = [
        soup.new_tag("base", attrs={"href": base_href}),
        soup.new_tag(
            "meta", attrs={"http-equiv": "Content-Security-Policy", "content": PREVIEW_CSP}
        ),
        soup.new_tag("style", attrs={INJECTED_MARKER: ""}),
    ]
    injected[2].string = NO_SCROLL_CSS
    for position, tag in enumerate(injected):
        head.insert(position, tag)

    logger.debug(f"Sanitized preview of {final_url}: {removed} elements removed, base {base_href}")
    # The default "minimal" formatter escapes &, < and > and quotes every attribute value.
    return str(soup)
