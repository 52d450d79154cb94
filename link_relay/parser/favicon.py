# link_relay/parser/favicon.py
"""
Favicon reference resolution and ``<link>`` tag rendering.

Both helpers are pure and fail soft: an unusable reference or base URL
yields ``None`` / an empty tag instead of an exception.
"""
from __future__ import annotations

import re
from typing import Optional, Tuple
from urllib.parse import SplitResult, urljoin, urlsplit

from markupsafe import Markup

from link_relay.logger import get_logger

__all__ = ("resolve_favicon", "build_favicon_tag")

log = get_logger("parser")

_ASCII_WS = " \t\n\r\f"
# whitespace, controls and the characters RFC 3986 never allows unescaped
_INVALID_CHARS = re.compile(r'[\x00-\x20\x7f<>"\\^`{|}]')
# page URLs in the wild carry "|", "{" and friends; only whitespace and controls break them
_INVALID_BASE_CHARS = re.compile(r"[\x00-\x20\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_TAG = Markup('<link rel="icon" href="{}">')


def _split(text: str) -> Optional[SplitResult]:
    try:
        parts = urlsplit(text)
        parts.port  # malformed or out-of-range ports only fail on access
    except ValueError:
        return None
    return parts


def _parse_reference(value: str) -> Optional[Tuple[str, SplitResult]]:
    """Validate and split a URL reference; ``None`` when it is not parsable."""
    text = value.strip(_ASCII_WS)
    if not text or _INVALID_CHARS.search(text) or _BAD_ESCAPE.search(text):
        return None
    parts = _split(text)
    return None if parts is None else (text, parts)


def _parse_base(value: str) -> Optional[str]:
    """Return *value* stripped if it is an absolute URL to resolve against."""
    text = value.strip(_ASCII_WS)
    if not text or _INVALID_BASE_CHARS.search(text):
        return None
    parts = _split(text)
    if parts is None or not (parts.scheme and parts.netloc):
        return None
    return text


def resolve_favicon(raw_href: str, base_url: str) -> Optional[str]:
    """Return the absolute favicon URL, or ``None`` if it cannot be built.

    A reference carrying a scheme is returned as is; anything else is
    resolved against *base_url* (RFC 3986, section 5.2), which must itself
    be absolute and use a scheme with relative references (http, https,
    ftp, file, ...).
    """
    if not raw_href:
        return None
    ref = _parse_reference(raw_href)
    if ref is None:
        log.debug("Unparsable favicon reference %r", raw_href)
        return None
    ref_text, ref_parts = ref
    if ref_parts.scheme:
        return ref_text

    base = _parse_base(base_url or "")
    if base is None:
        log.debug("Cannot resolve %r against base %r", raw_href, base_url)
        return None
    resolved = urljoin(base, ref_text)
    # urljoin hands the reference back untouched for schemes it cannot join
    if not urlsplit(resolved).scheme:
        log.debug("Base scheme of %r does not take relative references", base_url)
        return None
    return resolved


def build_favicon_tag(raw_href: str, base_url: str) -> Markup:
    """Render ``<link rel="icon" href="URL">`` or an empty string.

    The URL is attribute-escaped, so the result can be dropped into a page
    as is.
    """
    url = resolve_favicon(raw_href, base_url)
    if url is None:
        return Markup("")
    return _TAG.format(url)
