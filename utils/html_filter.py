"""
html_filter.py
--------------
Server-side filter for user-submitted sandbox fragments.

Two passes run over the raw markup before it is stored:

1. URL neutralization: values of CSS ``url(...)`` and ``href``/``src``
   attributes are reduced to their path component, so no scheme or host
   survives.
2. Tag elimination: ``script``, ``meta``, ``body``, ``head`` and ``style``
   elements are removed together with their content when the closing tag
   follows.

This is a blocklist filter, not an allowlist sanitizer. Anything outside the
two shapes above (event-handler attributes, unquoted attributes, ...) passes
through untouched. Nested or malformed markup may partially survive a single
pass.
"""

import logging
import re
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

URL_SAFE_CHARS = r"[A-Za-z0-9_\-/.+:@&%?=#]"

URL_PATTERN = re.compile(
    r"(?P<css_open>url\s*\(\s*['\"]?\s*)"
    rf"(?P<css_value>{URL_SAFE_CHARS}+)"
    r"(?P<css_close>\s*['\"]?\s*\))"
    r"|"
    r"(?P<attr_open>(?i:href|src)\s*=\s*[\"']\s*)"
    rf"(?P<attr_value>{URL_SAFE_CHARS}+)"
    r"(?P<attr_close>\s*[\"'])"
)

TAG_PATTERN = re.compile(
    r"<(script|meta|body|head|style)\b.*?>(.*?</\1>)?",
    re.IGNORECASE | re.DOTALL,
)

# Values that are really the syntactic wrapper, not a URL.
_SKIPPED_VALUES = frozenset({"", '"', "//"})
_WRAPPER_MARKERS = ("url", "href", "src")


def _is_url_candidate(value: str) -> bool:
    if value in _SKIPPED_VALUES:
        return False
    return not any(marker in value for marker in _WRAPPER_MARKERS)


def extract_path(value: str) -> str:
    """
    Return only the path component of ``value``.

    Scheme, authority, query and fragment are dropped. A value with a scheme
    or host but no path maps to ``/``. Values that carry neither a scheme nor
    a host (relative paths, ``#anchor``, ``?query``) and values the parser
    rejects are returned unchanged.
    """
    try:
        parts = urlsplit(value)
    except ValueError:
        logger.debug("Leaving unparseable URL value untouched: %r", value)
        return value

    if not (parts.scheme or parts.netloc or value.startswith("//")):
        return value

    path = parts.path
    if not path and (parts.scheme or parts.netloc):
        path = "/"
    if path.startswith("//"):
        # "//host/x" would still be read as protocol-relative by a browser
        path = "/" + path.lstrip("/")
    return path


def neutralize_urls(markup: str) -> str:
    """Rewrite every ``url(...)``, ``href=`` and ``src=`` value to its path."""
    rewritten = 0

    def _rewrite(match: re.Match) -> str:
        nonlocal rewritten
        kind = "css" if match.group("css_value") is not None else "attr"
        value = match.group(f"{kind}_value")
        if not _is_url_candidate(value):
            return match.group(0)

        path = extract_path(value)
        if path != value:
            rewritten += 1
        return f"{match.group(f'{kind}_open')}{path}{match.group(f'{kind}_close')}"

    result = URL_PATTERN.sub(_rewrite, markup)
    if rewritten:
        logger.debug("Neutralized %d URL value(s)", rewritten)
    return result


def strip_dangerous_tags(markup: str) -> str:
    """Remove ``script``, ``meta``, ``body``, ``head`` and ``style`` elements."""
    result, removed = TAG_PATTERN.subn("", markup)
    if removed:
        logger.debug("Removed %d dangerous element(s)", removed)
    return result


def sanitize(raw_markup: str) -> str:
    """
    Make untrusted markup safe enough to store and inject into the sandbox.

    Never raises. Input length is the caller's concern (see
    ``utils.content_validation``).
    """
    if raw_markup is None:
        return ""
    if not isinstance(raw_markup, str):
        raw_markup = str(raw_markup)

    return strip_dangerous_tags(neutralize_urls(raw_markup))


__all__ = [
    "sanitize",
    "neutralize_urls",
    "strip_dangerous_tags",
    "extract_path",
]
