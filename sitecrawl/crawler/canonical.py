"""
URL canonicalization and same-domain checks.

A canonical URL is the identity used for deduplication: the absolute URL with
its query string and fragment removed. Scheme, userinfo, port and path are
kept as-is; only the host is case-folded.
"""

from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from ..errors import UnparsableURL

CRAWLABLE_SCHEMES = ('http', 'https')


def canonicalize(raw: str, base: Optional[str] = None) -> Optional[str]:
    """
    Turn any URL string into its canonical form.

    Args:
        raw: URL or href as found in a page or given by the user
        base: URL used to resolve relative references (usually the page URL)

    Returns:
        The canonical URL, or None when the input cannot be parsed into an
        absolute http(s) URL.
    """
    if not isinstance(raw, str):
        return None

    raw = raw.strip()
    if not raw:
        return None

    try:
        absolute = urljoin(base, raw) if base else raw
        parts = urlsplit(absolute)
        # Accessing .port validates it
        parts.port
    except ValueError:
        return None

    if parts.scheme not in CRAWLABLE_SCHEMES or not parts.hostname:
        return None

    userinfo, at, hostport = parts.netloc.rpartition('@')
    netloc = f"{userinfo}{at}{hostport.lower()}"

    return urlunsplit((parts.scheme, netloc, parts.path or '/', '', ''))


def require_canonical(raw: str, base: Optional[str] = None) -> str:
    """Like canonicalize(), but raise UnparsableURL instead of returning None."""
    canonical = canonicalize(raw, base)
    if canonical is None:
        raise UnparsableURL(raw)
    return canonical


def hostname_of(url: str) -> Optional[str]:
    """Lower-cased hostname of a URL, or None."""
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def same_domain(a: str, b: str) -> bool:
    """Check whether two URLs share a hostname, ignoring scheme and port."""
    host_a = hostname_of(a)
    host_b = hostname_of(b)
    return bool(host_a) and host_a == host_b
