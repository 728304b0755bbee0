import re
from urllib.parse import parse_qs, urlparse

import tldextract

UNKNOWN_ADVERTISER = "unknown"

# Offline extractor backed by the bundled public suffix snapshot.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

_REDIRECT_HOST_SUFFIXES = ("googleadservices.com", "googleads.g.doubleclick.net")
_REDIRECT_PATHS = ("/aclk", "/pagead/aclk", "/url")
_REDIRECT_PARAMS = ("adurl", "url", "q")
_BREADCRUMB_RE = re.compile(r"\s*[›»]\s*|\s+>\s+")


def _is_click_redirect(host: str, path: str) -> bool:
    if host.endswith(_REDIRECT_HOST_SUFFIXES):
        return True
    is_google_host = not host or host.startswith("google.") or ".google." in host
    return is_google_host and path in _REDIRECT_PATHS


def unwrap_click_url(url: str | None) -> str | None:
    """Resolve Google click redirects to the advertiser's landing URL.

    Returns ``url`` unchanged when it is not a redirect, and ``None`` when it is
    a redirect that carries no target.
    """
    if not url:
        return None
    current = url.strip()
    for _ in range(3):
        parsed = urlparse(current)
        if not _is_click_redirect(parsed.netloc.lower(), parsed.path.lower()):
            return current
        query = parse_qs(parsed.query)
        target = next((query[key][0] for key in _REDIRECT_PARAMS if query.get(key)), None)
        if not target:
            return None
        current = target
    return current


def registrable_domain(value: str | None) -> str | None:
    """Return the registrable domain (``example.co.uk``) of a URL or display URL."""
    if not value:
        return None
    candidate = _BREADCRUMB_RE.split(value.strip(), maxsplit=1)[0].strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return None
    candidate = unwrap_click_url(candidate)
    if candidate is None:
        return None
    extracted = _EXTRACT(candidate)
    if not extracted.domain or not extracted.suffix:
        return None
    return f"{extracted.domain}.{extracted.suffix}".lower()


def advertiser_domain(display_url: str | None, destination_url: str | None) -> str:
    """Advertiser domain from the display URL, then the destination URL, else ``unknown``."""
    for value in (display_url, destination_url):
        domain = registrable_domain(value)
        if domain:
            return domain
    return UNKNOWN_ADVERTISER
