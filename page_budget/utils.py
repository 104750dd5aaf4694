"""Utility functions for URL resolution, hostnames and root domains."""

from __future__ import annotations

from urllib.parse import quote, urljoin, urlparse, urlsplit, urlunsplit

import tldextract

from .models import NetworkRequestRecord

# Bundled public suffix snapshot only: no suffix list download, no cache writes.
_extract = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

NON_NETWORK_SCHEMES = frozenset({
    "blob",
    "data",
    "intent",
    "file",
    "filesystem",
    "chrome-extension",
    "about",
})


def extract_hostname(url: str) -> str:
    """Extract the lowercased hostname from a URL, or '' if it has none."""
    try:
        parsed = urlparse(url)
        return parsed.hostname or ""
    except ValueError:
        return ""


def get_root_domain(url: str) -> str:
    """Extract the root (registrable) domain of a URL.

    Examples:
        'https://ads.google.com/page' -> 'google.com'
        'https://www.example.co.uk/' -> 'example.co.uk'
        'http://127.0.0.1:8080/' -> '127.0.0.1'
    """
    hostname = extract_hostname(url) if "://" in url else url
    ext = _extract(hostname)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    # IPs, localhost and other hosts without a public suffix
    return hostname or url


def _remove_dot_segments(path: str) -> str:
    output: list[str] = []
    for segment in path.split("/"):
        if segment == "..":
            if len(output) > 1:
                output.pop()
        elif segment != ".":
            output.append(segment)
    if path.endswith(("/.", "/..")):
        output.append("")
    return "/".join(output)


def normalize_url(url: str) -> str:
    """Normalize an http(s) URL the way a browser serializes it.

    Lowercases scheme and host, removes dot segments and percent-encodes
    characters such as spaces. Other schemes are returned unchanged.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.netloc:
        return url

    userinfo, _, host = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host.lower()}" if userinfo else host.lower()
    path = quote(_remove_dot_segments(parts.path or "/"), safe="/%:@!$&'()*+,;=~")
    query = quote(parts.query, safe="/%:@!$&'()*+,;=~?")
    return urlunsplit((scheme, netloc, path, query, parts.fragment))


def resolve_url(href: str, base_url: str) -> str:
    """Resolve a possibly relative href against a base URL and normalize it."""
    return normalize_url(urljoin(base_url, href.strip()))


def _scheme(protocol_or_url: str) -> str:
    if ":" in protocol_or_url:
        return protocol_or_url[: protocol_or_url.index(":")].lower()
    return protocol_or_url.lower()


def is_non_network_request(record: NetworkRequestRecord) -> bool:
    """True for requests that never traversed the network stack (data:, blob:, ...)."""
    if record.protocol and _scheme(record.protocol) in NON_NETWORK_SCHEMES:
        return True
    return ":" in record.url and _scheme(record.url) in NON_NETWORK_SCHEMES
