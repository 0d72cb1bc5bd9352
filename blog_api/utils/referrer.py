from urllib.parse import urlsplit


def extract_domain(url: str | None) -> str | None:
    """Return the hostname of an absolute URL, or None if it can't be parsed."""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    return hostname
