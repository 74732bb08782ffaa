"""URL helpers: origin normalisation and safe link building."""

from urllib.parse import urljoin, urlsplit

from loguru import logger

from confluence_search.errors import ValidationError


def sanitize_base_url(raw: str) -> str:
    """Return the origin (scheme://host[:port]) of an http(s) URL.

    Raises:
        ValidationError: If the URL is not http or https, or has no host.
    """
    parts = urlsplit(raw.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        logger.error("Rejected base URL: {!r}", raw)
        msg = f"Invalid base URL: {raw!r}"
        raise ValidationError(msg)
    return f"{parts.scheme}://{parts.netloc}"


def build_url(base_url: str, path: str | None) -> str:
    """Join a relative web path onto the base URL.

    Absolute URLs and script/data paths are never followed; they map to "#".
    """
    if not isinstance(path, str) or not path:
        return "#"
    lowered = path.lower()
    if lowered.startswith(("http:", "https:")) or "javascript:" in lowered or "data:" in lowered:
        return "#"
    return urljoin(base_url + "/", path.lstrip("/"))
