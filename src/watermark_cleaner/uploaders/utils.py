import re
from pathlib import PurePosixPath
from urllib.parse import urlsplit, urlunsplit

DEFAULT_FILENAME = "upload.mp4"

_CONTENT_TYPES = {
    ".mov": "video/quicktime",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
}
_DEFAULT_CONTENT_TYPE = "video/mp4"

_UNSAFE_CHARS = re.compile(r"[^\w.\-]")


def guess_content_type(filename: str | None) -> str:
    """Infer a video content type from the filename extension, falling back to mp4."""
    suffix = PurePosixPath((filename or "").lower()).suffix
    return _CONTENT_TYPES.get(suffix, _DEFAULT_CONTENT_TYPE)


def to_https(url: str) -> str:
    """Coerce a URL to the https scheme. Scheme-less `host/path` URLs are accepted."""
    url = url.strip()
    parts = urlsplit(url if "://" in url else f"https://{url.lstrip('/')}")
    return urlunsplit(parts._replace(scheme="https"))


def is_http_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def safe_filename(filename: str | None, default: str = DEFAULT_FILENAME) -> str:
    """
    Reduce a user supplied filename to something safe to put in a URL path or header.

    Drops directories, replaces whitespace with `_` and removes anything else outside `[\\w.-]`.
    """
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("", re.sub(r"\s+", "_", name))
    return name.strip(".") or default
