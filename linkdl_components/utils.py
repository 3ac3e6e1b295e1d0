import posixpath
import re
from typing import Optional
from urllib.parse import unquote, urlparse

from .types import INVALID_FS_CHARS, MAX_FILENAME_LENGTH, InvalidURLError


def sanitize_filename(name: str) -> str:
    """Turn arbitrary link text into a single safe path component.

    Forbidden characters become ``_``, runs of whitespace/underscores collapse
    to one ``_``, and the result never exceeds ``MAX_FILENAME_LENGTH``
    characters. The extension survives truncation.
    """
    name = INVALID_FS_CHARS.sub("_", name or "")
    name = re.sub(r"[\s_]+", "_", name)
    name = name.strip(" ._")

    if len(name) > MAX_FILENAME_LENGTH:
        stem, ext = posixpath.splitext(name)
        if len(ext) < MAX_FILENAME_LENGTH:
            name = stem[: MAX_FILENAME_LENGTH - len(ext)] + ext
        else:
            name = name[:MAX_FILENAME_LENGTH]

    return name or "unnamed"


def ensure_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise InvalidURLError("Empty URL")
    parsed = urlparse(url)
    if not parsed.scheme:
        url = "https://" + url
        parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidURLError(f"Invalid URL: {url}")
    return url


def parse_extensions(value: str) -> frozenset:
    exts = set()
    for raw in (value or "").split(","):
        ext = raw.strip().lstrip(".").lower()
        if ext:
            exts.add("." + ext)
    return frozenset(exts)


def url_path(url: str) -> str:
    return unquote(urlparse(url).path)


def path_extension(path: str) -> str:
    base = path.rsplit("/", 1)[-1]
    idx = base.rfind(".")
    return base[idx:].lower() if idx >= 0 else ""


def last_segment(path: str) -> str:
    return posixpath.basename(path.rstrip("/"))


def human_bytes(value: Optional[float]) -> str:
    if value is None:
        return "?"
    value = float(max(0.0, value))
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024.0
        idx += 1
    return f"{value:.2f}{units[idx]}"
