import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
INVALID_FS_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F\x7F]+')
CHUNK_SIZE = 1024 * 512
MAX_FILENAME_LENGTH = 200
PAGE_TIMEOUT = 30
FILE_TIMEOUT = 300

DEFAULT_EXTENSIONS = "pdf,xlsx,xls,xlsm"
KNOWN_EXTENSIONS = (
    "pdf", "doc", "docx", "xls", "xlsx", "xlsm", "ppt", "pptx", "csv", "txt",
    "zip", "rar", "7z", "tar", "gz",
    "jpg", "jpeg", "png", "gif", "svg",
    "mp3", "mp4", "wav", "avi", "mov",
)
KNOWN_EXTENSION_RE = re.compile(
    r"\.(?:" + "|".join(KNOWN_EXTENSIONS) + r")$",
    re.IGNORECASE,
)


class LinkDownloadError(Exception):
    pass


class InvalidURLError(LinkDownloadError):
    pass


class InvalidPatternError(LinkDownloadError):
    pass


class ParseError(LinkDownloadError):
    pass


class FetchError(LinkDownloadError):
    pass


class NetworkError(FetchError):
    pass


class HTTPStatusError(FetchError):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@dataclass(frozen=True)
class Candidate:
    name: str
    url: str


@dataclass(frozen=True)
class FilterCriteria:
    """Which links survive extraction.

    ``extensions`` holds lowercase, dot-prefixed entries (``".pdf"``) and is
    ignored in ``all_mode``. ``include`` is compiled eagerly so a bad regex is
    reported before the page is fetched.
    """

    extensions: frozenset = frozenset()
    all_mode: bool = False
    include: Optional[str] = None
    pattern: Optional[re.Pattern] = field(init=False, default=None, compare=False, repr=False)

    def __post_init__(self):
        if not self.include:
            return
        try:
            compiled = re.compile(self.include)
        except re.error as exc:
            raise InvalidPatternError(f"invalid include pattern: {exc}") from exc
        object.__setattr__(self, "pattern", compiled)


@dataclass
class DownloadOutcome:
    candidate: Candidate
    filename: str
    succeeded: bool
    size: int = 0
    error: Optional[Exception] = None


@dataclass
class LinkConfig:
    url: str
    out_dir: Path
    criteria: FilterCriteria
    parallel: int = 5
    list_only: bool = False
    user_agent: str = USER_AGENT
    page_timeout: float = PAGE_TIMEOUT
    timeout: float = FILE_TIMEOUT
    failed_file: Optional[Path] = None
