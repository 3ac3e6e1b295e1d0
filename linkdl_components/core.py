from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup, ParserRejectedMarkup

from .state import SessionFactory, UniqueNameAllocator
from .types import (
    CHUNK_SIZE,
    KNOWN_EXTENSION_RE,
    PAGE_TIMEOUT,
    USER_AGENT,
    Candidate,
    DownloadOutcome,
    FilterCriteria,
    HTTPStatusError,
    InvalidURLError,
    LinkConfig,
    NetworkError,
    ParseError,
)
from .utils import last_segment, path_extension, sanitize_filename, url_path


class FetchClient:
    """Single GET per call, no retries. Non-2xx answers raise HTTPStatusError."""

    def __init__(
        self,
        user_agent: str = USER_AGENT,
        timeout: float = PAGE_TIMEOUT,
        sessions: Optional[SessionFactory] = None,
    ):
        self.timeout = timeout
        self.sessions = sessions or SessionFactory(user_agent)

    def get(self, url: str) -> requests.Response:
        session = self.sessions.get()
        try:
            resp = session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc
        if not 200 <= resp.status_code < 300:
            status = resp.status_code
            resp.close()
            raise HTTPStatusError(status)
        return resp

    def fetch_bytes(self, url: str) -> bytes:
        with self.get(url) as resp:
            try:
                return resp.content
            except requests.RequestException as exc:
                raise NetworkError(str(exc)) from exc


def _skip_href(href: str) -> bool:
    return not href or href.startswith("#") or href.lower().startswith("javascript:")


def _accepts(path: str, full_url: str, criteria: FilterCriteria) -> bool:
    if criteria.all_mode:
        if not KNOWN_EXTENSION_RE.search(path):
            return False
    elif path_extension(path) not in criteria.extensions:
        return False
    if criteria.pattern is not None and not criteria.pattern.search(full_url):
        return False
    return True


def build_link_name(text: str, path: str) -> str:
    name = (text or "").strip()
    if not name:
        name = last_segment(path)
    name = sanitize_filename(name)
    ext = path_extension(path)
    if ext and not name.lower().endswith(ext):
        # re-sanitize so the length cap also covers the appended extension
        name = sanitize_filename(name + ext)
    return name


def extract_links(
    html: Union[bytes, str],
    base_url: str,
    criteria: FilterCriteria,
) -> list[Candidate]:
    """Return the downloadable links of one page, in document order.

    Relative hrefs are resolved against ``base_url``; a resolved URL is kept
    only the first time it appears. Hrefs that cannot be resolved are skipped.
    """
    parsed = urlparse(base_url or "")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidURLError(f"Invalid base URL: {base_url!r}")

    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseError(f"cannot parse page: {exc}") from exc

    links: list[Candidate] = []
    seen: set[str] = set()
    for a in soup.find_all("a", href=True):
        href = (a.get("href") or "").strip()
        if _skip_href(href):
            continue
        try:
            full_url = urljoin(base_url, href)
        except ValueError:
            continue
        if full_url in seen:
            continue
        seen.add(full_url)

        path = url_path(full_url)
        if not _accepts(path, full_url, criteria):
            continue

        links.append(Candidate(name=build_link_name(a.get_text(), path), url=full_url))
    return links


def collect_links(config: LinkConfig, client: FetchClient) -> list[Candidate]:
    html = client.fetch_bytes(config.url)
    return extract_links(html, config.url, config.criteria)


def download_file(
    client: FetchClient,
    url: str,
    out_path: Path,
    tmp_path: Optional[Path] = None,
) -> int:
    tmp_path = tmp_path or out_path.with_name(out_path.name + ".part")
    written = 0
    with client.get(url) as r:
        # exclusive create; a scratch file that already exists is left alone
        f = tmp_path.open("xb")
        try:
            with f:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
            tmp_path.replace(out_path)
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc
        finally:
            tmp_path.unlink(missing_ok=True)
    return written


def worker(
    client: FetchClient,
    allocator: UniqueNameAllocator,
    out_dir: Path,
    candidate: Candidate,
) -> DownloadOutcome:
    filename = candidate.name
    try:
        filename = allocator.allocate(out_dir, candidate.name)
        tmp_name = allocator.allocate_temp(out_dir, filename)
        size = download_file(client, candidate.url, out_dir / filename, out_dir / tmp_name)
    except Exception as exc:
        return DownloadOutcome(candidate=candidate, filename=filename, succeeded=False, error=exc)
    return DownloadOutcome(candidate=candidate, filename=filename, succeeded=True, size=size)


def download_all(
    candidates: list[Candidate],
    config: LinkConfig,
    client: FetchClient,
    allocator: Optional[UniqueNameAllocator] = None,
    on_outcome: Optional[Callable[[DownloadOutcome], None]] = None,
) -> dict[str, int]:
    """Download every candidate with at most ``config.parallel`` in flight.

    ``on_outcome`` is called on this thread once per candidate, in completion
    order. One failure never stops the others.
    """
    counts = {"success": 0, "failed": 0}
    if not candidates:
        return counts
    allocator = allocator or UniqueNameAllocator()
    out_dir = Path(config.out_dir)

    with ThreadPoolExecutor(max_workers=max(1, config.parallel)) as executor:
        futures = [
            executor.submit(worker, client, allocator, out_dir, candidate)
            for candidate in candidates
        ]
        for future in as_completed(futures):
            outcome = future.result()
            counts["success" if outcome.succeeded else "failed"] += 1
            if on_outcome is not None:
                on_outcome(outcome)
    return counts
