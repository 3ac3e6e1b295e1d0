import posixpath
import threading
import time
from pathlib import Path
from typing import Optional

import requests

from .types import USER_AGENT


class SessionFactory:
    def __init__(self, user_agent: str = USER_AGENT):
        self.user_agent = user_agent
        self.local = threading.local()

    def get(self) -> requests.Session:
        session = getattr(self.local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.user_agent})
            self.local.session = session
        return session


class UniqueNameAllocator:
    """Hands out filenames that are unique within one run and on disk.

    The first request for a name gets it unchanged when it is free. Later
    requests (or a first request that collides) get ``stem_N.ext``, with N
    starting just past the number of earlier requests for that name.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.counts: dict[str, int] = {}
        self.reserved: set[str] = set()

    def _taken(self, directory: Path, name: str) -> bool:
        return name in self.reserved or (directory / name).exists()

    def allocate(self, directory: Path, name: str) -> str:
        directory = Path(directory)
        with self.lock:
            count = self.counts.get(name, 0)
            self.counts[name] = count + 1

            if count == 0 and not self._taken(directory, name):
                self.reserved.add(name)
                return name

            stem, ext = posixpath.splitext(name)
            n = count + 1
            while True:
                candidate = f"{stem}_{n}{ext}"
                if not self._taken(directory, candidate):
                    self.reserved.add(candidate)
                    return candidate
                n += 1

    def allocate_temp(self, directory: Path, name: str) -> str:
        """Reserve a ``name.part`` scratch file that nothing else uses."""
        directory = Path(directory)
        with self.lock:
            n = 0
            while True:
                candidate = f"{name}.part" if n == 0 else f"{name}.part{n}"
                if not self._taken(directory, candidate):
                    self.reserved.add(candidate)
                    return candidate
                n += 1


class FailedLinkLogger:
    def __init__(self, path: Path):
        self.path = path
        self.lock = threading.Lock()
        self.header_written = path.exists() and path.stat().st_size > 0

    @staticmethod
    def _safe(value: Optional[str]) -> str:
        if value is None:
            return ""
        return str(value).replace("\t", " ").replace("\r", " ").replace("\n", " ").strip()

    def add(
        self,
        page_url: str,
        file_url: str,
        filename: str,
        reason: str,
    ) -> None:
        ts = time.strftime("%Y-%m-%d %H:%M:%S")
        fields = [
            ts,
            self._safe(page_url),
            self._safe(file_url),
            self._safe(filename),
            self._safe(reason),
        ]
        line = "\t".join(fields) + "\n"
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                if not self.header_written:
                    f.write("timestamp\tpage_url\tfile_url\tfilename\treason\n")
                    self.header_written = True
                f.write(line)
