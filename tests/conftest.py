import threading
import time

import pytest

from linkdl_components.types import HTTPStatusError


class FakeResponse:
    def __init__(self, body: bytes, fail_midway: Exception = None):
        self.body = body
        self.fail_midway = fail_midway

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def iter_content(self, chunk_size=1):
        yield self.body[:2]
        if self.fail_midway is not None:
            raise self.fail_midway
        yield b""
        yield self.body[2:]


class FakeClient:
    """Stands in for FetchClient: serves canned bodies, 404s everything else."""

    def __init__(self, pages=None, delay: float = 0.0, broken=None):
        self.pages = dict(pages or {})
        self.broken = dict(broken or {})
        self.delay = delay
        self.calls = []
        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def get(self, url):
        with self.lock:
            self.calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.broken:
                return FakeResponse(b"partial", fail_midway=self.broken[url])
            if url not in self.pages:
                raise HTTPStatusError(404)
            return FakeResponse(self.pages[url])
        finally:
            with self.lock:
                self.in_flight -= 1

    def fetch_bytes(self, url):
        with self.get(url) as resp:
            return b"".join(resp.iter_content())


@pytest.fixture
def fake_client():
    return FakeClient
