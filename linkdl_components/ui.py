import os
import sys
import threading
from typing import Optional, TextIO

from .types import Candidate, DownloadOutcome
from .utils import human_bytes


def enable_ansi_colors(stream: TextIO) -> bool:
    if not stream.isatty():
        return False
    if os.name != "nt":
        return True
    try:
        import ctypes

        kernel32 = ctypes.windll.kernel32
        handle = kernel32.GetStdHandle(-11)
        mode = ctypes.c_uint()
        if kernel32.GetConsoleMode(handle, ctypes.byref(mode)) == 0:
            return False
        if kernel32.SetConsoleMode(handle, mode.value | 0x0004) == 0:
            return False
        return True
    except (AttributeError, OSError):
        return False


class TerminalUI:
    RESET = "\033[0m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    RED = "\033[91m"

    def __init__(self, pretty: bool = True, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.use_color = pretty and enable_ansi_colors(self.stream)
        self.lock = threading.Lock()

    def _color(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        return f"{color}{text}{self.RESET}"

    def _line(self, text: str) -> None:
        with self.lock:
            print(text, file=self.stream, flush=True)

    def plain(self, msg: str = "") -> None:
        self._line(msg)

    def info(self, msg: str) -> None:
        self._line(self._color("[INFO]", self.CYAN) + f" {msg}")

    def ok(self, msg: str) -> None:
        self._line(self._color("[ OK ]", self.GREEN) + f" {msg}")

    def error(self, msg: str) -> None:
        self._line(self._color("[FAIL]", self.RED) + f" {msg}")

    def list_links(self, links: list[Candidate]) -> None:
        self.plain(f"Found {len(links)} files:")
        self.plain()
        for i, link in enumerate(links, start=1):
            self.plain(f"  {i:3d}. {link.name}")
            self.plain(f"       {link.url}")
        self.plain()

    def outcome(self, outcome: DownloadOutcome) -> None:
        if outcome.succeeded:
            self.ok(f"{outcome.filename} ({human_bytes(outcome.size)})")
        else:
            self.error(f"{outcome.filename}: {outcome.error}")

    def summary(self, counts: dict[str, int]) -> None:
        self.plain()
        self.plain(f"Done! Success: {counts.get('success', 0)}, Failed: {counts.get('failed', 0)}")
