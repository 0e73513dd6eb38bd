"""
Progress reporting for usage report runs.

Calculation code emits progress through a ProgressReporter so that the
console format stays out of the counting logic. ConsoleProgress writes the
familiar ``[Start]`` / ``[Done]`` / ``[Error]`` / ``[Working]`` lines.
"""

import logging
import sys
from typing import List, Optional, TextIO

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Progress sink; the base class discards everything."""

    def start(self, message: str) -> None:
        pass

    def done(self, message: str, details: Optional[List[str]] = None) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def working(self, message: str) -> None:
        pass

    def tick(self, count: int) -> None:
        pass

    def finish_working(self) -> None:
        pass


class ConsoleProgress(ProgressReporter):
    """Writes progress lines to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._working = False

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def start(self, message: str) -> None:
        logger.info("[Start] %s", message)
        self._write(f"[Start] {message}\n")

    def done(self, message: str, details: Optional[List[str]] = None) -> None:
        logger.info("[Done] %s", message)
        self._write(f"[Done] {message}\n")
        for line in details or []:
            logger.info("  * %s", line)
            self._write(f"  * {line}\n")

    def error(self, message: str) -> None:
        logger.error("[Error] %s", message)
        self._write(f"[Error] {message}\n")

    def working(self, message: str) -> None:
        logger.info("[Working] %s", message)
        self._write(f"[Working] {message}: ")
        self._working = True

    def tick(self, count: int) -> None:
        self._write(f"{count} ")

    def finish_working(self) -> None:
        if self._working:
            self._write("100%\n")
            self._working = False
