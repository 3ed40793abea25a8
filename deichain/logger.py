"""Timestamped logging to the console and to a session log file."""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import IO, Optional, Union

DEFAULT_LOG_PATH = "DEIChain_log.log"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _now() -> str:
    return time.strftime(_TIME_FORMAT, time.localtime())


class Logger:
    """Thread-safe logger writing each line to a stream and to a log file.

    ``path`` of ``None`` logs to the stream only.  ``stream`` of ``None``
    means standard output.  Each message is one line; the newline is added.
    """

    def __init__(
        self,
        path: Optional[Union[str, os.PathLike]] = DEFAULT_LOG_PATH,
        stream: Optional[IO[str]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._stream = stream
        self._file: Optional[IO[str]] = None
        self.debug_enabled = False
        if path is None:
            return
        try:
            self._file = open(path, "a", encoding="utf-8")
        except OSError:
            print(f"Error: Could not open log file {path}", file=sys.stderr)
            return
        self._file.write(f"\n--- New logging session started at {_now()} ---\n")
        self._file.flush()

    @property
    def _out(self) -> IO[str]:
        return self._stream if self._stream is not None else sys.stdout

    def log(self, message: str) -> None:
        """Write a timestamped line to the stream and the log file."""
        with self._lock:
            stamp = _now()
            out = self._out
            out.write(f"[{stamp}] {message}\n")
            out.flush()
            if self._file is not None:
                self._file.write(f"[{stamp}] {message}\n")
                self._file.flush()

    def debug(self, message: str) -> None:
        """Write a debug line to the stream when debugging is enabled."""
        if not self.debug_enabled:
            return
        with self._lock:
            out = self._out
            out.write(f"[DEBUG {_now()}] {message}\n")
            out.flush()

    def close(self) -> None:
        """Mark the end of the session and close the log file."""
        with self._lock:
            if self._file is None:
                return
            self._file.write(f"--- Logging session ended at {_now()} ---\n\n")
            self._file.close()
            self._file = None

    def __enter__(self) -> Logger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()