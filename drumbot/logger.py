"""CSV loggers stamped with the time elapsed since they were opened."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from typing import Callable, Iterable, Optional, TextIO, Union

DEFAULT_BASE_PATH = "drumrobot/log/"

_log = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def make_filename(
    name: str, base_path: PathLike = DEFAULT_BASE_PATH, when: Optional[datetime] = None
) -> str:
    """Build ``<base>/log_MMDD_HHMM_<name>.csv`` for the given moment."""
    when = when or datetime.now()
    return os.path.join(os.fspath(base_path), f"log_{when:%m%d_%H%M}_{name}.csv")


def _format(value: object) -> str:
    if isinstance(value, str):
        return value
    return f"{float(value):.4f}"


class Logger:
    """Append rows of numbers or strings to a timestamped CSV file.

    If the file cannot be opened a warning is logged and records are dropped.
    """

    def __init__(
        self,
        name: str,
        base_path: PathLike = DEFAULT_BASE_PATH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.path = make_filename(name, base_path)
        self._clock = clock
        self._file: Optional[TextIO]
        try:
            self._file = open(self.path, "w", encoding="utf-8", newline="", buffering=1)
        except OSError as exc:
            _log.warning("could not open log file %s: %s", self.path, exc)
            self._file = None
        else:
            _log.info("%s logging started", name)
        self._start = clock()

    @property
    def is_open(self) -> bool:
        return self._file is not None and not self._file.closed

    def _write(self, line: str) -> None:
        if self.is_open:
            assert self._file is not None
            self._file.write(line + "\n")

    def set_header(self, columns: Iterable[str]) -> None:
        self._write("t," + ",".join(columns))

    def record(self, values: Iterable[object]) -> None:
        """Write one row: elapsed seconds, then the values."""
        elapsed = self._clock() - self._start
        self._write(",".join([f"{elapsed:.4f}", *(_format(v) for v in values)]))

    def close(self) -> None:
        if self._file is not None:
            self._file.close()

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()