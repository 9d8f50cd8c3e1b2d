"""
Log Writer

Appends one line per Record to the fingerprint log. The file is truncated
once at start-up and then only ever grows.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from ..exceptions import LogWriteError
from ..models import Record

logger = logging.getLogger(__name__)


class LogWriter:
    """
    Shared append-only handle on the fingerprint log.

    Each write hands the whole line to the buffered writer in one call and
    flushes it; the writer's internal lock keeps concurrent lines whole.
    Blocking file calls run in the default executor.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._handle: Optional[BinaryIO] = None

    def reset(self) -> None:
        """Truncate or create the log; any previous content is discarded."""
        try:
            self.path.open("wb").close()
        except OSError as exc:
            raise LogWriteError(
                f"Cannot reset log file: {exc}", path=str(self.path), cause=exc
            ) from exc
        logger.debug(f"Reset log file {self.path}")

    def open(self) -> None:
        if self._handle is not None:
            return
        try:
            self._handle = self.path.open("ab")
        except OSError as exc:
            raise LogWriteError(
                f"Cannot open log file: {exc}", path=str(self.path), cause=exc
            ) from exc

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            handle.close()
        except OSError as exc:
            raise LogWriteError(
                f"Cannot close log file: {exc}", path=str(self.path), cause=exc
            ) from exc

    async def __aenter__(self) -> "LogWriter":
        self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await asyncio.to_thread(self.close)

    async def write(self, record: Record) -> None:
        """Append one record; raises LogWriteError on any file failure."""
        if self._handle is None:
            raise LogWriteError("Log file is not open", path=str(self.path))
        await asyncio.to_thread(self._append, self._handle, record.to_bytes())

    def _append(self, handle: BinaryIO, line: bytes) -> None:
        try:
            handle.write(line)
            handle.flush()
        except (OSError, ValueError) as exc:
            raise LogWriteError(
                f"Cannot append to log file: {exc}", path=str(self.path), cause=exc
            ) from exc
