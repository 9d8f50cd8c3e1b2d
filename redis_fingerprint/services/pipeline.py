"""
Fingerprint Pipeline

This module drives a fingerprinting run: enumerate every key, fingerprint
each one in a bounded fetch stage and append the records in a bounded write
stage. The stages overlap through a bounded hand-off queue and the run ends
when the write stage has drained. The first failure cancels all in-flight
work and is re-raised; lines already written stay on disk.
"""

import asyncio
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, List, Optional

import structlog
from redis.exceptions import RedisError

from ..config_manager import FingerprintConfig
from ..exceptions import (
    PipelineError,
    StoreTimeoutError,
    StoreTransportError,
    wrap_store_exception,
)
from ..models import Record
from .connection_provider import ConnectionProvider, create_connection_provider
from .key_fetcher import KeyFetcher
from .log_writer import LogWriter
from .stats import PipelineStats

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[str], None]


class PipelineState(str, Enum):
    """Lifecycle of a run."""

    PENDING = "pending"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FingerprintPipeline:
    """
    Orchestrates enumeration, fetching and logging for one run.

    ``redis_concurrency`` fetch workers and ``file_concurrency`` write workers
    run concurrently, so at most that many fetches and writes are in flight.
    A pipeline instance runs once.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        writer: LogWriter,
        redis_concurrency: int = 200,
        file_concurrency: int = 200,
        scan_mode: str = "keys",
        key_pattern: str = "*",
        scan_count: int = 1000,
        best_effort: bool = False,
        fetcher: Optional[KeyFetcher] = None,
        operation_timeout: Optional[float] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            provider: Source of store connections
            writer: Open (or openable) log writer
            redis_concurrency: Maximum concurrent fetches
            file_concurrency: Maximum concurrent log writes
            scan_mode: ``keys`` for one wildcard KEYS call, ``scan`` for SCAN
            key_pattern: Glob-style pattern passed to the enumeration
            scan_count: COUNT hint per SCAN call
            best_effort: Skip keys whose fetch failed instead of aborting
            fetcher: Optional KeyFetcher (for testing)
            operation_timeout: Optional per-fetch deadline in seconds
            progress_callback: Optional callable receiving milestone messages
        """
        if redis_concurrency < 1 or file_concurrency < 1:
            raise PipelineError("Concurrency bounds must be at least 1")
        self.provider = provider
        self.writer = writer
        self.redis_concurrency = redis_concurrency
        self.file_concurrency = file_concurrency
        self.scan_mode = scan_mode
        self.key_pattern = key_pattern
        self.scan_count = scan_count
        self.best_effort = best_effort
        self.fetcher = fetcher or KeyFetcher(provider, timeout=operation_timeout)
        self.progress_callback = progress_callback
        self.state = PipelineState.PENDING
        self.stats = PipelineStats()

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    def _set_state(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> PipelineStats:
        """
        Execute the whole run.

        Returns:
            PipelineStats for the completed run

        Raises:
            PipelineError: The pipeline was already run
            FingerprintError: First failure from enumeration, fetch or write
        """
        if self.state is not PipelineState.PENDING:
            raise PipelineError(
                "Pipeline has already been run", state=self.state.value
            )

        self.stats.start()
        try:
            self._set_state(PipelineState.ENUMERATING)
            self._progress("Start getting all keys")
            keys = await self.enumerate_keys()
            self.stats.total_keys = len(keys)
            logger.info(f"Enumerated {len(keys)} keys")

            self._set_state(PipelineState.PROCESSING)
            self._progress("Start checking all values")
            async with self.writer:
                await self._process(keys)
        except (Exception, asyncio.CancelledError):
            self._set_state(PipelineState.FAILED)
            raise
        finally:
            self.stats.finish()

        self._set_state(PipelineState.COMPLETED)
        logger.info(
            f"✅ Fingerprinted {self.stats.written} keys in {self.stats.elapsed:.2f}s"
        )
        return self.stats

    async def enumerate_keys(self) -> List[str]:
        """Materialize the complete key list."""
        operation = "scan" if self.scan_mode == "scan" else "keys"
        try:
            async with self.provider.connection() as con:
                if operation == "scan":
                    found = [
                        key
                        async for key in con.scan_iter(
                            match=self.key_pattern, count=self.scan_count
                        )
                    ]
                    # SCAN may return a key more than once.
                    return list(dict.fromkeys(found))
                return list(await con.keys(self.key_pattern))
        except (RedisError, OSError) as exc:
            raise wrap_store_exception(exc, operation=operation) from exc

    async def _fetch_one(self, key: str) -> Optional[Record]:
        try:
            record = await self.fetcher.fetch(key)
        except (StoreTransportError, StoreTimeoutError) as exc:
            if not self.best_effort:
                raise
            self.stats.failed += 1
            logger.warning(f"Skipping key after failed fetch: {exc}")
            return None
        self.stats.fetched += 1
        self.stats.by_type[record.type_tag.value] += 1
        return record

    async def _process(self, keys: List[str]) -> None:
        pending: Deque[str] = deque(keys)
        handoff: "asyncio.Queue[Optional[Record]]" = asyncio.Queue(
            maxsize=self.file_concurrency
        )

        async def fetch_worker() -> None:
            while pending:
                record = await self._fetch_one(pending.popleft())
                if record is not None:
                    await handoff.put(record)

        async def write_worker() -> None:
            while True:
                record = await handoff.get()
                if record is None:
                    return
                await self.writer.write(record)
                self.stats.written += 1

        fetchers = [
            asyncio.create_task(fetch_worker())
            for _ in range(max(1, min(self.redis_concurrency, len(keys))))
        ]
        writers = [
            asyncio.create_task(write_worker()) for _ in range(self.file_concurrency)
        ]

        async def close_fetch_stage() -> None:
            await asyncio.gather(*fetchers)
            for _ in writers:
                await handoff.put(None)

        tasks = [*fetchers, *writers, asyncio.create_task(close_fetch_stage())]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]


def create_pipeline(
    config: FingerprintConfig,
    provider: ConnectionProvider,
    writer: LogWriter,
    progress_callback: Optional[ProgressCallback] = None,
) -> FingerprintPipeline:
    """Build a pipeline from configuration."""
    processing = config.processing
    return FingerprintPipeline(
        provider,
        writer,
        redis_concurrency=processing.redis_concurrency,
        file_concurrency=processing.file_concurrency,
        scan_mode=processing.scan_mode,
        key_pattern=processing.key_pattern,
        scan_count=processing.scan_count,
        best_effort=processing.best_effort,
        operation_timeout=processing.operation_timeout,
        progress_callback=progress_callback,
    )


async def fingerprint_store(
    config: FingerprintConfig,
    writer: Optional[LogWriter] = None,
    client_factory: Optional[Callable[[], Any]] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> PipelineStats:
    """
    Fingerprint every key of the configured store into the configured log.

    Args:
        config: Validated configuration
        writer: Optional LogWriter whose file was already reset; a new one is
            created and reset when omitted
        client_factory: Optional zero-argument store client factory (for testing)
        progress_callback: Optional callable receiving milestone messages

    Returns:
        PipelineStats for the completed run
    """
    if writer is None:
        writer = LogWriter(config.output.log_path)
        writer.reset()

    async with create_connection_provider(config.redis, client_factory) as provider:
        pipeline = create_pipeline(config, provider, writer, progress_callback)
        return await pipeline.run()
