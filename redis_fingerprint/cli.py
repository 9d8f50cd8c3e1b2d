#!/usr/bin/env python3
"""
Command-line interface for Redis Fingerprint

Fingerprints every key of a Redis store into a log file:

    redis-fingerprint --host redis://127.0.0.1/ --output primary.log
"""

import asyncio
import functools
import logging
import sys
from typing import Any, Callable, Coroutine, Optional

import click
from rich.console import Console

from . import __version__
from .config_manager import (
    DEFAULT_CONCURRENCY,
    DEFAULT_REDIS_CONNECTIONS,
    create_config_from_env,
    setup_logging,
)
from .exceptions import ConfigurationError, FingerprintError
from .services.log_writer import LogWriter
from .services.pipeline import fingerprint_store
from .services.stats import PipelineStats

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def async_command(f: Callable[..., Coroutine[Any, Any, Any]]) -> Callable[..., Any]:
    """Decorator to make Click commands async-compatible."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        exit_code = asyncio.run(f(*args, **kwargs))
        if exit_code:
            sys.exit(exit_code)
        return exit_code

    return wrapper


def _print_summary(stats: PipelineStats) -> None:
    console.print(f"📊 Keys: {stats.total_keys}  written: {stats.written}", highlight=False)
    for type_name, count in sorted(stats.by_type.items()):
        console.print(f"   - {type_name}: {count}", highlight=False)
    if stats.failed:
        console.print(f"   - failed: {stats.failed}", style="bold red", highlight=False)
    console.print(
        f"⏱️  {stats.elapsed:.2f}s ({stats.keys_per_second:.0f} keys/s)", highlight=False
    )


@click.command(context_settings={"help_option_names": ["--help"]})
@click.option(
    "-h",
    "--host",
    "redis_url",
    envvar="REDIS_URL",
    required=True,
    help="Redis host: redis://127.0.0.1/",
)
@click.option(
    "-o",
    "--output",
    "log_path",
    envvar="RFP_OUTPUT",
    required=True,
    help="Output log file (truncated at start)",
)
@click.option(
    "--redis-connection",
    "--redis_connection",
    "max_connections",
    type=int,
    default=None,
    help=f"Redis connection pool size (default: {DEFAULT_REDIS_CONNECTIONS})",
)
@click.option(
    "--c-redis",
    "--c_redis",
    "redis_concurrency",
    type=int,
    default=None,
    help=f"Concurrent fetches against Redis (default: {DEFAULT_CONCURRENCY})",
)
@click.option(
    "--c-file",
    "--c_file",
    "file_concurrency",
    type=int,
    default=None,
    help=f"Concurrent writes to the log file (default: {DEFAULT_CONCURRENCY})",
)
@click.option(
    "--per-call-connections",
    is_flag=True,
    default=False,
    help="Open a new connection per key instead of using a pool",
)
@click.option(
    "--scan/--keys",
    "use_scan",
    default=None,
    help="Enumerate keys with cursor-based SCAN instead of one KEYS call",
)
@click.option("--pattern", "key_pattern", default=None, help="Key pattern (default: *)")
@click.option("--scan-count", type=int, default=None, help="COUNT hint for SCAN")
@click.option(
    "--best-effort",
    is_flag=True,
    default=False,
    help="Log and skip keys whose fetch fails instead of aborting",
)
@click.option(
    "--timeout",
    "operation_timeout",
    type=float,
    default=None,
    help="Per-key fetch timeout in seconds (default: none)",
)
@click.option(
    "--log-level",
    default=None,
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.option("--log-file", default=None, help="Also write diagnostics to this file")
@click.version_option(__version__, prog_name="redis-fingerprint")
@async_command
async def cli(
    redis_url: str,
    log_path: str,
    max_connections: Optional[int],
    redis_concurrency: Optional[int],
    file_concurrency: Optional[int],
    per_call_connections: bool,
    use_scan: Optional[bool],
    key_pattern: Optional[str],
    scan_count: Optional[int],
    best_effort: bool,
    operation_timeout: Optional[float],
    log_level: Optional[str],
    log_file: Optional[str],
) -> int:
    """Fingerprint every key of a Redis store into a log file."""
    try:
        config = create_config_from_env(
            redis_url=redis_url,
            log_path=log_path,
            max_connections=max_connections,
            redis_concurrency=redis_concurrency,
            file_concurrency=file_concurrency,
            connection_strategy="per-call" if per_call_connections else None,
            scan_mode=None if use_scan is None else ("scan" if use_scan else "keys"),
            key_pattern=key_pattern,
            scan_count=scan_count,
            best_effort=best_effort or None,
            operation_timeout=operation_timeout,
            log_level=log_level,
            log_file=log_file,
        )
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    setup_logging(config.logging)

    try:
        writer = LogWriter(config.output.log_path)
        writer.reset()
        click.echo(f"Start... version: {__version__}")
        config.log_configuration_summary()
        stats = await fingerprint_store(
            config, writer=writer, progress_callback=click.echo
        )
    except FingerprintError as e:
        logger.debug("Run failed", exc_info=True)
        console.print(f"❌ {e}", style="bold red", highlight=False)
        return 1

    _print_summary(stats)
    if stats.failed:
        console.print(
            "⚠️ Best-effort run skipped keys; the log is incomplete",
            style="bold yellow",
            highlight=False,
        )
        return 1
    return 0


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
