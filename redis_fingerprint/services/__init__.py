"""
Fingerprinting Services

Public Interface:
    ConnectionProvider - Pooled or per-call store connections
    KeyFetcher - Type-aware fetch and fingerprint of one key
    LogWriter - Append-only fingerprint log
    FingerprintPipeline - Bounded two-stage orchestration of a run
    PipelineStats - Statistics for a run
    fingerprint_store - Run the whole pipeline from configuration
"""

from .connection_provider import (
    ConnectionProvider,
    PerCallConnectionProvider,
    PooledConnectionProvider,
    create_connection_provider,
)
from .key_fetcher import KeyFetcher
from .log_writer import LogWriter
from .pipeline import (
    FingerprintPipeline,
    PipelineState,
    create_pipeline,
    fingerprint_store,
)
from .stats import PipelineStats

__all__ = [
    "ConnectionProvider",
    "FingerprintPipeline",
    "KeyFetcher",
    "LogWriter",
    "PerCallConnectionProvider",
    "PipelineState",
    "PipelineStats",
    "PooledConnectionProvider",
    "create_connection_provider",
    "create_pipeline",
    "fingerprint_store",
]
