"""多粒度时间桶聚合计数模块。

事件按 minute/hour/day/month/year 五个粒度预聚合，支持任意计数器的窗口查询、
目录列举与重置。
"""

from .resolution import Resolution, ALL_RESOLUTIONS
from .clock import aligned_start, previous_start, sequence, buckets_between, bucket_key
from .errors import (
    AggregateCounterError,
    InvalidName,
    InvalidIncrement,
    InvalidWindow,
    InvalidTimestamp,
    StorageUnavailable,
    InvalidEvent,
    ConfigError,
)
from .models import AggregateCounter, CounterEvent
from .state import CounterStore, InMemoryCounterStore
from .query import QueryAssembler
from .ingest import IngestAdapter, IngestConfig
from .sink import AggregateCounterSink

__all__ = [
    "Resolution",
    "ALL_RESOLUTIONS",
    "aligned_start",
    "previous_start",
    "sequence",
    "buckets_between",
    "bucket_key",
    "AggregateCounterError",
    "InvalidName",
    "InvalidIncrement",
    "InvalidWindow",
    "InvalidTimestamp",
    "StorageUnavailable",
    "InvalidEvent",
    "ConfigError",
    "AggregateCounter",
    "CounterEvent",
    "CounterStore",
    "InMemoryCounterStore",
    "QueryAssembler",
    "IngestAdapter",
    "IngestConfig",
    "AggregateCounterSink",
]
