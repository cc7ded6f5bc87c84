"""
聚合计数 sink：消息 -> 事件适配 -> 存储扇出写入
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .errors import InvalidEvent, InvalidIncrement, InvalidName, InvalidTimestamp, StorageUnavailable
from .ingest import IngestAdapter
from .models import CounterEvent
from .state import CounterStore

logger = logging.getLogger(__name__)


class AggregateCounterSink:
    """消费入站消息并累加计数。

    - 无法提取或校验失败的事件记录告警并计入 events_rejected，不中断消费
    - StorageUnavailable 原样向上抛出，由调用方决定是否重试
    """

    def __init__(
        self,
        store: CounterStore,
        adapter: Optional[IngestAdapter] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._adapter = adapter or IngestAdapter(tz=store.timezone)
        self._now = now or store.now
        self._stats: Dict[str, float] = {
            'events_processed': 0,
            'events_rejected': 0,
            'avg_latency_ns': 0,
            'peak_latency_ns': 0,
        }
        self._stats_lock = threading.Lock()

    @property
    def store(self) -> CounterStore:
        return self._store

    @staticmethod
    def decode(raw: Any) -> Any:
        """字节/文本按 JSON 解析，失败时保留原始文本。"""
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            return raw
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    def on_message(self, payload: Any, received_at: Optional[datetime] = None) -> Optional[CounterEvent]:
        start_time = time.perf_counter_ns()
        arrival = received_at or self._now()
        try:
            event = self._adapter.extract(payload, arrival)
            self._store.increment(event.name, event.amount, event.timestamp)
        except (InvalidEvent, InvalidName, InvalidIncrement, InvalidTimestamp) as e:
            logger.warning("Rejected event %r: %s", payload, e)
            with self._stats_lock:
                self._stats['events_rejected'] += 1
            return None

        latency = time.perf_counter_ns() - start_time
        with self._stats_lock:
            self._stats['events_processed'] += 1
            self._stats['avg_latency_ns'] = self._stats['avg_latency_ns'] * 0.95 + latency * 0.05
            self._stats['peak_latency_ns'] = max(self._stats['peak_latency_ns'], latency)
        return event

    def on_raw(self, raw: Any, received_at: Optional[datetime] = None) -> Optional[CounterEvent]:
        return self.on_message(self.decode(raw), received_at)

    def run(self, messages: Iterable[Tuple[Any, Optional[datetime]]], limit: Optional[int] = None) -> int:
        """消费 (raw, arrival) 序列，返回处理的消息条数（含被拒绝的）。"""
        seen = 0
        try:
            for raw, arrival in messages:
                self.on_raw(raw, arrival)
                seen += 1
                if limit is not None and seen >= limit:
                    break
        except StorageUnavailable as e:
            logger.error("Storage unavailable after %d messages: %s", seen, e)
            raise
        stats = self.get_stats()
        logger.info(
            "Sink consumed %d messages (processed=%d, rejected=%d)",
            seen, stats['events_processed'], stats['events_rejected'],
        )
        return seen

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                'events_processed': int(self._stats['events_processed']),
                'events_rejected': int(self._stats['events_rejected']),
                'avg_latency_us': self._stats['avg_latency_ns'] / 1000,
                'peak_latency_us': self._stats['peak_latency_ns'] / 1000,
            }
