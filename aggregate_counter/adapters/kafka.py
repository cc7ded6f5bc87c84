from __future__ import annotations

# 可选 Kafka 适配器：仅在安装 confluent_kafka 时可用
# 用途：从 Kafka 拉取计数事件，连同到达时间交给 sink

import logging
from datetime import datetime, timezone
from typing import Iterator, Optional, Tuple

try:
    from confluent_kafka import Consumer, TIMESTAMP_NOT_AVAILABLE
except Exception:  # pragma: no cover - 可选依赖
    Consumer = None  # type: ignore
    TIMESTAMP_NOT_AVAILABLE = 0  # type: ignore

logger = logging.getLogger(__name__)

RawMessage = Tuple[bytes, datetime]


def message_arrival(msg) -> datetime:
    """消息时间戳（毫秒）-> datetime；broker 未提供时取本地当前时间。"""
    ts_type, ts_ms = msg.timestamp()
    if ts_type == TIMESTAMP_NOT_AVAILABLE or ts_ms is None or ts_ms < 0:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)


class KafkaConsumerAdapter:
    def __init__(self, conf: dict, topics: list[str], poll_timeout_s: float = 0.5) -> None:
        if Consumer is None:
            raise ImportError("confluent_kafka not installed. pip install confluent-kafka")
        self._consumer = Consumer(conf)
        self._consumer.subscribe(topics)
        self._poll_timeout_s = poll_timeout_s
        self._closed = False

    def iter_messages(self, max_idle_polls: Optional[int] = None) -> Iterator[RawMessage]:
        """逐条产出 (value, arrival)。max_idle_polls 为连续空轮询上限，None 表示一直拉取。"""
        idle = 0
        while not self._closed:
            msg = self._consumer.poll(self._poll_timeout_s)
            if msg is None:
                idle += 1
                if max_idle_polls is not None and idle >= max_idle_polls:
                    return
                continue
            idle = 0
            if msg.error():
                logger.warning("kafka consumer error: %s", msg.error())
                continue
            yield msg.value(), message_arrival(msg)

    def close(self) -> None:
        self._closed = True
        self._consumer.close()
