from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .clock import resolve_timezone
from .errors import ConfigError
from .ingest import IngestConfig, java_date_pattern_to_strptime
from .state import CounterStore, InMemoryCounterStore


@dataclass
class StoreConfig:
    """存储配置。"""
    backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "aggregatecounters"
    timezone: str = "UTC"  # 桶对齐使用的时区，同一份数据不可更改
    num_shards: int = 64  # 内存存储分片锁数量（2 的幂）
    socket_timeout: Optional[float] = 5.0  # Redis 读写超时（秒）


@dataclass
class KafkaConfig:
    """Kafka 消费配置，conf 原样传给 confluent_kafka.Consumer。"""
    topics: List[str] = field(default_factory=lambda: ["events"])
    conf: Dict[str, Any] = field(default_factory=lambda: {
        "bootstrap.servers": "localhost:9092",
        "group.id": "aggregate-counter",
        "auto.offset.reset": "earliest",
    })


@dataclass
class SinkConfig:
    """聚合计数服务总配置。"""
    store: StoreConfig = field(default_factory=StoreConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SinkConfig":
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError("configuration root must be a mapping")
        unknown = set(data) - {"store", "ingest", "kafka", "log_level"}
        if unknown:
            raise ConfigError(f"unknown configuration sections: {sorted(unknown)}")
        config = cls(
            store=_section(StoreConfig, data.get("store"), "store"),
            ingest=_section(IngestConfig, data.get("ingest"), "ingest"),
            kafka=_section(KafkaConfig, data.get("kafka"), "kafka"),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.store.backend not in ("memory", "redis"):
            raise ConfigError(f"unknown store backend: {self.store.backend!r}")
        try:
            resolve_timezone(self.store.timezone)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        shards = self.store.num_shards
        if not isinstance(shards, int) or shards < 1 or shards & (shards - 1):
            raise ConfigError(f"num_shards must be a power of two, got {shards!r}")
        if not self.ingest.name:
            raise ConfigError("ingest.name must not be empty")
        try:
            java_date_pattern_to_strptime(self.ingest.date_format)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if isinstance(self.kafka.topics, str):
            self.kafka.topics = [self.kafka.topics]
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"unknown log level: {self.log_level!r}")


def _section(cls, data: Optional[Mapping[str, Any]], name: str):
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigError(f"section {name!r} must be a mapping")
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ConfigError(f"unknown keys in {name!r}: {sorted(unknown)}")
    return cls(**data)


def load_config(path: Union[str, Path, None] = None) -> SinkConfig:
    """从 YAML 文件加载配置；path 为空时返回默认配置。"""
    if path is None:
        return SinkConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    return SinkConfig.from_dict(data)


def build_store(config: StoreConfig) -> CounterStore:
    if config.backend == "redis":
        from .adapters.redis_state import RedisCounterStore

        return RedisCounterStore(
            url=config.redis_url,
            prefix=config.key_prefix,
            tz=config.timezone,
            socket_timeout=config.socket_timeout,
        )
    if config.backend == "memory":
        return InMemoryCounterStore(tz=config.timezone, num_shards=config.num_shards)
    raise ConfigError(f"unknown store backend: {config.backend!r}")
