from __future__ import annotations

import logging
import math
import numbers
import threading
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .clock import UTC, aligned_start, bucket_key, resolve_timezone
from .errors import InvalidIncrement, InvalidName, InvalidTimestamp, InvalidWindow
from .resolution import ALL_RESOLUTIONS, Resolution

logger = logging.getLogger(__name__)

# 桶值为 64 位有符号整数范围内的非负数
MAX_TOTAL = 2**63 - 1

Clock = Callable[[], datetime]
BucketKeys = Dict[Resolution, str]


def validate_name(name: object) -> str:
    if not isinstance(name, str) or not name:
        raise InvalidName(f"counter name must be a non-empty string, got {name!r}")
    return name


def validate_amount(amount: object) -> int:
    """增量校验：有限、非负、整数值（bool 不算数字）。"""
    if isinstance(amount, bool) or not isinstance(amount, numbers.Real):
        raise InvalidIncrement(f"increment must be a number, got {amount!r}")
    # 超大整数转 float 会溢出，整数类型不做有限性检查
    if not isinstance(amount, numbers.Integral):
        try:
            finite = math.isfinite(amount)
        except OverflowError:
            raise InvalidIncrement(f"increment {amount!r} exceeds the 64-bit counter range") from None
        if not finite:
            raise InvalidIncrement(f"increment must be finite, got {amount!r}")
    if amount < 0:
        raise InvalidIncrement(f"increment must be non-negative, got {amount!r}")
    value = int(amount)
    if value != amount:
        raise InvalidIncrement(f"increment must be a whole number, got {amount!r}")
    if value > MAX_TOTAL:
        raise InvalidIncrement(f"increment {value} exceeds the 64-bit counter range")
    return value


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CounterStore(ABC):
    """多粒度时间桶计数存储。

    - increment：一次写入扇出到全部粒度（minute/hour/day/month/year）
    - get/get_many：未写入的桶读作 0，不视为错误
    - reset：删除计数器全部粒度的桶并移出目录，幂等
    - 校验错误在任何写入之前抛出

    并发约定：同一计数器上的 increment 与 reset 串行化，increment 不会被部分删除；
    reset 之后提交的 increment 完整可见（increment wins）。
    """

    def __init__(self, tz: Union[str, tzinfo, None] = None, now: Optional[Clock] = None) -> None:
        self.timezone: tzinfo = resolve_timezone(tz)
        self._now: Clock = now or _utc_now

    def now(self) -> datetime:
        return self._now()

    def bucket_start(self, instant: datetime, resolution: Union[Resolution, str]) -> datetime:
        return aligned_start(instant, resolution, self.timezone)

    def bucket_keys(self, timestamp: datetime) -> BucketKeys:
        """各粒度的桶键；桶起点换算到 UTC 越界（如东八区的公元 1 年）时抛 InvalidTimestamp。"""
        try:
            return {res: bucket_key(self.bucket_start(timestamp, res)) for res in ALL_RESOLUTIONS}
        except (OverflowError, ValueError):
            raise InvalidTimestamp(f"timestamp {timestamp!r} is outside the supported calendar range") from None

    def increment(self, name: str, amount: object = 1, timestamp: Optional[datetime] = None) -> None:
        validate_name(name)
        value = validate_amount(amount)
        ts = self._now() if timestamp is None else timestamp
        keys = self.bucket_keys(ts)
        self._apply_increment(name, value, keys)
        logger.debug("incremented %s by %d at %s", name, value, ts.isoformat())

    def get(self, name: str, resolution: Union[Resolution, str], bucket_start: datetime) -> int:
        return self.get_many(name, resolution, [bucket_start])[0]

    def get_many(self, name: str, resolution: Union[Resolution, str], bucket_starts: Iterable[datetime]) -> List[int]:
        validate_name(name)
        res = Resolution.parse(resolution)
        try:
            keys = [bucket_key(self.bucket_start(start, res)) for start in bucket_starts]
        except (OverflowError, ValueError):
            raise InvalidWindow(f"{res.value} window is outside the supported calendar range") from None
        if not keys:
            return []
        return self._read(name, res, keys)

    def reset(self, name: str) -> None:
        validate_name(name)
        self._delete(name)
        logger.info("reset counter %s", name)

    @abstractmethod
    def list(self) -> Set[str]:
        """当前目录中的计数器名（无序）。"""

    @abstractmethod
    def _apply_increment(self, name: str, amount: int, keys: BucketKeys) -> None:
        """对每个粒度的桶原子加 amount，并把 name 加入目录。"""

    @abstractmethod
    def _read(self, name: str, resolution: Resolution, keys: List[str]) -> List[int]:
        """按顺序读取桶值，缺失为 0。"""

    @abstractmethod
    def _delete(self, name: str) -> None:
        """删除全部桶与目录项。"""

    def close(self) -> None:
        pass


class ShardedLockTable:
    """分片加锁的计数表以减少高并发下的锁竞争。

    - 分片数量须为 2 的幂，按计数器名哈希选择分片。
    - 同一计数器的全部桶与目录项由同一把分片锁保护，
      因此 increment 与 reset 在同一计数器上严格串行。
    - 目录即分片中存在的计数器名，与桶同生同灭。
    """

    __slots__ = ("_shards", "_locks", "_num_shards")

    def __init__(self, num_shards: int = 64) -> None:
        assert num_shards > 0 and num_shards & (num_shards - 1) == 0, "num_shards must be a power of two"
        self._num_shards = num_shards
        # name -> resolution -> bucket_key -> total
        self._shards: Tuple[Dict[str, Dict[Resolution, Dict[str, int]]], ...] = tuple(
            {} for _ in range(num_shards)
        )
        self._locks: Tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(num_shards)
        )

    def _index(self, name: str) -> int:
        return hash(name) & (self._num_shards - 1)

    def add(self, name: str, keys: Mapping[Resolution, str], delta: int) -> None:
        idx = self._index(name)
        shard = self._shards[idx]
        with self._locks[idx]:
            buckets = shard.get(name)
            # 先检查溢出，保证失败时不留下部分写入
            if buckets is not None:
                for res, key in keys.items():
                    if buckets.get(res, {}).get(key, 0) + delta > MAX_TOTAL:
                        raise InvalidIncrement(f"counter {name!r} would exceed the 64-bit range at {res.value}")
            else:
                buckets = {}
                shard[name] = buckets
            for res, key in keys.items():
                per_res = buckets.get(res)
                if per_res is None:
                    per_res = {}
                    buckets[res] = per_res
                per_res[key] = per_res.get(key, 0) + delta

    def read(self, name: str, resolution: Resolution, keys: List[str]) -> List[int]:
        idx = self._index(name)
        with self._locks[idx]:
            per_res = self._shards[idx].get(name, {}).get(resolution)
            if not per_res:
                return [0] * len(keys)
            return [per_res.get(key, 0) for key in keys]

    def pop(self, name: str) -> None:
        idx = self._index(name)
        with self._locks[idx]:
            self._shards[idx].pop(name, None)

    def names(self) -> Set[str]:
        result: Set[str] = set()
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                result.update(shard.keys())
        return result


class InMemoryCounterStore(CounterStore):
    """进程内存储，用于测试与单进程部署；不提供持久化。"""

    def __init__(
        self,
        tz: Union[str, tzinfo, None] = None,
        now: Optional[Clock] = None,
        num_shards: int = 64,
    ) -> None:
        super().__init__(tz=tz, now=now)
        self._table = ShardedLockTable(num_shards)

    def list(self) -> Set[str]:
        return self._table.names()

    def _apply_increment(self, name: str, amount: int, keys: BucketKeys) -> None:
        self._table.add(name, keys, amount)

    def _read(self, name: str, resolution: Resolution, keys: List[str]) -> List[int]:
        return self._table.read(name, resolution, keys)

    def _delete(self, name: str) -> None:
        self._table.pop(name)
