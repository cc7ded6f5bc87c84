from __future__ import annotations

# Redis 计数存储：多进程共享同一份计数，依赖 redis-py
# 键布局：
#   <prefix>:<name>:<resolution>  hash，field 为桶起点编码（YYYYMMDDHHMM, UTC），value 为总数
#   <prefix>:counters             set，计数器目录

import logging
from datetime import tzinfo
from typing import List, Optional, Set, Union

import redis
from redis.exceptions import RedisError, WatchError

from ..errors import InvalidIncrement, StorageUnavailable
from ..resolution import ALL_RESOLUTIONS, Resolution
from ..state import MAX_TOTAL, BucketKeys, Clock, CounterStore

logger = logging.getLogger(__name__)


class RedisCounterStore(CounterStore):
    """基于 Redis 的计数存储。

    increment 在一个 MULTI/EXEC 事务内对每个粒度执行 HINCRBY 并 SADD 目录，
    事务前在 WATCH 下检查年桶余量，溢出时抛 InvalidIncrement 且不写入；
    reset 在一个事务内 DEL 全部粒度的 hash 并 SREM 目录。两者整体串行，
    不会出现部分可见的 increment，也不会残留已删除计数器的目录项。
    传输层失败统一抛出 StorageUnavailable，不做自动重试。
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "aggregatecounters",
        tz: Union[str, tzinfo, None] = None,
        now: Optional[Clock] = None,
        socket_timeout: Optional[float] = None,
        client: Optional["redis.Redis"] = None,
    ) -> None:
        super().__init__(tz=tz, now=now)
        self._r = client if client is not None else redis.Redis.from_url(url, socket_timeout=socket_timeout)
        self._prefix = prefix

    def _k(self, *parts: str) -> str:
        return ":".join((self._prefix,) + parts)

    def _hash_key(self, name: str, resolution: Resolution) -> str:
        return self._k(name, resolution.value)

    @property
    def catalog_key(self) -> str:
        return self._k("counters")

    def list(self) -> Set[str]:
        try:
            members = self._r.smembers(self.catalog_key)
        except RedisError as exc:
            raise StorageUnavailable(f"redis list failed: {exc}") from exc
        return {m.decode("utf-8") if isinstance(m, bytes) else m for m in members}

    def _apply_increment(self, name: str, amount: int, keys: BucketKeys) -> None:
        # EXEC 不回滚：某个 HINCRBY 溢出时其余粒度照样提交，所以溢出必须在事务前拦下。
        # 同一时间点的年桶包含其余粒度的桶，年桶有余量则全部有余量
        year_hash = self._hash_key(name, Resolution.YEAR)
        year_field = keys[Resolution.YEAR]
        try:
            with self._r.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        pipe.watch(year_hash)
                        current = pipe.hget(year_hash, year_field)
                        if current is not None and int(current) > MAX_TOTAL - amount:
                            raise InvalidIncrement(
                                f"increment of {amount} would overflow the {name!r} year bucket"
                            )
                        pipe.multi()
                        for res, key in keys.items():
                            pipe.hincrby(self._hash_key(name, res), key, amount)
                        pipe.sadd(self.catalog_key, name)
                        pipe.execute()
                        return
                    except WatchError:
                        # 检查之后年桶被并发修改，重新检查
                        continue
        except RedisError as exc:
            logger.error("redis increment of %s failed: %s", name, exc)
            raise StorageUnavailable(f"redis increment of {name!r} failed: {exc}") from exc

    def _read(self, name: str, resolution: Resolution, keys: List[str]) -> List[int]:
        try:
            values = self._r.hmget(self._hash_key(name, resolution), keys)
        except RedisError as exc:
            raise StorageUnavailable(f"redis read of {name!r} failed: {exc}") from exc
        return [int(v) if v is not None else 0 for v in values]

    def _delete(self, name: str) -> None:
        pipe = self._r.pipeline(transaction=True)
        pipe.delete(*(self._hash_key(name, res) for res in ALL_RESOLUTIONS))
        pipe.srem(self.catalog_key, name)
        self._execute(pipe, "reset", name)

    def _execute(self, pipe, op: str, name: str) -> None:
        try:
            pipe.execute()
        except RedisError as exc:
            logger.error("redis %s of %s failed: %s", op, name, exc)
            raise StorageUnavailable(f"redis {op} of {name!r} failed: {exc}") from exc

    def close(self) -> None:
        self._r.close()
