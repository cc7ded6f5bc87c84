from __future__ import annotations

# 需安装 redis 并启动本地服务

from datetime import datetime, timezone

from aggregate_counter import QueryAssembler, Resolution
from aggregate_counter.adapters.redis_state import RedisCounterStore

if __name__ == "__main__":
    store = RedisCounterStore()
    query = QueryAssembler(store)
    store.reset("demo")
    print("before:", query.range("demo", Resolution.HOUR, 5))
    store.increment("demo", 3)
    store.increment("demo", 1, datetime(1978, 10, 14, tzinfo=timezone.utc))
    print("hours:", query.range("demo", Resolution.HOUR, 5))
    print("years:", query.range("demo", Resolution.YEAR, 5, end=datetime(1980, 1, 1, tzinfo=timezone.utc)))
    print("catalog:", sorted(store.list()))
    store.close()
