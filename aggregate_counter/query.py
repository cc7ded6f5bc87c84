from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional, Union

from .clock import buckets_between, sequence
from .models import AggregateCounter
from .resolution import Resolution
from .state import CounterStore, validate_name


class QueryAssembler:
    """窗口查询：按粒度生成桶序列，逐桶读取并以 0 填充未写入的桶。

    只读取单一粒度的预聚合桶，不做跨粒度汇总。
    end 缺省时取 now()，给定 end 时结果只取决于存储内容。
    """

    def __init__(self, store: CounterStore, now: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._now = now or store.now

    def range(
        self,
        name: str,
        resolution: Union[Resolution, str],
        count: int,
        end: Optional[datetime] = None,
    ) -> List[int]:
        return self.get_counts(name, count, resolution, end).counts

    def get_counts(
        self,
        name: str,
        count: int,
        resolution: Union[Resolution, str],
        end: Optional[datetime] = None,
    ) -> AggregateCounter:
        validate_name(name)
        res = Resolution.parse(resolution)
        end = self._now() if end is None else end
        starts = sequence(end, res, count, self._store.timezone)
        return self._assemble(name, res, starts)

    def get_counts_between(
        self,
        name: str,
        start: datetime,
        end: datetime,
        resolution: Union[Resolution, str],
    ) -> AggregateCounter:
        """[start, end] 区间内每个桶的计数，两端所在桶均包含在内。"""
        validate_name(name)
        res = Resolution.parse(resolution)
        starts = buckets_between(start, end, res, self._store.timezone)
        return self._assemble(name, res, starts)

    def _assemble(self, name: str, resolution: Resolution, starts: List[datetime]) -> AggregateCounter:
        counts = self._store.get_many(name, resolution, starts)
        return AggregateCounter(name=name, resolution=resolution, bucket_starts=starts, counts=counts)
