from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .resolution import Resolution


@dataclass(slots=True)
class CounterEvent:
    """入库事件三元组：计数器名、增量、事件时间。

    timestamp 为空时由存储取当前时间。
    """

    name: str
    amount: int = 1
    timestamp: Optional[datetime] = None


@dataclass(slots=True)
class AggregateCounter:
    """窗口查询结果：与 bucket_starts 一一对应的计数（旧 -> 新）。"""

    name: str
    resolution: Resolution
    bucket_starts: List[datetime] = field(default_factory=list)
    counts: List[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts)

    @property
    def start(self) -> Optional[datetime]:
        return self.bucket_starts[0] if self.bucket_starts else None

    @property
    def end(self) -> Optional[datetime]:
        return self.bucket_starts[-1] if self.bucket_starts else None

    def items(self) -> List[Tuple[datetime, int]]:
        return list(zip(self.bucket_starts, self.counts))

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "resolution": self.resolution.value,
            "buckets": [
                {"start": start.isoformat(), "count": count}
                for start, count in self.items()
            ],
        }
