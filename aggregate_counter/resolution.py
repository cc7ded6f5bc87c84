from __future__ import annotations

from enum import Enum


class Resolution(str, Enum):
    """聚合粒度枚举（固定集合，按从细到粗排列）。

    minute/hour/day 为固定时长；month/year 为日历时长，需要按日历步进。
    """

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: "Resolution | str") -> "Resolution":
        if isinstance(value, Resolution):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown resolution: {value!r}") from None

    @property
    def is_calendar(self) -> bool:
        return self in (Resolution.MONTH, Resolution.YEAR)


# 写入时扇出的全部粒度
ALL_RESOLUTIONS = tuple(Resolution)
