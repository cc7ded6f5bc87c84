"""
桶时钟：时间对齐与窗口序列计算（纯函数，无状态）。

- minute/hour/day：在给定时区内截断到所在区间的起点
- month：截断到当月 1 日 00:00
- year：截断到当年 1 月 1 日 00:00
- 向前步进按日历规则进行，月/年不按 30/365 天近似
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Union

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidWindow
from .resolution import Resolution

UTC = timezone.utc

_FIXED_STEPS = {
    Resolution.MINUTE: timedelta(minutes=1),
    Resolution.HOUR: timedelta(hours=1),
}


def resolve_timezone(name: Union[str, tzinfo, None]) -> tzinfo:
    """时区名 -> tzinfo，``None``/``"UTC"`` 返回 UTC。"""
    if name is None:
        return UTC
    if isinstance(name, tzinfo):
        return name
    if name.upper() in ("UTC", "Z"):
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"unknown time zone: {name!r}") from None


def localize(instant: datetime, tz: tzinfo = UTC) -> datetime:
    """转换到目标时区；naive 时间视为目标时区的本地时间。"""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def aligned_start(instant: datetime, resolution: Union[Resolution, str], tz: tzinfo = UTC) -> datetime:
    """返回 instant 所在桶的起点（左边界），结果位于 tz 时区。"""
    resolution = Resolution.parse(resolution)
    local = localize(instant, tz)
    if resolution is Resolution.MINUTE:
        return local.replace(second=0, microsecond=0)
    if resolution is Resolution.HOUR:
        return local.replace(minute=0, second=0, microsecond=0)
    if resolution is Resolution.DAY:
        return datetime(local.year, local.month, local.day, tzinfo=tz)
    if resolution is Resolution.MONTH:
        return datetime(local.year, local.month, 1, tzinfo=tz)
    return datetime(local.year, 1, 1, tzinfo=tz)


def previous_start(start: datetime, resolution: Union[Resolution, str], tz: tzinfo = UTC) -> datetime:
    """前一个桶的起点。

    分钟/小时在绝对时间上步进，夏令时切换时不会跳过或重复桶；
    日/月/年按日历步进。
    """
    resolution = Resolution.parse(resolution)
    current = aligned_start(start, resolution, tz)
    step = _FIXED_STEPS.get(resolution)
    if step is not None:
        earlier = current.astimezone(UTC) - step
        return aligned_start(earlier, resolution, tz)
    if resolution.is_calendar:
        if resolution is Resolution.YEAR:
            return datetime(current.year - 1, 1, 1, tzinfo=tz)
        if current.month == 1:
            return datetime(current.year - 1, 12, 1, tzinfo=tz)
        return datetime(current.year, current.month - 1, 1, tzinfo=tz)
    day = current.date() - timedelta(days=1)
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _check_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidWindow(f"bucket count must be a positive integer, got {count!r}")


def sequence(end: datetime, resolution: Union[Resolution, str], count: int, tz: tzinfo = UTC) -> List[datetime]:
    """以 end 所在桶为最后一个桶，返回 count 个桶起点（旧 -> 新）。"""
    _check_count(count)
    resolution = Resolution.parse(resolution)
    try:
        current = aligned_start(end, resolution, tz)
        starts = [current]
        for _ in range(count - 1):
            current = previous_start(current, resolution, tz)
            starts.append(current)
    except (OverflowError, ValueError) as exc:
        raise InvalidWindow(f"window of {count} {resolution.value} buckets reaches before year 1") from exc
    starts.reverse()
    return starts


def buckets_between(start: datetime, end: datetime, resolution: Union[Resolution, str], tz: tzinfo = UTC) -> List[datetime]:
    """[start, end] 区间覆盖的全部桶起点（含两端所在桶）。"""
    resolution = Resolution.parse(resolution)
    # 同一 tzinfo 的比较按墙上时间进行，会忽略 fold，这里统一换到 UTC 比较
    try:
        first = aligned_start(start, resolution, tz).astimezone(UTC)
        current = aligned_start(end, resolution, tz)
        last = current.astimezone(UTC)
    except (OverflowError, ValueError) as exc:
        raise InvalidWindow(f"interval {start.isoformat()} to {end.isoformat()} is outside the supported calendar range") from exc
    if last < first:
        raise InvalidWindow(f"interval start {start.isoformat()} is after end {end.isoformat()}")
    starts = [current]
    while current.astimezone(UTC) > first:
        current = previous_start(current, resolution, tz)
        starts.append(current)
    starts.reverse()
    return starts


def bucket_key(start: datetime) -> str:
    """桶起点的稳定可排序编码（UTC，精确到分钟）：YYYYMMDDHHMM。

    按 UTC 编码可保证夏令时回拨那一小时的两个桶不会冲突。
    """
    u = localize(start, UTC)
    return f"{u.year:04d}{u.month:02d}{u.day:02d}{u.hour:02d}{u.minute:02d}"
