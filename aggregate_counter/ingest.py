"""
事件适配：从入站消息中提取 (计数器名, 增量, 事件时间)。

- 计数器名：name_field 取值，缺失时回退到静态配置的 name
- 增量：increment_field 取值，缺失时为 1
- 事件时间：time_field 取值，缺失时为消息到达时间；
  数值按毫秒时间戳处理，字符串按 date_format（dd/MM/yyyy 风格）解析
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Mapping, Optional, Union

from .clock import resolve_timezone
from .errors import InvalidEvent
from .models import CounterEvent

DEFAULT_COUNTER_NAME = "aggregate-counts"
DEFAULT_DATE_FORMAT = "yyyy-MM-dd'T'HH:mm:ss.SSS'Z'"

_PATTERN_TOKEN = re.compile(r"'[^']*'|([A-Za-z])\1*|[^'A-Za-z]+")

_PATTERN_LETTERS = {
    "y": lambda n: "%y" if n == 2 else "%Y",
    "M": lambda n: {3: "%b", 4: "%B"}.get(n, "%m"),
    "d": lambda n: "%d",
    "H": lambda n: "%H",
    "h": lambda n: "%I",
    "m": lambda n: "%M",
    "s": lambda n: "%S",
    "S": lambda n: "%f",
    "a": lambda n: "%p",
    "E": lambda n: "%A" if n >= 4 else "%a",
    "Z": lambda n: "%z",
    "X": lambda n: "%z",
}


def java_date_pattern_to_strptime(pattern: str) -> str:
    """把 ``dd/MM/yyyy`` 风格的日期模式转换为 strptime 格式。"""
    parts = []
    pos = 0
    for match in _PATTERN_TOKEN.finditer(pattern):
        if match.start() != pos:
            raise ValueError(f"unbalanced quote in date pattern {pattern!r}")
        token = match.group(0)
        pos = match.end()
        if token.startswith("'"):
            literal = token[1:-1] or "'"
            parts.append(literal.replace("%", "%%"))
        elif token[0].isalpha():
            convert = _PATTERN_LETTERS.get(token[0])
            if convert is None:
                raise ValueError(f"unsupported date pattern letter {token[0]!r} in {pattern!r}")
            parts.append(convert(len(token)))
        else:
            parts.append(token.replace("%", "%%"))
    if pos != len(pattern):
        raise ValueError(f"unbalanced quote in date pattern {pattern!r}")
    return "".join(parts)


@dataclass
class IngestConfig:
    """事件字段提取配置。字段路径以 ``payload`` 表示整个消息，``payload.a.b`` 逐级取值。"""

    name: str = DEFAULT_COUNTER_NAME
    name_field: Optional[str] = None
    increment_field: Optional[str] = None
    time_field: Optional[str] = None
    date_format: str = DEFAULT_DATE_FORMAT


def resolve_field(payload: Any, path: str) -> Any:
    parts = [p for p in path.split(".") if p]
    if parts and parts[0] == "payload":
        parts = parts[1:]
    current = payload
    for part in parts:
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
        if current is None:
            return None
    return current


class IngestAdapter:
    def __init__(self, config: Optional[IngestConfig] = None, tz: Union[str, tzinfo, None] = None) -> None:
        self.config = config or IngestConfig()
        self.timezone = resolve_timezone(tz)
        self._strptime_format = java_date_pattern_to_strptime(self.config.date_format)

    def extract(self, payload: Any, arrival: Optional[datetime] = None) -> CounterEvent:
        return CounterEvent(
            name=self._extract_name(payload),
            amount=self._extract_amount(payload),
            timestamp=self._extract_timestamp(payload, arrival),
        )

    def _extract_name(self, payload: Any) -> str:
        if self.config.name_field:
            value = resolve_field(payload, self.config.name_field)
            if value is not None and value != "":
                return value if isinstance(value, str) else str(value)
        return self.config.name

    def _extract_amount(self, payload: Any) -> Any:
        if not self.config.increment_field:
            return 1
        value = resolve_field(payload, self.config.increment_field)
        if value is None:
            return 1
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                return float(text)
            except ValueError:
                raise InvalidEvent(f"increment {value!r} is not a number") from None
        return value

    def _extract_timestamp(self, payload: Any, arrival: Optional[datetime]) -> Optional[datetime]:
        if not self.config.time_field:
            return arrival
        value = resolve_field(payload, self.config.time_field)
        if value is None:
            return arrival
        if isinstance(value, datetime):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as exc:
                raise InvalidEvent(f"timestamp {value!r} is out of range") from exc
        if isinstance(value, str):
            try:
                parsed = datetime.strptime(value.strip(), self._strptime_format)
            except ValueError as exc:
                raise InvalidEvent(
                    f"timestamp {value!r} does not match date format {self.config.date_format!r}"
                ) from exc
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=self.timezone)
            return parsed
        raise InvalidEvent(f"unsupported timestamp value {value!r}")
