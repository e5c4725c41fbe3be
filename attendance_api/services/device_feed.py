# attendance_api/services/device_feed.py
"""
Parser for the ADMS push feed sent by biometric clocks.

The device POSTs plain text (never JSON), one punch per line:

    <staff_id> <YYYY-MM-DD> <HH:MM:SS> <status> <verify_type>

Fields are separated by any run of whitespace (tabs in practice). When the
network drops the device batches several lines into one request.

Parsing is pure: nothing here touches the database.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional, Union

from attendance_api.models.attendance import SOURCE_DEVICE

DEFAULT_DEVICE_ID = "Unknown-Device"

_WS = re.compile(r"\s+")

_DT_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)


@dataclass(frozen=True)
class PunchEvent:
    """One raw punch signal, before it is resolved to an employee."""
    source: str
    timestamp: datetime
    staff_id: Optional[str] = None
    employee_id: Optional[int] = None
    device_id: Optional[str] = None


@dataclass(frozen=True)
class DeviceLine:
    staff_id: str
    timestamp_raw: str
    status_code: Optional[str] = None
    verify_type: Optional[str] = None


@dataclass(frozen=True)
class SkipLine:
    raw: str
    reason: str


def parse_ts(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    s = s.strip()
    try:
        return datetime.fromisoformat(s.replace(" ", "T"))
    except ValueError:
        pass
    for fmt in _DT_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            pass
    return None


def parse_line(line: str) -> Union[DeviceLine, SkipLine]:
    """Split one feed line; short or blank lines come back as SkipLine."""
    raw = (line or "").strip()
    if not raw:
        return SkipLine(raw=raw, reason="blank")

    parts = _WS.split(raw)
    if len(parts) < 3:
        return SkipLine(raw=raw, reason="too_few_fields")

    return DeviceLine(
        staff_id=parts[0],
        timestamp_raw=f"{parts[1]} {parts[2]}",
        status_code=parts[3] if len(parts) > 3 else None,
        verify_type=parts[4] if len(parts) > 4 else None,
    )


def iter_lines(body: Union[str, bytes, None]) -> Iterator[DeviceLine]:
    """Well-formed lines of a feed body, in the order they were sent."""
    if body is None:
        return
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="ignore")
    for line in body.splitlines():
        parsed = parse_line(line)
        if isinstance(parsed, DeviceLine):
            yield parsed


def to_event(line: DeviceLine, device_id: Optional[str] = None) -> PunchEvent:
    """Raises ValueError when the timestamp fields do not form a date/time."""
    ts = parse_ts(line.timestamp_raw)
    if ts is None:
        raise ValueError(f"unparsable timestamp {line.timestamp_raw!r}")
    return PunchEvent(
        source=SOURCE_DEVICE,
        staff_id=line.staff_id,
        timestamp=ts.replace(tzinfo=None, microsecond=0),
        device_id=device_id or DEFAULT_DEVICE_ID,
    )


def parse_feed(body: Union[str, bytes, None], device_id: Optional[str] = None) -> List[PunchEvent]:
    """
    Every valid punch in the body, order preserved. Lines whose timestamp
    cannot be read are dropped like short lines; callers that need to log
    them per line should walk iter_lines()/to_event() instead.
    """
    events: List[PunchEvent] = []
    for line in iter_lines(body):
        try:
            events.append(to_event(line, device_id))
        except ValueError:
            continue
    return events
