"""
타임존 유틸리티

내부 저장: UTC | 외부 표시/일자 구분: 코스타리카 현지 시간 원칙 준수를 위한 헬퍼 함수
"""

from datetime import date, datetime, time, timedelta, timezone

from core.constants import Defaults

# 코스타리카 타임존 (UTC-6, DST 없음)
LOCAL_TZ = timezone(timedelta(hours=Defaults.TIMEZONE_OFFSET_HOURS))


def make_timezone(offset_hours: int) -> timezone:
    """UTC 오프셋(시간)으로 고정 타임존 생성"""
    return timezone(timedelta(hours=offset_hours))


def to_local(dt: datetime, tz: timezone = LOCAL_TZ) -> datetime:
    """UTC datetime을 현지 시간으로 변환

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)
        tz: 현지 타임존

    Returns:
        현지 타임존의 datetime
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def format_local(
    dt: datetime,
    fmt: str = "%Y-%m-%d %H:%M:%S",
    tz: timezone = LOCAL_TZ,
) -> str:
    """datetime을 현지 시간 문자열로 포맷"""
    return to_local(dt, tz).strftime(fmt)


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)"""
    return datetime.now(timezone.utc)


def now_local(tz: timezone = LOCAL_TZ) -> datetime:
    """현재 현지 시간 반환"""
    return datetime.now(tz)


def local_day_start(day: date, tz: timezone = LOCAL_TZ) -> datetime:
    """현지 일자의 00:00 (tz-aware)"""
    return datetime.combine(day, time.min, tzinfo=tz)


def local_date_of(dt: datetime, tz: timezone = LOCAL_TZ) -> date:
    """datetime이 속한 현지 일자"""
    return to_local(dt, tz).date()


def to_utc_iso(dt: datetime) -> str:
    """저장용 UTC ISO 문자열

    항상 같은 형식(마이크로초, +00:00)으로 만들어 문자열 정렬이 시간 정렬과 일치하도록 함.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(value: object) -> datetime | None:
    """ISO 문자열/epoch ms/datetime → tz-aware UTC datetime

    해석할 수 없으면 None.

    Example:
        >>> parse_datetime("2026-02-20T00:13:07.055-06:00")
        datetime(2026, 2, 20, 6, 13, 7, 55000, tzinfo=timezone.utc)
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_timestamp_ms(dt: datetime) -> int:
    """datetime을 밀리초 타임스탬프로 변환"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def utc_from_timestamp_ms(ts_ms: int) -> datetime:
    """밀리초 타임스탬프를 UTC datetime으로 변환"""
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
