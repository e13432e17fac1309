"""
유틸리티 패키지

ID 생성, 타임존 처리 등 공통 유틸리티
"""

from core.utils.timezone import (
    LOCAL_TZ,
    format_local,
    local_date_of,
    local_day_start,
    make_timezone,
    now_local,
    now_utc,
    parse_datetime,
    to_local,
    to_timestamp_ms,
    to_utc_iso,
    utc_from_timestamp_ms,
)

__all__ = [
    "LOCAL_TZ",
    "format_local",
    "local_date_of",
    "local_day_start",
    "make_timezone",
    "now_local",
    "now_utc",
    "parse_datetime",
    "to_local",
    "to_timestamp_ms",
    "to_utc_iso",
    "utc_from_timestamp_ms",
]
