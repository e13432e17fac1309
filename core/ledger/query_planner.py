"""
Movement Query Planner

조회 대상 시간 구간 [start, end) 결정 + 캐시 키 생성 + 페이지 순회.

규칙:
- from/to 모두 지정: 작은 날짜 00:00 ~ 큰 날짜 다음날 00:00 (현지 시간), 키 range:<from>..<to>
- 그 외: 선택한 현지 일자 하루 (기본 오늘), 키 day:<date>
- 페이지 순회: 최신순, 페이지가 page_size보다 작으면 종료, 최대 페이지 수 도달 시 중단
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from core.constants import Defaults
from core.domain.models import Movement, PageCursor
from core.types import AccountKey, WindowMode
from core.utils.timezone import LOCAL_TZ, local_date_of, local_day_start, now_utc

if TYPE_CHECKING:
    from core.storage.movement_cache import MovementCache
    from core.storage.movement_store import MovementStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """반열린 조회 구간 [start, end)

    Attributes:
        start: 시작 (포함, 현지 tz-aware)
        end: 끝 (제외, 현지 tz-aware)
        mode: DAY / RANGE
        cache_key: day:<date> 또는 range:<from>..<to>
    """

    start: datetime
    end: datetime
    mode: WindowMode
    cache_key: str

    def contains(self, dt: datetime) -> bool:
        return self.start <= dt < self.end


def resolve_window(
    selected_day: date | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    today: date | None = None,
    tz: timezone = LOCAL_TZ,
) -> TimeWindow:
    """조회 구간 결정

    Args:
        selected_day: 선택한 현지 일자
        from_date: 범위 시작 일자
        to_date: 범위 끝 일자 (포함)
        today: 기준 오늘 (기본: 현재 현지 일자)
        tz: 현지 타임존

    Returns:
        TimeWindow

    Example:
        >>> resolve_window(from_date=date(2024, 3, 10), to_date=date(2024, 3, 1)).cache_key
        'range:2024-03-01..2024-03-10'
    """
    if from_date is not None and to_date is not None:
        low, high = sorted((from_date, to_date))
        return TimeWindow(
            start=local_day_start(low, tz),
            end=local_day_start(high + timedelta(days=1), tz),
            mode=WindowMode.RANGE,
            cache_key=f"{WindowMode.RANGE.value}:{low.isoformat()}..{high.isoformat()}",
        )

    day = selected_day or today or local_date_of(now_utc(), tz)
    return TimeWindow(
        start=local_day_start(day, tz),
        end=local_day_start(day + timedelta(days=1), tz),
        mode=WindowMode.DAY,
        cache_key=f"{WindowMode.DAY.value}:{day.isoformat()}",
    )


def clamp_page_size(page_size: int) -> int:
    """페이지 크기 1..MAX_PAGE_SIZE 제한"""
    return max(1, min(int(page_size), Defaults.MAX_PAGE_SIZE))


class MovementQueryPlanner:
    """구간 조회 + 캐시 재사용

    캐시 항목은 키가 정확히 일치할 때만 재사용하고,
    그렇지 않으면 페이지를 새로 순회해 캐시를 교체한다.
    """

    def __init__(
        self,
        store: "MovementStore",
        cache: "MovementCache | None" = None,
        page_size: int = Defaults.PAGE_SIZE,
        max_pages: int = Defaults.MAX_PAGES,
    ):
        self._store = store
        self._cache = cache
        self._page_size = clamp_page_size(page_size)
        self._max_pages = max(1, max_pages)

    async def load(
        self,
        fund_id: str,
        window: TimeWindow,
        account_id: AccountKey | None = None,
        refresh: bool = False,
    ) -> list[Movement]:
        """구간 내 Movement 조회 (최신순)

        Args:
            fund_id: 자금 파티션 키
            window: 조회 구간
            account_id: 계정 필터 (None이면 전체)
            refresh: 캐시 무시

        Returns:
            Movement 목록
        """
        movements: list[Movement] | None = None
        if self._cache is not None and not refresh:
            movements = self._cache.get(fund_id, window.cache_key)

        if movements is None:
            movements = await self._fetch(fund_id, window)
            if self._cache is not None:
                self._cache.put(fund_id, window, movements)

        if account_id is None:
            return list(movements)
        return [m for m in movements if m.account_id == account_id]

    async def _fetch(self, fund_id: str, window: TimeWindow) -> list[Movement]:
        collected: list[Movement] = []
        cursor: PageCursor | None = None

        for _ in range(self._max_pages):
            page = await self._store.list_page(
                fund_id,
                page_size=self._page_size,
                cursor=cursor,
                start=window.start,
                end=window.end,
            )
            collected.extend(page.items)

            if page.exhausted or page.cursor is None:
                return collected
            cursor = page.cursor

        logger.warning(
            f"Movement page cap reached: {fund_id} {window.cache_key}",
            extra={"max_pages": self._max_pages, "loaded": len(collected)},
        )
        return collected
