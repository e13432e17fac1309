"""
MovementCache - Movement 로컬 캐시

조회 구간(캐시 키)별 Movement 목록 보관.
- 키가 정확히 일치할 때만 재사용
- 쓰기 성공(또는 확인 대기) 시 해당 시간이 포함된 구간에 반영
- 확인 대기 쓰기가 나중에 실패하면 자금 단위로 무효화
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field

from core.domain.models import Movement
from core.ledger.query_planner import TimeWindow

logger = logging.getLogger(__name__)

DEFAULT_MAX_WINDOWS = 32


@dataclass
class CacheEntry:
    window: TimeWindow
    movements: list[Movement] = field(default_factory=list)


def _sort_key(movement: Movement) -> tuple:
    return (movement.created_at, movement.id)


class MovementCache:
    """구간별 Movement 캐시 (자금별, LRU)

    Args:
        max_windows: 자금당 보관할 최대 구간 수
    """

    def __init__(self, max_windows: int = DEFAULT_MAX_WINDOWS):
        self.max_windows = max_windows
        self._entries: dict[str, OrderedDict[str, CacheEntry]] = {}

    def get(self, fund_id: str, cache_key: str) -> list[Movement] | None:
        """캐시 조회 (키 정확히 일치할 때만)"""
        entries = self._entries.get(fund_id)
        if not entries or cache_key not in entries:
            return None
        entries.move_to_end(cache_key)
        return list(entries[cache_key].movements)

    def put(self, fund_id: str, window: TimeWindow, movements: list[Movement]) -> None:
        """구간 캐시 교체"""
        entries = self._entries.setdefault(fund_id, OrderedDict())
        entries[window.cache_key] = CacheEntry(
            window=window,
            movements=sorted(movements, key=_sort_key, reverse=True),
        )
        entries.move_to_end(window.cache_key)
        while len(entries) > self.max_windows:
            entries.popitem(last=False)

    def apply_upsert(self, fund_id: str, movement: Movement) -> None:
        """저장된 Movement 반영 (시간이 포함된 구간만)"""
        for entry in self._entries.get(fund_id, {}).values():
            remaining = [m for m in entry.movements if m.id != movement.id]
            if entry.window.contains(movement.created_at):
                remaining.append(movement)
                remaining.sort(key=_sort_key, reverse=True)
            entry.movements = remaining

    def apply_delete(self, fund_id: str, movement_id: str) -> None:
        """삭제된 Movement 제거"""
        for entry in self._entries.get(fund_id, {}).values():
            entry.movements = [m for m in entry.movements if m.id != movement_id]

    def invalidate(self, fund_id: str | None = None) -> None:
        """캐시 무효화 (fund_id 없으면 전체)"""
        if fund_id is None:
            self._entries.clear()
        else:
            self._entries.pop(fund_id, None)
        logger.debug(f"Movement cache invalidated: {fund_id or '*'}")

    def cached_keys(self, fund_id: str) -> list[str]:
        return list(self._entries.get(fund_id, {}).keys())
