"""
스토리지 모듈

자금 문서, Movement, 일일 마감 저장소와 Movement 로컬 캐시 제공
"""

from core.storage.closing_store import ClosingStore
from core.storage.fund_store import FundStore
from core.storage.movement_cache import MovementCache
from core.storage.movement_store import MigrationReport, MovementStore

__all__ = [
    "FundStore",
    "MovementStore",
    "MovementCache",
    "ClosingStore",
    "MigrationReport",
]
