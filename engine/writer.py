"""
Ledger Writer

Movement/마감 레코드 쓰기 + 잔액 문서 갱신을 하나의 트랜잭션으로 저장.

- 자금별 asyncio.Lock으로 변경을 요청 순서대로 직렬화
- 쓰기 확인은 제한 시간까지만 대기
  - 시간 내 완료: CONFIRMED
  - 타임아웃: 쓰기는 계속 진행(shield), 로컬 캐시는 반영, PENDING_CONFIRMATION 반환
  - 뒤늦은 실패: 로그 + 해당 자금 캐시 무효화
- 중단된 쓰기는 취소하지 않음
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial

import aiosqlite

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.domain.errors import PersistenceError
from core.domain.models import DailyClosing, FundLedger, Movement
from core.domain.state_machines import WriteState, WriteStateMachine
from core.ledger.normalizer import build_fund_id
from core.storage.closing_store import ClosingStore
from core.storage.fund_store import FundStore
from core.storage.movement_cache import MovementCache
from core.storage.movement_store import MovementStore
from core.types import WriteStatus

logger = logging.getLogger(__name__)

PENDING_WARNING = "Cambio aplicado localmente; confirmación con el servidor pendiente"


@dataclass(frozen=True)
class LedgerChange:
    """한 번에 저장할 변경 묶음

    Attributes:
        fund_id: 자금 문서/Movement 파티션 키
        ledger: 갱신된 FundLedger (잔액/잠금)
        expected_version: 스냅샷을 읽을 때의 문서 version
        upserts: 저장할 Movement
        deletes: 삭제할 Movement
        closings: 저장할 DailyClosing
        audit_actions: 권한 작업 감사 로그 (Movement, action)
        updated_by: 변경 주체
    """

    fund_id: str
    ledger: FundLedger
    expected_version: int
    upserts: tuple[Movement, ...] = ()
    deletes: tuple[Movement, ...] = ()
    closings: tuple[DailyClosing, ...] = ()
    audit_actions: tuple[tuple[Movement, str], ...] = ()
    updated_by: str = "system"


class LedgerWriter:
    """Ledger 쓰기 조정자

    Args:
        db: SQLiteAdapter
        fund_store: 자금 문서 저장소
        movement_store: Movement 저장소
        closing_store: 일일 마감 저장소
        cache: Movement 로컬 캐시 (선택)
        confirm_timeout: 쓰기 확인 대기 시간 (초)
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        fund_store: FundStore,
        movement_store: MovementStore,
        closing_store: ClosingStore,
        cache: MovementCache | None = None,
        confirm_timeout: float = Defaults.WRITE_CONFIRM_TIMEOUT_SEC,
    ):
        self.db = db
        self.fund_store = fund_store
        self.movement_store = movement_store
        self.closing_store = closing_store
        self.cache = cache
        self.confirm_timeout = confirm_timeout

        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, set[asyncio.Task]] = {}

    def lock(self, company: str) -> asyncio.Lock:
        """자금별 변경 직렬화 Lock"""
        fund_id = build_fund_id(company)
        if fund_id not in self._locks:
            self._locks[fund_id] = asyncio.Lock()
        return self._locks[fund_id]

    async def settle(self, company: str) -> None:
        """확인 대기 중인 쓰기가 끝날 때까지 대기 (결과는 콜백에서 처리)"""
        pending = list(self._pending.get(build_fund_id(company), ()))
        if pending:
            await asyncio.wait(pending)

    async def settle_all(self) -> None:
        """모든 자금의 확인 대기 쓰기 완료 대기 (종료 전 DB를 닫기 전에 호출)"""
        pending = [task for tasks in self._pending.values() for task in tasks]
        if pending:
            logger.info(f"Waiting for {len(pending)} pending write(s)")
            await asyncio.wait(pending)

    def pending_count(self, company: str | None = None) -> int:
        if company is None:
            return sum(len(tasks) for tasks in self._pending.values())
        return len(self._pending.get(build_fund_id(company), ()))

    async def persist(self, change: LedgerChange) -> WriteStatus:
        """변경 저장

        Returns:
            CONFIRMED 또는 PENDING_CONFIRMATION

        Raises:
            PersistenceError: 쓰기 실패 (아무것도 커밋되지 않음)
        """
        fund_id = change.fund_id
        machine = WriteStateMachine(name=f"Write[{fund_id}]")

        task = asyncio.create_task(self._write(fund_id, change))
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.confirm_timeout)
        except asyncio.TimeoutError:
            machine.transition(WriteState.PENDING_CONFIRMATION)
            self._apply_to_cache(fund_id, change)

            self._pending.setdefault(fund_id, set()).add(task)
            task.add_done_callback(partial(self._on_late_result, fund_id, machine))

            logger.warning(
                f"Write confirmation timed out: {fund_id}",
                extra={"timeout_sec": self.confirm_timeout},
            )
            return WriteStatus.PENDING_CONFIRMATION
        except PersistenceError:
            machine.transition(WriteState.FAILED)
            raise

        machine.transition(WriteState.CONFIRMED)
        self._apply_to_cache(fund_id, change)
        return WriteStatus.CONFIRMED

    async def _write(self, fund_id: str, change: LedgerChange) -> None:
        try:
            async with self.db.transaction():
                for movement in change.deletes:
                    await self.movement_store.delete(fund_id, movement.id)
                for movement in change.upserts:
                    await self.movement_store.upsert(fund_id, movement)
                for movement, action in change.audit_actions:
                    await self.movement_store.append_audit_log(
                        fund_id, movement, action, change.updated_by
                    )
                for closing in change.closings:
                    await self.closing_store.save(fund_id, closing)
                await self.fund_store.save(
                    fund_id,
                    change.ledger,
                    updated_by=change.updated_by,
                    expected_version=change.expected_version,
                )
        except PersistenceError:
            raise
        except (aiosqlite.Error, RuntimeError) as e:
            raise PersistenceError("write_ledger", str(e)) from e

        logger.debug(
            f"Ledger write committed: {fund_id}",
            extra={
                "upserts": len(change.upserts),
                "deletes": len(change.deletes),
                "closings": len(change.closings),
            },
        )

    def _apply_to_cache(self, fund_id: str, change: LedgerChange) -> None:
        if self.cache is None:
            return
        for movement in change.deletes:
            self.cache.apply_delete(fund_id, movement.id)
        for movement in change.upserts:
            self.cache.apply_upsert(fund_id, movement)

    def _on_late_result(
        self,
        fund_id: str,
        machine: WriteStateMachine,
        task: asyncio.Task,
    ) -> None:
        self._pending.get(fund_id, set()).discard(task)

        if task.cancelled():
            machine.transition(WriteState.FAILED)
            logger.error(f"Pending write cancelled: {fund_id}")
            if self.cache is not None:
                self.cache.invalidate(fund_id)
            return

        error = task.exception()
        if error is not None:
            machine.transition(WriteState.FAILED)
            logger.error(
                f"Pending write failed: {fund_id}: {error}",
                extra={"error": str(error)},
            )
            if self.cache is not None:
                self.cache.invalidate(fund_id)
            return

        machine.transition(WriteState.CONFIRMED)
        logger.info(f"Pending write confirmed: {fund_id}")
