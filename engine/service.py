"""
Fund Ledger Service

자금 Ledger의 외부 진입점.
Movement 등록/수정/삭제, 잔액 조회/설정, 일일 마감, 레거시 마이그레이션.

모든 변경은 같은 흐름을 따른다:
1. 입력 검증 (쓰기 전)
2. 자금별 Lock 획득 → 최신 잔액 문서 다시 읽기
3. Guard 검사 (잠금, 시스템 Movement, 감사 한도)
4. Movement 쓰기 + 잔액 delta를 하나의 트랜잭션으로 저장
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.interfaces import IIdentityProvider, INotifier, IProviderDirectory
from adapters.models import Actor, ProviderEntry, classify_movement_type
from core.config.loader import LedgerSettings
from core.constants import SystemIdentity
from core.domain.errors import LockedMovementError, NotFoundError, ValidationError
from core.domain.models import (
    AccountBalance,
    ClosingDraft,
    ClosingPatch,
    ClosingResult,
    DailyClosing,
    FundLedger,
    Movement,
    MovementDraft,
    MutationResult,
    RunningBalance,
    sanitize_breakdown,
)
from core.ledger.audit import apply_patch, record_change, with_history
from core.ledger.balance import apply_mutation, running_balances
from core.ledger.normalizer import build_fund_id
from core.ledger.query_planner import MovementQueryPlanner, TimeWindow, resolve_window
from core.storage.closing_store import ClosingStore
from core.storage.fund_store import FundStore
from core.storage.movement_cache import MovementCache
from core.storage.movement_store import MigrationReport, MovementStore
from core.types import AccountKey, Currency, MovementCategory, MutationKind, WriteStatus
from core.utils.idempotency import make_movement_id
from core.utils.timezone import now_utc
from engine.guard import MovementGuard
from engine.notifications import NotificationDispatcher, build_provider_debit_message
from engine.reconciler import DailyClosingReconciler
from engine.writer import PENDING_WARNING, LedgerChange, LedgerWriter

logger = logging.getLogger(__name__)

ANONYMOUS_ACTOR = Actor(name="anonimo")


def validate_amounts(credit: Any, debit: Any) -> tuple[int, int]:
    """입금/출금 금액 검증 (정확히 하나만 0보다 큼)

    Raises:
        ValidationError: 숫자가 아니거나 음수, 둘 다 0 또는 둘 다 양수
    """
    amounts: list[int] = []
    for name, value in (("amount_credit", credit), ("amount_debit", debit)):
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(name, "amount must be a number")
        amount = int(value)
        if amount < 0:
            raise ValidationError(name, "amount must not be negative")
        amounts.append(amount)

    credit_amount, debit_amount = amounts
    if (credit_amount > 0) == (debit_amount > 0):
        raise ValidationError("amount", "exactly one of credit or debit must be positive")
    return credit_amount, debit_amount


def validate_category(movement_type: str, credit: int, debit: int) -> None:
    """Movement 유형과 입금/출금 방향 일치 검사

    입금 유형은 입금만, 지출/출금 유형은 출금만 허용. 알 수 없는 유형은 둘 다 허용.
    """
    category = classify_movement_type(movement_type)
    if category == MovementCategory.INCOME and debit > 0:
        raise ValidationError("amount_debit", f"{movement_type} movements must be credits")
    if category == MovementCategory.EXPENSE and credit > 0:
        raise ValidationError("amount_credit", f"{movement_type} movements must be debits")
    if category == MovementCategory.INFORMATIONAL:
        raise ValidationError("type", f"{movement_type} is reserved for closing records")


class FundLedgerService:
    """자금 Ledger 서비스

    Args:
        db: SQLiteAdapter
        settings: Ledger 동작 설정
        directory: 거래처 디렉토리 (선택)
        identity: 사용자 식별 (선택)
        notifier: 알림 발송 (선택)
        closing_recipients: 마감 알림 수신자
        clock: 현재 시간 (테스트용 주입)

    사용 예시:
    ```python
    service = FundLedgerService(db, settings.ledger, directory=directory)

    result = await service.record_movement(
        "Delifood",
        MovementDraft(AccountKey.FONDO_GENERAL, Currency.CRC, "P001", amount_credit=5000),
    )
    print(result.balances)
    ```
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        settings: LedgerSettings | None = None,
        directory: IProviderDirectory | None = None,
        identity: IIdentityProvider | None = None,
        notifier: INotifier | None = None,
        closing_recipients: tuple[str, ...] = (),
        clock: Callable[[], datetime] = now_utc,
    ):
        self.settings = settings or LedgerSettings()
        self.directory = directory
        self.identity = identity
        self._clock = clock

        self.fund_store = FundStore(db)
        self.movement_store = MovementStore(db)
        self.closing_store = ClosingStore(db)
        self.cache = MovementCache()
        self.planner = MovementQueryPlanner(
            self.movement_store,
            cache=self.cache,
            page_size=self.settings.page_size,
            max_pages=self.settings.max_pages,
        )
        self.writer = LedgerWriter(
            db,
            self.fund_store,
            self.movement_store,
            self.closing_store,
            cache=self.cache,
            confirm_timeout=self.settings.write_confirm_timeout_sec,
        )
        self.guard = MovementGuard(
            cooldown_sec=self.settings.edit_cooldown_sec,
            max_edits=self.settings.max_audit_edits,
        )
        self.dispatcher = NotificationDispatcher(notifier)
        self.reconciler = DailyClosingReconciler(
            self.fund_store,
            self.movement_store,
            self.closing_store,
            self.writer,
            dispatcher=self.dispatcher,
            closing_recipients=closing_recipients,
            clock=clock,
        )

    def _actor(self, actor: Actor | None) -> Actor:
        if actor is not None:
            return actor
        if self.identity is not None:
            return self.identity.current_actor()
        return ANONYMOUS_ACTOR

    # =========================================================================
    # 조회
    # =========================================================================

    async def get_ledger(self, company: str) -> FundLedger:
        """최신 잔액 문서 (캐시하지 않음)"""
        return await self.fund_store.load(company)

    async def get_current_balance(
        self,
        company: str,
        account_id: AccountKey,
        currency: Currency,
    ) -> int:
        """현재 잔액"""
        ledger = await self.fund_store.load(company)
        return ledger.get_balance(account_id, currency).current_balance

    async def list_movements(
        self,
        company: str,
        window: TimeWindow | None = None,
        account_id: AccountKey | None = None,
        refresh: bool = False,
    ) -> list[Movement]:
        """구간 내 Movement 조회 (최신순, 기본: 오늘)"""
        window = window or resolve_window()
        return await self.planner.load(build_fund_id(company), window, account_id, refresh)

    async def get_movement(self, company: str, movement_id: str) -> Movement:
        """
        Raises:
            NotFoundError: Movement 없음
        """
        movement = await self.movement_store.get(build_fund_id(company), movement_id)
        if movement is None:
            raise NotFoundError("movement", movement_id)
        return movement

    async def get_audit_log(self, company: str, movement_id: str) -> list[dict]:
        """Movement 권한 작업 기록 (오래된 순, 삭제 후에도 유지)"""
        return await self.movement_store.get_audit_log(build_fund_id(company), movement_id)

    async def running_balances(
        self,
        company: str,
        account_id: AccountKey,
        currency: Currency,
        movements: list[Movement],
    ) -> dict[str, RunningBalance]:
        """로드된 Movement의 직전/직후 잔액 (표시용)"""
        current = await self.get_current_balance(company, account_id, currency)
        return running_balances(movements, current, account_id, currency)

    async def list_closings(
        self,
        company: str,
        limit: int = 50,
        window: TimeWindow | None = None,
    ) -> list[DailyClosing]:
        return await self.reconciler.list_closings(
            company,
            limit=limit,
            start=window.start if window else None,
            end=window.end if window else None,
        )

    # =========================================================================
    # Movement 변경
    # =========================================================================

    async def record_movement(
        self,
        company: str,
        draft: MovementDraft,
        actor: Actor | None = None,
    ) -> MutationResult:
        """Movement 등록

        Raises:
            ValidationError: 필수 필드 누락, 금액/유형 불일치, 사용하지 않는 통화
            LockedMovementError: 잠금 시점 이전 일시로 작성된 Movement
            PersistenceError: 쓰기 실패
        """
        actor = self._actor(actor)
        provider_code = (draft.provider_code or "").strip()
        if not provider_code:
            raise ValidationError("provider_code", "provider is required")
        if provider_code == SystemIdentity.PROVIDER_CODE:
            raise ValidationError("provider_code", "reserved for closing adjustments")

        credit, debit = validate_amounts(draft.amount_credit, draft.amount_debit)

        provider: ProviderEntry | None = None
        if self.directory is not None:
            provider = await self.directory.get_provider(company, provider_code)
        movement_type = (draft.type or "").strip() or (provider.type if provider and provider.type else "")
        validate_category(movement_type, credit, debit)

        fund_id = build_fund_id(company)
        async with self.writer.lock(company):
            await self.writer.settle(company)
            ledger, version = await self.fund_store.load_snapshot(company)

            if not ledger.supports(draft.account_id, draft.currency):
                raise ValidationError(
                    "currency",
                    f"{draft.currency.value} is not enabled for {draft.account_id.value}",
                )

            created_at = draft.created_at or self._clock()
            movement = Movement(
                id=make_movement_id(created_at, draft.account_id.value),
                created_at=created_at,
                account_id=draft.account_id,
                currency=draft.currency,
                provider_code=provider_code,
                invoice_number=(draft.invoice_number or "").strip(),
                type=movement_type,
                amount_credit=credit,
                amount_debit=debit,
                manager=(draft.manager or "").strip() or actor.name,
                notes=(draft.notes or "").strip(),
                breakdown=sanitize_breakdown(draft.breakdown) or None,
            )

            if ledger.is_locked(movement.created_at):
                raise LockedMovementError(
                    movement.id,
                    LockedMovementError.REASON_CLOSED,
                    locked_until=ledger.locked_until,
                )

            updated = apply_mutation(
                ledger, MutationKind.CREATE, None, movement, movement.account_id, at=self._clock()
            )
            status = await self.writer.persist(
                LedgerChange(
                    fund_id=fund_id,
                    ledger=updated,
                    expected_version=version,
                    upserts=(movement,),
                    updated_by=actor.name,
                )
            )

        logger.info(
            f"Movement recorded: {fund_id} {movement.id}",
            extra={"delta": movement.delta, "currency": movement.currency.value},
        )

        if provider is not None and movement.amount_debit > 0:
            message = build_provider_debit_message(company, provider, movement)
            if message is not None:
                self.dispatcher.dispatch([message])

        return self._result(MutationKind.CREATE, status, movement, updated)

    async def edit_movement(
        self,
        company: str,
        movement_id: str,
        patch: dict[str, Any],
        actor: Actor | None = None,
    ) -> MutationResult:
        """Movement 수정 (감사 이력 기록)

        Args:
            company: 회사명
            movement_id: 대상 Movement ID
            patch: 변경할 필드 (provider_code, invoice_number, type, amount_credit,
                amount_debit, manager, notes, currency)
            actor: 작업 주체

        Raises:
            NotFoundError: Movement 없음
            ConcurrentEditError: 같은 Movement 수정 진행 중/쿨다운
            LockedMovementError: 잠긴 기간 또는 시스템 Movement
            AuditCapExceededError: 최대 수정 횟수 초과
            ValidationError: 잘못된 patch
            PersistenceError: 쓰기 실패
        """
        actor = self._actor(actor)
        fund_id = build_fund_id(company)

        async with self.guard.editing(fund_id, movement_id):
            async with self.writer.lock(company):
                await self.writer.settle(company)
                ledger, version = await self.fund_store.load_snapshot(company)

                before = await self.movement_store.get(fund_id, movement_id)
                if before is None:
                    raise NotFoundError("movement", movement_id)
                self.guard.check(MutationKind.EDIT, before, ledger)

                after = apply_patch(before, patch)
                if after.provider_code == SystemIdentity.PROVIDER_CODE:
                    raise ValidationError("provider_code", "reserved for closing adjustments")
                if not after.provider_code:
                    raise ValidationError("provider_code", "provider is required")
                validate_amounts(after.amount_credit, after.amount_debit)
                validate_category(after.type, after.amount_credit, after.amount_debit)
                if after.currency != before.currency and not ledger.supports(
                    after.account_id, after.currency
                ):
                    raise ValidationError(
                        "currency",
                        f"{after.currency.value} is not enabled for {after.account_id.value}",
                    )

                now = self._clock()
                history = record_change(
                    before, after, at=now, cap=self.settings.max_audit_edits
                )
                after = with_history(after, history)

                updated = apply_mutation(
                    ledger, MutationKind.EDIT, before, after, before.account_id, at=now
                )
                status = await self.writer.persist(
                    LedgerChange(
                        fund_id=fund_id,
                        ledger=updated,
                        expected_version=version,
                        upserts=(after,),
                        updated_by=actor.name,
                    )
                )

        logger.info(
            f"Movement edited: {fund_id} {movement_id}",
            extra={"edits": len(after.audit_history), "actor": actor.name},
        )
        return self._result(MutationKind.EDIT, status, after, updated)

    async def delete_movement(
        self,
        company: str,
        movement_id: str,
        actor: Actor | None = None,
    ) -> MutationResult:
        """Movement 삭제 (권한 작업 감사 로그 기록)

        Raises:
            NotFoundError: Movement 없음
            LockedMovementError: 잠긴 기간 또는 시스템 Movement
            PersistenceError: 쓰기 실패
        """
        actor = self._actor(actor)
        fund_id = build_fund_id(company)

        async with self.writer.lock(company):
            await self.writer.settle(company)
            ledger, version = await self.fund_store.load_snapshot(company)

            before = await self.movement_store.get(fund_id, movement_id)
            if before is None:
                raise NotFoundError("movement", movement_id)
            self.guard.check(MutationKind.DELETE, before, ledger)

            updated = apply_mutation(
                ledger, MutationKind.DELETE, before, None, before.account_id, at=self._clock()
            )
            action = f"delete:{actor.role}"
            status = await self.writer.persist(
                LedgerChange(
                    fund_id=fund_id,
                    ledger=updated,
                    expected_version=version,
                    deletes=(before,),
                    audit_actions=((before, action),),
                    updated_by=actor.name,
                )
            )

        logger.info(
            f"Movement deleted: {fund_id} {movement_id}",
            extra={"actor": actor.name, "privileged": actor.is_privileged},
        )
        return self._result(MutationKind.DELETE, status, before, updated)

    async def update_balances(
        self,
        company: str,
        account_id: AccountKey,
        initial_balances: dict[Currency, int] | None = None,
        current_overrides: dict[Currency, int] | None = None,
        actor: Actor | None = None,
    ) -> MutationResult:
        """초기 잔액 변경 / 현재 잔액 덮어쓰기

        초기 잔액 변경분은 같은 갱신에서 현재 잔액에도 반영된다.

        Raises:
            ValidationError: 숫자가 아닌 금액
            PersistenceError: 쓰기 실패
        """
        actor = self._actor(actor)
        for name, values in (("initial_balance", initial_balances), ("current_balance", current_overrides)):
            for currency, value in (values or {}).items():
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValidationError(f"{name}.{currency.value}", "amount must be a number")

        fund_id = build_fund_id(company)
        async with self.writer.lock(company):
            await self.writer.settle(company)
            ledger, version = await self.fund_store.load_snapshot(company)
            updated = apply_mutation(
                ledger,
                None,
                None,
                None,
                account_id,
                initial_balances=initial_balances,
                current_overrides=current_overrides,
                at=self._clock(),
            )
            status = await self.writer.persist(
                LedgerChange(
                    fund_id=fund_id,
                    ledger=updated,
                    expected_version=version,
                    updated_by=actor.name,
                )
            )

        logger.info(
            f"Balances updated: {fund_id} {account_id.value}",
            extra={"actor": actor.name},
        )
        return self._result(None, status, None, updated, account_id)

    # =========================================================================
    # 일일 마감
    # =========================================================================

    async def commit_daily_closing(
        self,
        company: str,
        draft: ClosingDraft,
    ) -> ClosingResult:
        return await self.reconciler.commit(company, draft)

    async def edit_daily_closing(
        self,
        company: str,
        closing_id: str,
        patch: ClosingPatch,
        actor: Actor | None = None,
    ) -> ClosingResult:
        return await self.reconciler.edit(company, closing_id, patch, self._actor(actor).name)

    # =========================================================================
    # 레거시 마이그레이션
    # =========================================================================

    async def migrate_legacy_movements(
        self,
        company: str,
        actor: Actor | None = None,
    ) -> MigrationReport:
        """잔액 문서 내 레거시 Movement 배열 → Movement 저장소

        모든 청크가 저장된 뒤에만 문서의 레거시 배열을 비운다.
        중간에 실패하면 배열이 남아 있으므로 다시 실행하면 된다 (UPSERT).
        """
        actor = self._actor(actor)
        fund_id = build_fund_id(company)

        async with self.writer.lock(company):
            await self.writer.settle(company)
            ledger, version = await self.fund_store.load_snapshot(company)
            if not ledger.operations:
                logger.info(f"No legacy movements to migrate: {fund_id}")
                return MigrationReport(fund_id=fund_id, total=0, written=0, chunks=0)

            report = await self.movement_store.migrate_legacy(
                fund_id,
                ledger.operations,
                chunk_size=self.settings.migration_chunk_size,
            )
            await self.fund_store.save(
                fund_id,
                replace(ledger, operations=(), updated_at=self._clock()),
                updated_by=actor.name,
                expected_version=version or None,
            )
            self.cache.invalidate(fund_id)

        return report

    # =========================================================================
    # 결과
    # =========================================================================

    @staticmethod
    def _result(
        kind: MutationKind | None,
        status: WriteStatus,
        movement: Movement | None,
        ledger: FundLedger,
        account_id: AccountKey | None = None,
    ) -> MutationResult:
        account = account_id or (movement.account_id if movement else None)
        balances: tuple[AccountBalance, ...] = tuple(
            b for b in ledger.balances if account is None or b.account_id == account
        )
        return MutationResult(
            kind=kind,
            status=status,
            movement=movement,
            balances=balances,
            warning=PENDING_WARNING if status == WriteStatus.PENDING_CONFIRMATION else None,
        )

    async def drain(self) -> None:
        """백그라운드 작업 완료 대기

        확인 대기 중인 쓰기를 먼저 끝낸 뒤 알림을 비운다. DB를 닫기 전에 호출해야 한다.
        """
        await self.writer.settle_all()
        await self.dispatcher.drain()
