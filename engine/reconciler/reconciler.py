"""
Daily Closing Reconciler

현금 실사(일일 마감)와 Ledger 잔액을 대조하고 차액을 조정 Movement로 반영.

커밋:
1. 담당자/실사 금액 검증 (쓰기 전)
2. 마감 레코드 저장 + 다시 읽어 확인 (실패 시 조정 없이 중단)
3. 통화별 차액마다 조정 Movement 1건 (모두 0이면 정보 기록 1건)
4. 잔액 반영 + 잠금 시점을 마감 생성 시간으로 이동 (하나의 트랜잭션)
5. 마감 알림 발송 (백그라운드)

수정:
- 기준 잔액 = 현재 잔액 - 이 마감의 기존 조정 delta 합계
- 새 차액 기준으로 조정 Movement 삭제/수정/생성
- 수정 시 잠금 시점은 이동하지 않음
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

import aiosqlite

from core.constants import DENOMINATIONS, MovementTypes, SystemIdentity
from core.domain.errors import NotFoundError, PersistenceError, ValidationError
from core.domain.models import (
    AdjustmentRecord,
    AdjustmentResolution,
    ClosingDraft,
    ClosingPatch,
    ClosingResult,
    DailyClosing,
    Movement,
    sanitize_breakdown,
    sanitize_money,
)
from core.domain.state_machines import ClosingState, ClosingStateMachine
from core.ledger.audit import compress, record_change, with_history
from core.ledger.balance import apply_mutation
from core.ledger.normalizer import build_fund_id
from core.storage.closing_store import ClosingStore
from core.storage.fund_store import FundStore
from core.storage.movement_store import MovementStore
from core.types import CURRENCY_KEYS, Currency, MovementKind, MutationKind, WriteStatus
from core.utils.idempotency import make_closing_id, make_movement_id
from core.utils.timezone import now_utc
from engine.notifications import NotificationDispatcher, build_closing_message
from engine.writer import PENDING_WARNING, LedgerChange, LedgerWriter

logger = logging.getLogger(__name__)

INFORMATIONAL_NOTE = "Cierre sin diferencias"


def breakdown_total(breakdown: dict[int, int]) -> int:
    """권종 × 수량 합계"""
    return sum(denomination * count for denomination, count in breakdown.items())


def resolve_counted(
    counted: dict[Currency, int] | None,
    breakdown: dict[Currency, dict[int, int]] | None,
) -> tuple[dict[Currency, int], dict[Currency, dict[int, int]]]:
    """실사 금액 결정

    통화별로 counted 값이 있으면 그 값(절사), 없으면 권종 합계.

    Returns:
        (통화별 실사 금액, 정규화된 통화별 권종 수량)

    Raises:
        ValidationError: 금액/권종이 모두 없거나 음수 금액
    """
    if counted is None and breakdown is None:
        raise ValidationError("counted", "counted totals or a denomination breakdown is required")

    clean_breakdown: dict[Currency, dict[int, int]] = {
        currency: sanitize_breakdown((breakdown or {}).get(currency))
        for currency in CURRENCY_KEYS
    }

    totals: dict[Currency, int] = {}
    for currency in CURRENCY_KEYS:
        if counted is not None and counted.get(currency) is not None:
            value = sanitize_money(counted[currency])
        else:
            value = breakdown_total(clean_breakdown[currency])
        if value < 0:
            raise ValidationError(f"counted.{currency.value}", "counted total must not be negative")
        totals[currency] = value

    return totals, clean_breakdown


def compute_diff(counted: dict[Currency, int], recorded: dict[Currency, int]) -> dict[Currency, int]:
    """통화별 차액 (실사 - Ledger)"""
    return {
        currency: sanitize_money(counted.get(currency, 0)) - sanitize_money(recorded.get(currency, 0))
        for currency in CURRENCY_KEYS
    }


def unknown_denominations(breakdown: dict[Currency, dict[int, int]]) -> list[str]:
    """표준 권종이 아닌 항목 (경고용)"""
    unknown: list[str] = []
    for currency, counts in breakdown.items():
        allowed = DENOMINATIONS.get(currency, ())
        unknown.extend(f"{currency.value}:{d}" for d in counts if d not in allowed)
    return unknown


class DailyClosingReconciler:
    """일일 마감 대조기

    Args:
        fund_store: 자금 문서 저장소
        movement_store: Movement 저장소
        closing_store: 일일 마감 저장소
        writer: Ledger 쓰기 조정자
        dispatcher: 알림 발송기 (선택)
        closing_recipients: 마감 알림 수신자
        clock: 현재 시간 (테스트용 주입)
    """

    def __init__(
        self,
        fund_store: FundStore,
        movement_store: MovementStore,
        closing_store: ClosingStore,
        writer: LedgerWriter,
        dispatcher: NotificationDispatcher | None = None,
        closing_recipients: tuple[str, ...] = (),
        clock: Callable[[], datetime] = now_utc,
    ):
        self.fund_store = fund_store
        self.movement_store = movement_store
        self.closing_store = closing_store
        self.writer = writer
        self.dispatcher = dispatcher
        self.closing_recipients = closing_recipients
        self._clock = clock

    # =========================================================================
    # 커밋
    # =========================================================================

    async def commit(self, company: str, draft: ClosingDraft) -> ClosingResult:
        """일일 마감 커밋

        Args:
            company: 회사명
            draft: 마감 입력

        Returns:
            ClosingResult (created에 조정/정보 Movement)

        Raises:
            ValidationError: 담당자/실사 금액 누락
            PersistenceError: 마감 레코드 저장 확인 실패 또는 조정 쓰기 실패
        """
        manager = (draft.manager or "").strip()
        if not manager:
            raise ValidationError("manager", "manager is required")
        counted, breakdown = resolve_counted(draft.counted, draft.breakdown)

        fund_id = build_fund_id(company)
        async with self.writer.lock(company):
            await self.writer.settle(company)
            ledger, version = await self.fund_store.load_snapshot(company)

            recorded = {
                currency: ledger.get_balance(draft.account_id, currency).current_balance
                for currency in CURRENCY_KEYS
            }
            created_at = self._clock()
            closing = DailyClosing(
                id=make_closing_id(created_at),
                created_at=created_at,
                closing_date=draft.closing_date or created_at,
                account_id=draft.account_id,
                manager=manager,
                counted=counted,
                recorded_balance=recorded,
                diff=compute_diff(counted, recorded),
                notes=(draft.notes or "").strip(),
                breakdown=breakdown,
                state=ClosingState.DRAFT,
            )

            await self.closing_store.save_verified(fund_id, closing)

            adjustments = self._build_adjustments(closing, closing.diff)
            updated_ledger = ledger
            for movement in adjustments:
                updated_ledger = apply_mutation(
                    updated_ledger,
                    MutationKind.CREATE,
                    None,
                    movement,
                    closing.account_id,
                    at=created_at,
                )
            locked_until = closing.created_at
            if ledger.locked_until is not None and ledger.locked_until > locked_until:
                locked_until = ledger.locked_until
            updated_ledger = replace(updated_ledger, locked_until=locked_until, updated_at=created_at)

            committed = replace(closing, state=self._advance(closing, ClosingState.COMMITTED))
            try:
                status = await self.writer.persist(
                    LedgerChange(
                        fund_id=fund_id,
                        ledger=updated_ledger,
                        expected_version=version,
                        upserts=tuple(adjustments),
                        closings=(committed,),
                        updated_by=manager,
                    )
                )
            except PersistenceError:
                await self._discard(fund_id, closing)
                raise

        logger.info(
            f"Daily closing committed: {fund_id} {committed.id}",
            extra={
                "diff": {c.value: d for c, d in committed.diff.items()},
                "adjustments": len(adjustments),
                "status": status.value,
            },
        )

        warnings: list[str] = []
        unknown = unknown_denominations(breakdown)
        if unknown:
            warnings.append(f"Denominaciones no estándar: {', '.join(unknown)}")
        if status == WriteStatus.PENDING_CONFIRMATION:
            warnings.append(PENDING_WARNING)

        self._notify(company, committed)

        return ClosingResult(
            closing=committed,
            created=tuple(adjustments),
            status=status,
            warnings=tuple(warnings),
        )

    # =========================================================================
    # 수정
    # =========================================================================

    async def edit(
        self,
        company: str,
        closing_id: str,
        patch: ClosingPatch,
        edited_by: str,
    ) -> ClosingResult:
        """커밋된 마감 수정 + 조정 재계산

        Raises:
            NotFoundError: 마감 없음
            ValidationError: 커밋되지 않은 마감 또는 잘못된 입력
            PersistenceError: 쓰기 실패
        """
        fund_id = build_fund_id(company)
        async with self.writer.lock(company):
            await self.writer.settle(company)

            closing = await self.closing_store.get(fund_id, closing_id)
            if closing is None:
                raise NotFoundError("closing", closing_id)
            if not ClosingStateMachine(closing.state).is_committed:
                raise ValidationError("state", f"closing is {closing.state.value}, not COMMITTED")

            manager = closing.manager
            if patch.manager is not None:
                manager = patch.manager.strip()
                if not manager:
                    raise ValidationError("manager", "manager is required")

            counted, breakdown = closing.counted, closing.breakdown
            if patch.breakdown is not None:
                counted, breakdown = resolve_counted(patch.counted, patch.breakdown)
            elif patch.counted is not None:
                overrides = {c: v for c, v in patch.counted.items() if v is not None}
                counted, _ = resolve_counted({**closing.counted, **overrides}, None)
                # 실사 금액과 맞지 않게 된 권종 내역은 버린다
                breakdown = {
                    currency: counts
                    for currency, counts in closing.breakdown.items()
                    if currency not in overrides or breakdown_total(counts) == counted[currency]
                }

            ledger, version = await self.fund_store.load_snapshot(company)
            linked = await self.movement_store.list_by_original_entry(fund_id, closing.id)
            previous = [m for m in linked if m.kind == MovementKind.SYSTEM_ADJUSTMENT]
            informational = [m for m in linked if m.kind == MovementKind.SYSTEM_INFORMATIONAL]

            base: dict[Currency, int] = {}
            for currency in CURRENCY_KEYS:
                current = ledger.get_balance(closing.account_id, currency).current_balance
                base[currency] = current - sum(m.delta for m in previous if m.currency == currency)
            diff = compute_diff(counted, base)

            now = self._clock()
            created: list[Movement] = []
            updated: list[tuple[Movement, Movement]] = []
            removed: list[Movement] = []

            for currency in CURRENCY_KEYS:
                existing = [m for m in previous if m.currency == currency]
                if diff[currency] == 0:
                    removed.extend(existing)
                    continue

                if not existing:
                    created.append(self._adjustment(closing, currency, diff[currency]))
                    continue

                primary, duplicates = existing[0], existing[1:]
                removed.extend(duplicates)
                revised = self._revise_adjustment(primary, diff[currency], now)
                if revised is not None:
                    updated.append((primary, revised))

            all_zero = all(value == 0 for value in diff.values())
            if all_zero and not informational:
                created.append(self._informational(closing))
            elif not all_zero:
                removed.extend(informational)
            else:
                removed.extend(informational[1:])

            updated_ledger = ledger
            for movement in removed:
                updated_ledger = apply_mutation(
                    updated_ledger, MutationKind.DELETE, movement, None, closing.account_id, at=now
                )
            for before, after in updated:
                updated_ledger = apply_mutation(
                    updated_ledger, MutationKind.EDIT, before, after, closing.account_id, at=now
                )
            for movement in created:
                updated_ledger = apply_mutation(
                    updated_ledger, MutationKind.CREATE, None, movement, closing.account_id, at=now
                )

            resolution = AdjustmentResolution(
                removed_adjustments=tuple(
                    AdjustmentRecord.from_movement(m) for m in removed if m.kind == MovementKind.SYSTEM_ADJUSTMENT
                ),
                updated_adjustments=tuple(AdjustmentRecord.from_movement(after) for _, after in updated),
                note=self._resolution_note(edited_by, diff),
                post_adjustment_balance=dict(counted),
            )
            revised_closing = replace(
                closing,
                manager=manager,
                counted=counted,
                breakdown=breakdown,
                recorded_balance=base,
                diff=diff,
                notes=patch.notes.strip() if patch.notes is not None else closing.notes,
                adjustment_resolution=resolution,
            )

            status = await self.writer.persist(
                LedgerChange(
                    fund_id=fund_id,
                    ledger=replace(updated_ledger, updated_at=now),
                    expected_version=version,
                    upserts=tuple(created) + tuple(after for _, after in updated),
                    deletes=tuple(removed),
                    closings=(revised_closing,),
                    updated_by=edited_by or manager,
                )
            )

        logger.info(
            f"Daily closing edited: {fund_id} {closing.id}",
            extra={
                "created": len(created),
                "updated": len(updated),
                "removed": len(removed),
                "status": status.value,
            },
        )

        warnings = (PENDING_WARNING,) if status == WriteStatus.PENDING_CONFIRMATION else ()
        return ClosingResult(
            closing=revised_closing,
            created=tuple(created),
            updated=tuple(after for _, after in updated),
            removed=tuple(removed),
            status=status,
            warnings=warnings,
        )

    # =========================================================================
    # 조정 Movement 구성
    # =========================================================================

    def _build_adjustments(
        self,
        closing: DailyClosing,
        diff: dict[Currency, int],
    ) -> list[Movement]:
        adjustments = [
            self._adjustment(closing, currency, diff[currency])
            for currency in CURRENCY_KEYS
            if diff.get(currency, 0) != 0
        ]
        if not adjustments:
            return [self._informational(closing)]
        return adjustments

    @staticmethod
    def _adjustment_amounts(diff: int) -> tuple[int, int, str]:
        if diff > 0:
            return diff, 0, MovementTypes.ADJUSTMENT_INCOME
        return 0, -diff, MovementTypes.ADJUSTMENT_EXPENSE

    def _adjustment(self, closing: DailyClosing, currency: Currency, diff: int) -> Movement:
        credit, debit, movement_type = self._adjustment_amounts(diff)
        return Movement(
            id=make_movement_id(closing.created_at, closing.account_id.value),
            created_at=closing.created_at,
            account_id=closing.account_id,
            currency=currency,
            provider_code=SystemIdentity.PROVIDER_CODE,
            invoice_number=closing.id,
            type=movement_type,
            amount_credit=credit,
            amount_debit=debit,
            manager=SystemIdentity.MANAGER,
            notes=f"Ajuste por cierre diario {closing.id}",
            original_entry_id=closing.id,
            kind=MovementKind.SYSTEM_ADJUSTMENT,
        )

    def _informational(self, closing: DailyClosing) -> Movement:
        return Movement(
            id=make_movement_id(closing.created_at, closing.account_id.value),
            created_at=closing.created_at,
            account_id=closing.account_id,
            currency=Currency.CRC,
            provider_code=SystemIdentity.PROVIDER_CODE,
            invoice_number=closing.id,
            type=SystemIdentity.INFORMATIONAL_TYPE,
            manager=SystemIdentity.MANAGER,
            notes=INFORMATIONAL_NOTE,
            original_entry_id=closing.id,
            kind=MovementKind.SYSTEM_INFORMATIONAL,
        )

    def _revise_adjustment(self, movement: Movement, diff: int, at: datetime) -> Movement | None:
        """조정 금액 갱신 (변경 없으면 None)

        감사 이력은 유지하고 추가한 뒤 축약. 조정 Movement에는 수정 횟수 제한을 두지 않는다.
        """
        credit, debit, movement_type = self._adjustment_amounts(diff)
        if (movement.amount_credit, movement.amount_debit, movement.type) == (credit, debit, movement_type):
            return None

        revised = replace(movement, amount_credit=credit, amount_debit=debit, type=movement_type)
        history = record_change(movement, revised, at=at, enforce_cap=False)
        return with_history(revised, compress(history))

    async def _discard(self, fund_id: str, closing: DailyClosing) -> None:
        """조정 쓰기 실패 시 초안 마감을 DISCARDED로 표시"""
        discarded = replace(closing, state=self._advance(closing, ClosingState.DISCARDED))
        try:
            await self.closing_store.save(fund_id, discarded)
        except (PersistenceError, aiosqlite.Error) as e:
            logger.error(f"Failed to discard closing {closing.id}: {e}")

    @staticmethod
    def _advance(closing: DailyClosing, target: ClosingState) -> ClosingState:
        """상태 머신 규칙에 따른 다음 상태 (허용되지 않은 전이는 StateMachineError)"""
        return ClosingState(ClosingStateMachine(closing.state).transition(target))

    @staticmethod
    def _resolution_note(edited_by: str, diff: dict[Currency, int]) -> str:
        parts = ", ".join(f"{currency.value} {value:+d}" for currency, value in diff.items())
        return f"Ajustes recalculados por {edited_by or SystemIdentity.MANAGER}: {parts}"

    # =========================================================================
    # 알림
    # =========================================================================

    def _notify(self, company: str, closing: DailyClosing) -> None:
        if self.dispatcher is None or not self.closing_recipients:
            return
        self.dispatcher.dispatch(
            build_closing_message(company, closing, recipient)
            for recipient in self.closing_recipients
        )

    async def list_closings(
        self,
        company: str,
        limit: int = 50,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DailyClosing]:
        """최근 마감 목록"""
        return await self.closing_store.list_recent(build_fund_id(company), limit, start, end)
