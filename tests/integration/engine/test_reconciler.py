"""
일일 마감 대조 통합 테스트

커밋(차액 조정/정보 기록/잠금/알림), 수정(조정 재계산), 쓰기 실패 시 DISCARDED.
"""

import pytest

from adapters.mock.notifier import MockNotifier
from core.constants import MovementTypes, SystemIdentity
from core.domain.errors import NotFoundError, PersistenceError, ValidationError
from core.domain.models import ClosingDraft, ClosingPatch, MovementDraft
from core.domain.state_machines import ClosingState
from core.ledger.normalizer import build_fund_id
from core.types import AccountKey, Currency, MovementKind
from engine.service import FundLedgerService

COMPANY = "Delifood"
FUND_ID = build_fund_id(COMPANY)


async def _seed(service: FundLedgerService, clock, crc: int = 9700, usd: int = 0) -> None:
    """마감 전 잔액 준비 (마감 시점과 겹치지 않도록 시계 진행)"""
    if crc:
        await service.record_movement(
            COMPANY, MovementDraft(AccountKey.FONDO_GENERAL, Currency.CRC, "P001", amount_credit=crc)
        )
    if usd:
        await service.record_movement(
            COMPANY, MovementDraft(AccountKey.FONDO_GENERAL, Currency.USD, "P001", amount_credit=usd)
        )
    clock.advance(hours=8)


async def _balance(service: FundLedgerService, currency: Currency = Currency.CRC) -> int:
    return await service.get_current_balance(COMPANY, AccountKey.FONDO_GENERAL, currency)


class TestCommit:
    """마감 커밋"""

    @pytest.mark.asyncio
    async def test_surplus_creates_adjustment(self, service: FundLedgerService, clock) -> None:
        """잔액 9,700 / 실사 10,000 → +300 조정, 잔액 10,000"""
        await _seed(service, clock)

        result = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 10000})
        )

        closing = result.closing
        assert result.status.value == "CONFIRMED"
        assert closing.state == ClosingState.COMMITTED
        assert closing.recorded_balance[Currency.CRC] == 9700
        assert closing.diff == {Currency.CRC: 300, Currency.USD: 0}

        assert len(result.created) == 1
        adjustment = result.created[0]
        assert adjustment.kind == MovementKind.SYSTEM_ADJUSTMENT
        assert adjustment.amount_credit == 300
        assert adjustment.type == MovementTypes.ADJUSTMENT_INCOME
        assert adjustment.provider_code == SystemIdentity.PROVIDER_CODE
        assert adjustment.manager == SystemIdentity.MANAGER
        assert adjustment.original_entry_id == closing.id
        assert adjustment.created_at == closing.created_at

        assert await _balance(service) == 10000
        ledger = await service.get_ledger(COMPANY)
        assert ledger.locked_until == closing.created_at

        stored = await service.closing_store.get(FUND_ID, closing.id)
        assert stored.state == ClosingState.COMMITTED

    @pytest.mark.asyncio
    async def test_shortage_per_currency(self, service: FundLedgerService, clock) -> None:
        await _seed(service, clock, crc=5000, usd=40)

        result = await service.commit_daily_closing(
            COMPANY,
            ClosingDraft(manager="Ana", counted={Currency.CRC: 4500, Currency.USD: 40}),
        )

        assert len(result.created) == 1
        adjustment = result.created[0]
        assert adjustment.currency == Currency.CRC
        assert adjustment.amount_debit == 500
        assert adjustment.type == MovementTypes.ADJUSTMENT_EXPENSE
        assert await _balance(service) == 4500
        assert await _balance(service, Currency.USD) == 40

    @pytest.mark.asyncio
    async def test_zero_diff_creates_informational(self, service: FundLedgerService, clock) -> None:
        """차액 없음 → 잔액에 영향 없는 정보 기록 1건"""
        await _seed(service, clock, crc=9700)

        result = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 9700})
        )

        assert len(result.created) == 1
        info = result.created[0]
        assert info.kind == MovementKind.SYSTEM_INFORMATIONAL
        assert info.type == SystemIdentity.INFORMATIONAL_TYPE
        assert info.delta == 0
        assert await _balance(service) == 9700

    @pytest.mark.asyncio
    async def test_breakdown_totals(self, service: FundLedgerService, clock) -> None:
        """권종 수량만 주면 합계를 실사 금액으로 사용, 비표준 권종은 경고"""
        await _seed(service, clock, crc=10000, usd=40)

        result = await service.commit_daily_closing(
            COMPANY,
            ClosingDraft(
                manager="Ana",
                breakdown={Currency.CRC: {5000: 2, 300: 1}, Currency.USD: {20: 2}},
            ),
        )

        assert result.closing.counted == {Currency.CRC: 10300, Currency.USD: 40}
        assert [m.amount_credit for m in result.created] == [300]
        assert any("CRC:300" in warning for warning in result.warnings)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "draft,field",
        [
            (ClosingDraft(manager=" ", counted={Currency.CRC: 1}), "manager"),
            (ClosingDraft(manager="Ana"), "counted"),
            (ClosingDraft(manager="Ana", counted={Currency.CRC: -1}), "counted.CRC"),
        ],
    )
    async def test_validation_before_write(
        self, service: FundLedgerService, draft: ClosingDraft, field: str
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.commit_daily_closing(COMPANY, draft)

        assert exc_info.value.field == field
        assert await service.list_closings(COMPANY) == []

    @pytest.mark.asyncio
    async def test_notifies_recipients(
        self, service: FundLedgerService, notifier: MockNotifier, clock
    ) -> None:
        await _seed(service, clock)

        await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 10000})
        )
        await service.drain()

        sent = notifier.get_by_recipient("gerencia@delifood.cr")
        assert len(sent) == 1
        assert "Sobrante de ₡300" in sent[0].message.body

    @pytest.mark.asyncio
    async def test_lock_advances_with_each_closing(self, service: FundLedgerService, clock) -> None:
        """잠금 시점은 가장 최근 마감 생성 시간"""
        first = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 0})
        )
        clock.advance(hours=1)
        second = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 0})
        )

        ledger = await service.get_ledger(COMPANY)
        assert ledger.locked_until == second.closing.created_at
        assert first.closing.created_at < ledger.locked_until

    @pytest.mark.asyncio
    async def test_persist_failure_discards_closing(
        self, service: FundLedgerService, clock, monkeypatch
    ) -> None:
        """조정 쓰기 실패 → 마감은 DISCARDED, 잔액/잠금 변화 없음"""
        await _seed(service, clock)

        async def failing_persist(change):
            raise PersistenceError("write_ledger", "disk full")

        monkeypatch.setattr(service.writer, "persist", failing_persist)

        with pytest.raises(PersistenceError):
            await service.commit_daily_closing(
                COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 10000})
            )

        closings = await service.list_closings(COMPANY)
        assert [c.state for c in closings] == [ClosingState.DISCARDED]
        assert await _balance(service) == 9700
        assert (await service.get_ledger(COMPANY)).locked_until is None


class TestEdit:
    """마감 수정 (조정 재계산)"""

    async def _committed(self, service: FundLedgerService, clock):
        await _seed(service, clock)
        result = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 10000})
        )
        clock.advance(minutes=30)
        return result

    @pytest.mark.asyncio
    async def test_retraction_removes_adjustment(self, service: FundLedgerService, clock) -> None:
        """차액이 0이 되면 조정 삭제 + 정보 기록 생성"""
        committed = await self._committed(service, clock)

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(counted={Currency.CRC: 9700})
        )

        assert [m.id for m in result.removed] == [committed.created[0].id]
        assert [m.kind for m in result.created] == [MovementKind.SYSTEM_INFORMATIONAL]
        assert result.closing.diff[Currency.CRC] == 0
        assert result.closing.recorded_balance[Currency.CRC] == 9700
        assert await _balance(service) == 9700

        resolution = result.closing.adjustment_resolution
        assert [r.amount for r in resolution.removed_adjustments] == [300]
        assert resolution.post_adjustment_balance[Currency.CRC] == 9700

    @pytest.mark.asyncio
    async def test_revise_to_shortage(self, service: FundLedgerService, clock) -> None:
        """+300 조정 → -200 조정으로 갱신 (같은 Movement)"""
        committed = await self._committed(service, clock)

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(counted={Currency.CRC: 9500}), None
        )

        assert result.created == ()
        assert len(result.updated) == 1
        revised = result.updated[0]
        assert revised.id == committed.created[0].id
        assert (revised.amount_credit, revised.amount_debit) == (0, 200)
        assert revised.type == MovementTypes.ADJUSTMENT_EXPENSE
        assert revised.is_audited
        assert await _balance(service) == 9500

    @pytest.mark.asyncio
    async def test_add_currency_adjustment(self, service: FundLedgerService, clock) -> None:
        committed = await self._committed(service, clock)

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(counted={Currency.USD: 15})
        )

        assert [(m.currency, m.amount_credit) for m in result.created] == [(Currency.USD, 15)]
        assert result.updated == ()
        assert await _balance(service) == 10000
        assert await _balance(service, Currency.USD) == 15

    @pytest.mark.asyncio
    async def test_counted_edit_drops_stale_breakdown(self, service: FundLedgerService, clock) -> None:
        """실사 금액만 수정하면 맞지 않게 된 통화의 권종 내역 제거, 다른 통화는 유지"""
        await _seed(service, clock, crc=10000, usd=40)
        committed = await service.commit_daily_closing(
            COMPANY,
            ClosingDraft(manager="Ana", breakdown={Currency.CRC: {5000: 2}, Currency.USD: {20: 2}}),
        )
        clock.advance(minutes=30)

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(counted={Currency.CRC: 9000})
        )

        assert result.closing.counted[Currency.CRC] == 9000
        assert Currency.CRC not in result.closing.breakdown
        assert result.closing.breakdown[Currency.USD] == {20: 2}
        stored = await service.closing_store.get(FUND_ID, committed.closing.id)
        assert not stored.breakdown.get(Currency.CRC)
        assert stored.breakdown[Currency.USD] == {20: 2}

    @pytest.mark.asyncio
    async def test_counted_edit_keeps_matching_breakdown(self, service: FundLedgerService, clock) -> None:
        await _seed(service, clock, crc=10000)
        committed = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", breakdown={Currency.CRC: {5000: 2}})
        )
        clock.advance(minutes=30)

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(counted={Currency.CRC: 10000, Currency.USD: 5})
        )

        assert result.closing.breakdown[Currency.CRC] == {5000: 2}

    @pytest.mark.asyncio
    async def test_edit_does_not_move_lock(self, service: FundLedgerService, clock) -> None:
        committed = await self._committed(service, clock)

        await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(notes="recontado")
        )

        ledger = await service.get_ledger(COMPANY)
        assert ledger.locked_until == committed.closing.created_at
        stored = await service.closing_store.get(FUND_ID, committed.closing.id)
        assert stored.notes == "recontado"

    @pytest.mark.asyncio
    async def test_recalculation_uses_live_balance(self, service: FundLedgerService, clock) -> None:
        """기준 잔액은 현재 잔액에서 이 마감의 조정분만 뺀 값"""
        committed = await self._committed(service, clock)
        await service.record_movement(
            COMPANY, MovementDraft(AccountKey.FONDO_GENERAL, Currency.CRC, "P001", amount_credit=1000)
        )

        result = await service.edit_daily_closing(
            COMPANY, committed.closing.id, ClosingPatch(manager="Luis")
        )

        assert result.closing.manager == "Luis"
        assert result.closing.recorded_balance[Currency.CRC] == 10700
        assert result.closing.diff[Currency.CRC] == -700
        assert [(m.amount_credit, m.amount_debit) for m in result.updated] == [(0, 700)]
        assert await _balance(service) == 10000

    @pytest.mark.asyncio
    async def test_unknown_closing(self, service: FundLedgerService) -> None:
        with pytest.raises(NotFoundError):
            await service.edit_daily_closing(COMPANY, "dc_0_000000", ClosingPatch(notes="x"))

    @pytest.mark.asyncio
    async def test_discarded_closing_not_editable(
        self, service: FundLedgerService, clock, monkeypatch
    ) -> None:
        async def failing_persist(change):
            raise PersistenceError("write_ledger", "disk full")

        monkeypatch.setattr(service.writer, "persist", failing_persist)
        with pytest.raises(PersistenceError):
            await service.commit_daily_closing(
                COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 1})
            )
        monkeypatch.undo()

        discarded = (await service.list_closings(COMPANY))[0]
        with pytest.raises(ValidationError):
            await service.edit_daily_closing(COMPANY, discarded.id, ClosingPatch(notes="x"))
