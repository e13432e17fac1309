"""
FundLedgerService 통합 테스트

Movement 등록/수정/삭제, 잔액 설정, 잠금, 조회, 레거시 마이그레이션.
"""

import asyncio
import json
from dataclasses import replace
from datetime import date, timedelta

import pytest

from adapters.mock.notifier import MockNotifier
from adapters.models import Actor
from core.domain.errors import (
    AuditCapExceededError,
    ConcurrentEditError,
    LockedMovementError,
    NotFoundError,
    ValidationError,
)
from core.domain.models import ClosingDraft, MovementDraft
from core.ledger.normalizer import build_fund_id, empty_fund_ledger
from core.ledger.query_planner import resolve_window
from core.types import AccountKey, Currency, MutationKind, WriteStatus
from engine.service import FundLedgerService, validate_amounts, validate_category
from scripts.migrate_movements import import_document

COMPANY = "Delifood"
TODAY = resolve_window(selected_day=date(2024, 3, 5))
MARIA = Actor(name="maria")
ADMIN = Actor(name="jefe", role="admin")


def _credit(amount: int, provider: str = "P001", **kwargs) -> MovementDraft:
    return MovementDraft(
        account_id=AccountKey.FONDO_GENERAL,
        currency=kwargs.pop("currency", Currency.CRC),
        provider_code=provider,
        amount_credit=amount,
        **kwargs,
    )


def _debit(amount: int, provider: str = "P002", **kwargs) -> MovementDraft:
    return MovementDraft(
        account_id=AccountKey.FONDO_GENERAL,
        currency=kwargs.pop("currency", Currency.CRC),
        provider_code=provider,
        amount_debit=amount,
        **kwargs,
    )


async def _balance(service: FundLedgerService, currency: Currency = Currency.CRC) -> int:
    return await service.get_current_balance(COMPANY, AccountKey.FONDO_GENERAL, currency)


class TestValidationHelpers:
    """입력 검증 함수"""

    @pytest.mark.parametrize(
        "credit,debit",
        [(0, 0), (100, 100), (-5, 0), ("100", 0), (True, 0)],
    )
    def test_invalid_amounts(self, credit, debit) -> None:
        with pytest.raises(ValidationError):
            validate_amounts(credit, debit)

    def test_valid_amounts(self) -> None:
        assert validate_amounts(100.9, None) == (100, 0)
        assert validate_amounts(0, 50) == (0, 50)

    def test_category_direction(self) -> None:
        validate_category("VENTAS", 100, 0)
        validate_category("", 0, 100)
        with pytest.raises(ValidationError):
            validate_category("VENTAS", 0, 100)
        with pytest.raises(ValidationError):
            validate_category("PAGO BANCA", 100, 0)
        with pytest.raises(ValidationError):
            validate_category("CIERRE SIN DIFERENCIAS", 100, 0)


class TestRecordMovement:
    """Movement 등록"""

    @pytest.mark.asyncio
    async def test_record_credit(self, service: FundLedgerService) -> None:
        result = await service.record_movement(COMPANY, _credit(5000), MARIA)

        assert result.confirmed
        assert result.kind == MutationKind.CREATE
        assert result.warning is None
        movement = result.movement
        assert movement.id.startswith("1709650800000_FondoGeneral_")
        assert movement.type == "VENTAS"
        assert movement.manager == "maria"
        assert await _balance(service) == 5000
        assert {b.account_id for b in result.balances} == {AccountKey.FONDO_GENERAL}

    @pytest.mark.asyncio
    async def test_record_debit_notifies_provider(
        self, service: FundLedgerService, notifier: MockNotifier
    ) -> None:
        """출금 + 알림 이메일이 있는 거래처 → 알림 발송"""
        await service.record_movement(COMPANY, _credit(10000), MARIA)
        await service.record_movement(COMPANY, _debit(4000, invoice_number="F-1"), MARIA)
        await service.drain()

        assert await _balance(service) == 6000
        sent = notifier.get_by_recipient("pagos@distribuidora.cr")
        assert len(sent) == 1
        assert "F-1" in sent[0].message.body

    @pytest.mark.asyncio
    async def test_unknown_type_allows_both_directions(self, service: FundLedgerService) -> None:
        await service.record_movement(COMPANY, _credit(300, provider="P003"))
        await service.record_movement(COMPANY, _debit(100, provider="P003"))

        assert await _balance(service) == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "draft,field",
        [
            (_credit(100, provider=""), "provider_code"),
            (_credit(100, provider="AJUSTE_CIERRE"), "provider_code"),
            (_credit(0), "amount"),
            (_debit(100, provider="P001"), "amount_debit"),
            (_credit(100, provider="P002"), "amount_credit"),
        ],
    )
    async def test_validation_errors(
        self, service: FundLedgerService, draft: MovementDraft, field: str
    ) -> None:
        """검증 실패 시 아무것도 저장되지 않음"""
        with pytest.raises(ValidationError) as exc_info:
            await service.record_movement(COMPANY, draft)

        assert exc_info.value.field == field
        assert await service.movement_store.count(build_fund_id(COMPANY)) == 0

    @pytest.mark.asyncio
    async def test_disabled_currency_rejected(self, service: FundLedgerService) -> None:
        await service.fund_store.ensure(COMPANY)
        ledger, version = await service.fund_store.load_snapshot(COMPANY)
        disabled = replace(
            ledger,
            currencies=tuple(replace(c, enabled=c.code != Currency.USD) for c in ledger.currencies),
        )
        await service.fund_store.save(
            build_fund_id(COMPANY), disabled, updated_by="test", expected_version=version
        )

        with pytest.raises(ValidationError) as exc_info:
            await service.record_movement(COMPANY, _credit(10, currency=Currency.USD))
        assert exc_info.value.field == "currency"

    @pytest.mark.asyncio
    async def test_anonymous_actor(self, service: FundLedgerService) -> None:
        result = await service.record_movement(COMPANY, _credit(100))
        assert result.movement.manager == "anonimo"

    @pytest.mark.asyncio
    async def test_owner_id_document_keeps_fund_key(self, service: FundLedgerService, memory_db) -> None:
        """ownerId만 있는 레거시 문서도 회사 키(movements_<company>)로 계속 저장"""
        raw = {"ownerId": "owner-123", "metadata": {"currencies": {"CRC": {"currentBalance": 1000}}}}
        await memory_db.execute(
            """
            INSERT INTO fund_ledger (fund_id, company, document_json, version, updated_by, created_at, updated_at)
            VALUES (?, ?, ?, 1, ?, ?, ?)
            """,
            ("movements_Delifood", COMPANY, json.dumps(raw), "import", "2024-03-01", "2024-03-01"),
        )
        await memory_db.commit()

        result = await service.record_movement(COMPANY, _credit(500), MARIA)

        assert result.status == WriteStatus.CONFIRMED
        assert await _balance(service) == 1500
        assert await service.movement_store.count(build_fund_id(COMPANY)) == 1
        _, version = await service.fund_store.get_raw("movements_Delifood")
        assert version == 2
        assert await service.fund_store.get_raw("movements_owner-123") == (None, 0)


class TestEditMovement:
    """Movement 수정"""

    @pytest.mark.asyncio
    async def test_edit_amount_records_history(self, service: FundLedgerService) -> None:
        created = (await service.record_movement(COMPANY, _credit(5000), MARIA)).movement

        result = await service.edit_movement(COMPANY, created.id, {"amount_credit": 7000}, MARIA)

        assert result.confirmed
        assert result.movement.is_audited
        assert len(result.movement.audit_history) == 1
        entry = result.movement.audit_history[0]
        assert entry.before == {"amount_credit": 5000}
        assert entry.after == {"amount_credit": 7000}
        assert await _balance(service) == 7000

    @pytest.mark.asyncio
    async def test_currency_change_moves_balance(self, service: FundLedgerService) -> None:
        """통화 변경 → 이전 통화에서 빼고 새 통화에 더함"""
        created = (await service.record_movement(COMPANY, _credit(50))).movement

        await service.edit_movement(COMPANY, created.id, {"currency": "USD"})

        assert await _balance(service, Currency.CRC) == 0
        assert await _balance(service, Currency.USD) == 50

    @pytest.mark.asyncio
    async def test_audit_cap(self, service: FundLedgerService) -> None:
        """최대 5회 수정, 6번째는 거부"""
        created = (await service.record_movement(COMPANY, _credit(100))).movement
        for i in range(5):
            await service.edit_movement(COMPANY, created.id, {"notes": f"nota {i}"})

        with pytest.raises(AuditCapExceededError):
            await service.edit_movement(COMPANY, created.id, {"notes": "sexta"})

        stored = await service.get_movement(COMPANY, created.id)
        assert len(stored.audit_history) == 5
        assert stored.notes == "nota 4"

    @pytest.mark.asyncio
    async def test_cooldown_rejects_rapid_edit(self, service: FundLedgerService) -> None:
        created = (await service.record_movement(COMPANY, _credit(100))).movement
        service.guard.cooldown_sec = 60

        await service.edit_movement(COMPANY, created.id, {"notes": "uno"})
        with pytest.raises(ConcurrentEditError):
            await service.edit_movement(COMPANY, created.id, {"notes": "dos"})

    @pytest.mark.asyncio
    async def test_invalid_patch(self, service: FundLedgerService) -> None:
        created = (await service.record_movement(COMPANY, _credit(100))).movement

        with pytest.raises(ValidationError):
            await service.edit_movement(COMPANY, created.id, {"created_at": "2020-01-01"})
        with pytest.raises(ValidationError):
            await service.edit_movement(COMPANY, created.id, {"amount_debit": 50})
        with pytest.raises(ValidationError):
            await service.edit_movement(COMPANY, created.id, {"notes": created.notes})

        assert await _balance(service) == 100

    @pytest.mark.asyncio
    async def test_missing_movement(self, service: FundLedgerService) -> None:
        with pytest.raises(NotFoundError):
            await service.edit_movement(COMPANY, "nope", {"notes": "x"})


class TestDeleteMovement:
    """Movement 삭제"""

    @pytest.mark.asyncio
    async def test_delete_restores_balance_and_logs(self, service: FundLedgerService) -> None:
        created = (await service.record_movement(COMPANY, _credit(800))).movement

        result = await service.delete_movement(COMPANY, created.id, ADMIN)

        assert result.kind == MutationKind.DELETE
        assert await _balance(service) == 0
        log = await service.get_audit_log(COMPANY, created.id)
        assert [(e["action"], e["actor"]) for e in log] == [("delete:admin", "jefe")]

        with pytest.raises(NotFoundError):
            await service.delete_movement(COMPANY, created.id, ADMIN)


class TestLocking:
    """마감 잠금"""

    @pytest.mark.asyncio
    async def test_closed_period_is_locked(self, service: FundLedgerService, clock) -> None:
        """마감 시점 이전(포함) Movement는 수정/삭제/소급 등록 불가"""
        before = (await service.record_movement(COMPANY, _credit(500))).movement
        await service.commit_daily_closing(COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 500}))
        clock.advance(minutes=5)

        with pytest.raises(LockedMovementError) as exc_info:
            await service.edit_movement(COMPANY, before.id, {"notes": "tarde"})
        assert exc_info.value.reason == LockedMovementError.REASON_CLOSED

        with pytest.raises(LockedMovementError):
            await service.delete_movement(COMPANY, before.id, ADMIN)

        with pytest.raises(LockedMovementError):
            await service.record_movement(
                COMPANY, _credit(10, created_at=clock.now - timedelta(minutes=10))
            )

        after = (await service.record_movement(COMPANY, _credit(20))).movement
        await service.edit_movement(COMPANY, after.id, {"notes": "ok"})
        assert await _balance(service) == 520

    @pytest.mark.asyncio
    async def test_system_movement_protected(self, service: FundLedgerService, clock) -> None:
        result = await service.commit_daily_closing(
            COMPANY, ClosingDraft(manager="Ana", counted={Currency.CRC: 300})
        )
        adjustment = result.created[0]
        clock.advance(minutes=5)

        with pytest.raises(LockedMovementError) as exc_info:
            await service.delete_movement(COMPANY, adjustment.id, ADMIN)
        assert exc_info.value.reason == LockedMovementError.REASON_SYSTEM


class TestBalances:
    """잔액 설정 / 표시용 잔액"""

    @pytest.mark.asyncio
    async def test_initial_balance_shifts_current(self, service: FundLedgerService) -> None:
        await service.record_movement(COMPANY, _credit(200))

        await service.update_balances(
            COMPANY, AccountKey.FONDO_GENERAL, initial_balances={Currency.CRC: 1000}
        )
        ledger = await service.get_ledger(COMPANY)
        balance = ledger.get_balance(AccountKey.FONDO_GENERAL, Currency.CRC)

        assert balance.initial_balance == 1000
        assert balance.current_balance == 1200

    @pytest.mark.asyncio
    async def test_current_override(self, service: FundLedgerService) -> None:
        result = await service.update_balances(
            COMPANY, AccountKey.BCR, current_overrides={Currency.USD: 75}
        )

        assert result.kind is None
        assert {b.account_id for b in result.balances} == {AccountKey.BCR}
        assert await service.get_current_balance(COMPANY, AccountKey.BCR, Currency.USD) == 75
        assert await _balance(service, Currency.USD) == 0

    @pytest.mark.asyncio
    async def test_non_numeric_balance_rejected(self, service: FundLedgerService) -> None:
        with pytest.raises(ValidationError):
            await service.update_balances(
                COMPANY, AccountKey.BCR, initial_balances={Currency.CRC: "mil"}
            )

    @pytest.mark.asyncio
    async def test_running_balances(self, service: FundLedgerService, clock) -> None:
        """현재 잔액에서 거슬러 올라간 직전/직후 잔액"""
        first = (await service.record_movement(COMPANY, _credit(1000))).movement
        clock.advance(minutes=1)
        second = (await service.record_movement(COMPANY, _debit(300))).movement

        movements = await service.list_movements(COMPANY, TODAY)
        running = await service.running_balances(
            COMPANY, AccountKey.FONDO_GENERAL, Currency.CRC, movements
        )

        assert [m.id for m in movements] == [second.id, first.id]
        assert (running[second.id].before, running[second.id].after) == (1000, 700)
        assert (running[first.id].before, running[first.id].after) == (0, 1000)


class TestListMovements:
    """Movement 조회"""

    @pytest.mark.asyncio
    async def test_window_and_account_filter(self, service: FundLedgerService, clock) -> None:
        await service.record_movement(COMPANY, _credit(100))
        await service.record_movement(
            COMPANY,
            MovementDraft(AccountKey.BCR, Currency.CRC, "P001", amount_credit=50),
        )
        clock.advance(days=1)
        await service.record_movement(COMPANY, _credit(70))

        today = await service.list_movements(COMPANY, TODAY)
        bcr_only = await service.list_movements(COMPANY, TODAY, AccountKey.BCR)
        both_days = await service.list_movements(
            COMPANY, resolve_window(from_date=date(2024, 3, 5), to_date=date(2024, 3, 6))
        )

        assert len(today) == 2
        assert [m.account_id for m in bcr_only] == [AccountKey.BCR]
        assert len(both_days) == 3

    @pytest.mark.asyncio
    async def test_cache_reflects_writes(self, service: FundLedgerService) -> None:
        """캐시된 구간에도 새 Movement 반영"""
        assert await service.list_movements(COMPANY, TODAY) == []

        created = (await service.record_movement(COMPANY, _credit(100))).movement

        assert [m.id for m in await service.list_movements(COMPANY, TODAY)] == [created.id]


class TestPendingConfirmation:
    @pytest.mark.asyncio
    async def test_slow_write_returns_warning(self, service: FundLedgerService, monkeypatch) -> None:
        """확인 지연 → 경고 포함 결과, 이후 쓰기는 대기 후 진행"""
        original = service.movement_store.upsert

        async def slow_upsert(fund_id, movement):
            await asyncio.sleep(0.05)
            await original(fund_id, movement)

        monkeypatch.setattr(service.movement_store, "upsert", slow_upsert)
        service.writer.confirm_timeout = 0.001

        result = await service.record_movement(COMPANY, _credit(100))

        assert result.status == WriteStatus.PENDING_CONFIRMATION
        assert result.warning is not None

        await service.writer.settle(COMPANY)
        assert await _balance(service) == 100

    @pytest.mark.asyncio
    async def test_drain_waits_pending_writes(self, service: FundLedgerService, monkeypatch) -> None:
        """종료(drain) 전 확인 대기 쓰기가 모두 끝남"""
        original = service.movement_store.upsert

        async def slow_upsert(fund_id, movement):
            await asyncio.sleep(0.05)
            await original(fund_id, movement)

        monkeypatch.setattr(service.movement_store, "upsert", slow_upsert)
        service.writer.confirm_timeout = 0.001

        result = await service.record_movement(COMPANY, _credit(100))
        assert result.status == WriteStatus.PENDING_CONFIRMATION

        await service.drain()
        await asyncio.sleep(0)

        assert service.writer.pending_count() == 0
        assert await service.movement_store.count(build_fund_id(COMPANY)) == 1
        assert await _balance(service) == 100


class TestMigration:
    """레거시 Movement 마이그레이션"""

    @pytest.mark.asyncio
    async def test_migrate_moves_operations(self, service: FundLedgerService) -> None:
        legacy = (
            {"id": "1709650800000_FondoGeneral_aaaaaa", "accountId": "FondoGeneral", "currency": "CRC", "amountIngreso": 100},
            {"accountId": "FondoGeneral", "currency": "CRC", "amountEgreso": 40, "createdAt": "2024-03-05T16:00:00Z"},
            {"accountId": "BN", "currency": "USD", "amountIngreso": 5, "createdAt": "2024-03-05T17:00:00Z"},
        )
        await service.fund_store.save(
            build_fund_id(COMPANY),
            replace(empty_fund_ledger(COMPANY), operations=legacy),
            updated_by="import",
        )

        report = await service.migrate_legacy_movements(COMPANY, MARIA)
        again = await service.migrate_legacy_movements(COMPANY, MARIA)

        assert (report.total, report.written, report.chunks) == (3, 3, 2)
        assert again.total == 0
        assert await service.movement_store.count(build_fund_id(COMPANY)) == 3
        assert (await service.get_ledger(COMPANY)).operations == ()

    @pytest.mark.asyncio
    async def test_import_owner_document_then_migrate(self, service: FundLedgerService, temp_dir) -> None:
        """ownerId 레거시 문서 import + 마이그레이션 → 회사 키 문서만 사용"""
        export = temp_dir / "delifood.json"
        export.write_text(
            json.dumps(
                {
                    "ownerId": "owner-123",
                    "metadata": {"currencies": {"CRC": {"currentBalance": 1000}}},
                    "accounts": {
                        "FondoGeneral": {"CRC": {"movements": [{"id": "a", "amountIngreso": 10}]}}
                    },
                }
            ),
            encoding="utf-8",
        )

        imported = await import_document(service, COMPANY, export)
        report = await service.migrate_legacy_movements(COMPANY, MARIA)

        assert imported == report.total == 1
        assert await service.movement_store.count(build_fund_id(COMPANY)) == 1
        assert await service.fund_store.get_raw(build_fund_id("owner-123")) == (None, 0)
        assert (await service.get_ledger(COMPANY)).operations == ()
        assert await _balance(service) == 1000
