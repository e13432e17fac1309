"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core.domain.models import (
    AccountBalance,
    ClosingResult,
    DailyClosing,
    Movement,
    MutationResult,
    RunningBalance,
)
from core.ledger.query_planner import TimeWindow
from core.storage.movement_store import MigrationReport


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    version: str = Field(..., description="API 버전")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class ErrorResponse(BaseModel):
    """오류 응답 (발동한 제약 포함)"""

    error: str = Field(..., description="오류 종류")
    constraint: str = Field(..., description="발동한 제약")
    message: str = Field(..., description="설명")


class BalanceResponse(BaseModel):
    """계정 × 통화 잔액 응답"""

    account_id: str
    currency: str
    enabled: bool
    initial_balance: int
    current_balance: int

    @classmethod
    def from_domain(cls, balance: AccountBalance) -> "BalanceResponse":
        return cls(
            account_id=balance.account_id.value,
            currency=balance.currency.value,
            enabled=balance.enabled,
            initial_balance=balance.initial_balance,
            current_balance=balance.current_balance,
        )


class AuditEntryResponse(BaseModel):
    """감사 이력 항목"""

    at: datetime
    before: dict[str, Any]
    after: dict[str, Any]


class MovementResponse(BaseModel):
    """Movement 응답"""

    id: str
    created_at: datetime
    account_id: str
    currency: str
    provider_code: str
    invoice_number: str
    type: str
    amount_credit: int
    amount_debit: int
    delta: int
    manager: str
    notes: str
    kind: str
    is_audited: bool
    original_entry_id: str | None = None
    audit_history: list[AuditEntryResponse] = Field(default_factory=list)
    balance_before: int | None = Field(default=None, description="직전 잔액 (표시용)")
    balance_after: int | None = Field(default=None, description="직후 잔액 (표시용)")

    @classmethod
    def from_domain(
        cls,
        movement: Movement,
        running: RunningBalance | None = None,
    ) -> "MovementResponse":
        return cls(
            id=movement.id,
            created_at=movement.created_at,
            account_id=movement.account_id.value,
            currency=movement.currency.value,
            provider_code=movement.provider_code,
            invoice_number=movement.invoice_number,
            type=movement.type,
            amount_credit=movement.amount_credit,
            amount_debit=movement.amount_debit,
            delta=movement.delta,
            manager=movement.manager,
            notes=movement.notes,
            kind=movement.kind.value,
            is_audited=movement.is_audited,
            original_entry_id=movement.original_entry_id,
            audit_history=[
                AuditEntryResponse(at=e.at, before=e.before, after=e.after)
                for e in movement.audit_history
            ],
            balance_before=running.before if running else None,
            balance_after=running.after if running else None,
        )


class AuditLogEntryResponse(BaseModel):
    """권한 작업 감사 로그 항목 (삭제 등)"""

    action: str = Field(..., description="작업 (예: delete:admin)")
    actor: str
    created_at: datetime
    record: dict[str, Any] = Field(..., description="작업 시점의 Movement 레코드")

    @classmethod
    def from_domain(cls, entry: dict[str, Any]) -> "AuditLogEntryResponse":
        return cls(
            action=entry["action"],
            actor=entry["actor"],
            created_at=entry["created_at"],
            record=entry["record"],
        )


class WindowResponse(BaseModel):
    """조회 구간"""

    start: datetime
    end: datetime
    mode: str
    cache_key: str

    @classmethod
    def from_domain(cls, window: TimeWindow) -> "WindowResponse":
        return cls(
            start=window.start,
            end=window.end,
            mode=window.mode.value,
            cache_key=window.cache_key,
        )


class MovementListResponse(BaseModel):
    """Movement 목록 응답 (최신순)"""

    window: WindowResponse
    count: int
    items: list[MovementResponse]


class MutationResponse(BaseModel):
    """Movement/잔액 변경 응답"""

    status: str = Field(..., description="CONFIRMED / PENDING_CONFIRMATION")
    warning: str | None = None
    movement: MovementResponse | None = None
    balances: list[BalanceResponse]

    @classmethod
    def from_domain(cls, result: MutationResult) -> "MutationResponse":
        return cls(
            status=result.status.value,
            warning=result.warning,
            movement=MovementResponse.from_domain(result.movement) if result.movement else None,
            balances=[BalanceResponse.from_domain(b) for b in result.balances],
        )


class ClosingResponse(BaseModel):
    """일일 마감 응답"""

    id: str
    created_at: datetime
    closing_date: datetime
    account_id: str
    manager: str
    state: str
    counted: dict[str, int]
    recorded_balance: dict[str, int]
    diff: dict[str, int]
    breakdown: dict[str, dict[str, int]]
    notes: str
    adjustment_resolution: dict[str, Any] | None = None

    @classmethod
    def from_domain(cls, closing: DailyClosing) -> "ClosingResponse":
        resolution = closing.adjustment_resolution.to_record() if closing.adjustment_resolution else None
        return cls(
            id=closing.id,
            created_at=closing.created_at,
            closing_date=closing.closing_date,
            account_id=closing.account_id.value,
            manager=closing.manager,
            state=closing.state.value,
            counted={c.value: v for c, v in closing.counted.items()},
            recorded_balance={c.value: v for c, v in closing.recorded_balance.items()},
            diff={c.value: v for c, v in closing.diff.items()},
            breakdown={
                c.value: {str(d): n for d, n in counts.items()}
                for c, counts in closing.breakdown.items()
            },
            notes=closing.notes,
            adjustment_resolution=resolution or None,
        )


class ClosingResultResponse(BaseModel):
    """일일 마감 커밋/수정 응답"""

    status: str
    warnings: list[str] = Field(default_factory=list)
    closing: ClosingResponse
    created: list[MovementResponse] = Field(default_factory=list)
    updated: list[MovementResponse] = Field(default_factory=list)
    removed: list[MovementResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: ClosingResult) -> "ClosingResultResponse":
        return cls(
            status=result.status.value,
            warnings=list(result.warnings),
            closing=ClosingResponse.from_domain(result.closing),
            created=[MovementResponse.from_domain(m) for m in result.created],
            updated=[MovementResponse.from_domain(m) for m in result.updated],
            removed=[MovementResponse.from_domain(m) for m in result.removed],
        )


class MigrationResponse(BaseModel):
    """레거시 마이그레이션 결과"""

    fund_id: str
    total: int
    written: int
    chunks: int

    @classmethod
    def from_domain(cls, report: MigrationReport) -> "MigrationResponse":
        return cls(
            fund_id=report.fund_id,
            total=report.total,
            written=report.written,
            chunks=report.chunks,
        )
