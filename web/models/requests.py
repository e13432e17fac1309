"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core.domain.models import ClosingDraft, ClosingPatch, MovementDraft
from core.types import AccountKey, Currency


class MovementCreateRequest(BaseModel):
    """Movement 등록 요청

    amount_credit / amount_debit 중 정확히 하나만 0보다 커야 함.
    """

    account_id: AccountKey = Field(default=AccountKey.FONDO_GENERAL, description="계정")
    currency: Currency = Field(default=Currency.CRC, description="통화")
    provider_code: str = Field(..., min_length=1, description="거래처 코드")
    amount_credit: int = Field(default=0, ge=0, description="입금액")
    amount_debit: int = Field(default=0, ge=0, description="출금액")
    invoice_number: str = Field(default="", description="송장 번호")
    type: str = Field(default="", description="Movement 유형 (비우면 거래처 유형)")
    manager: str = Field(default="", description="담당자 (비우면 요청자)")
    notes: str = Field(default="", description="메모")
    created_at: datetime | None = Field(default=None, description="오프라인 작성 시간")
    breakdown: dict[int, int] | None = Field(default=None, description="권종별 수량")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "account_id": "FondoGeneral",
                    "currency": "CRC",
                    "provider_code": "P001",
                    "amount_debit": 15000,
                    "invoice_number": "F-1024",
                    "manager": "maria",
                }
            ]
        }
    }

    def to_draft(self) -> MovementDraft:
        return MovementDraft(
            account_id=self.account_id,
            currency=self.currency,
            provider_code=self.provider_code,
            amount_credit=self.amount_credit,
            amount_debit=self.amount_debit,
            invoice_number=self.invoice_number,
            type=self.type,
            manager=self.manager,
            notes=self.notes,
            created_at=self.created_at,
            breakdown=self.breakdown,
        )


class MovementPatchRequest(BaseModel):
    """Movement 수정 요청 (보낸 필드만 변경)"""

    provider_code: str | None = None
    invoice_number: str | None = None
    type: str | None = None
    amount_credit: int | None = Field(default=None, ge=0)
    amount_debit: int | None = Field(default=None, ge=0)
    manager: str | None = None
    notes: str | None = None
    currency: Currency | None = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BalanceUpdateRequest(BaseModel):
    """초기 잔액 변경 / 현재 잔액 덮어쓰기 요청"""

    initial_balances: dict[Currency, int] | None = Field(default=None, description="통화별 초기 잔액")
    current_overrides: dict[Currency, int] | None = Field(default=None, description="통화별 현재 잔액")


class ClosingCreateRequest(BaseModel):
    """일일 마감 요청

    counted가 없는 통화는 breakdown(권종 → 수량) 합계로 계산.
    """

    manager: str = Field(default="", description="담당자")
    counted: dict[Currency, int] | None = Field(default=None, description="통화별 실사 금액")
    breakdown: dict[Currency, dict[int, int]] | None = Field(default=None, description="통화별 권종 수량")
    notes: str = Field(default="", description="메모")
    closing_date: datetime | None = Field(default=None, description="마감 대상 일시")
    account_id: AccountKey = Field(default=AccountKey.FONDO_GENERAL, description="실사 계정")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "manager": "maria",
                    "breakdown": {"CRC": {"10000": 1}, "USD": {"20": 2}},
                    "notes": "Cierre de caja",
                }
            ]
        }
    }

    def to_draft(self) -> ClosingDraft:
        return ClosingDraft(
            manager=self.manager,
            counted=self.counted,
            breakdown=self.breakdown,
            notes=self.notes,
            closing_date=self.closing_date,
            account_id=self.account_id,
        )


class ClosingPatchRequest(BaseModel):
    """일일 마감 수정 요청"""

    manager: str | None = None
    counted: dict[Currency, int] | None = None
    breakdown: dict[Currency, dict[int, int]] | None = None
    notes: str | None = None

    def to_patch(self) -> ClosingPatch:
        return ClosingPatch(
            manager=self.manager,
            counted=self.counted,
            breakdown=self.breakdown,
            notes=self.notes,
        )
