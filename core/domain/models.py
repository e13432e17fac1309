"""
도메인 모델

자금(Fund) 잔액 문서, Movement, 감사 이력, 일일 마감(DailyClosing) 모델.
모든 금액은 int (최소 통화 단위, 소수점 이하 절사).

저장 레코드(to_record/from_record)는 원격 문서 형식(camelCase)을 사용하고,
Python 객체는 snake_case 필드를 사용한다.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from core.constants import SystemIdentity
from core.domain.state_machines import ClosingState
from core.types import (
    ACCOUNT_KEYS,
    CURRENCY_KEYS,
    AccountKey,
    Currency,
    MovementKind,
    MutationKind,
    WriteStatus,
    parse_account_key,
    parse_currency,
)
from core.utils.idempotency import parse_movement_timestamp
from core.utils.timezone import parse_datetime, to_utc_iso, utc_from_timestamp_ms

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =========================================================================
# 값 정규화 헬퍼
# =========================================================================


def sanitize_money(value: Any) -> int:
    """금액 정규화 (0 방향 절사, 해석 불가 시 0)

    Example:
        >>> sanitize_money("1234.99")
        1234
        >>> sanitize_money(-10.7)
        -10
        >>> sanitize_money("abc")
        0
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0
        return int(parsed) if math.isfinite(parsed) else 0
    return 0


def coerce_enabled(value: Any) -> bool:
    """enabled 플래그 정규화 (없으면 True)"""
    if value is None:
        return True
    return bool(value)


def sanitize_breakdown(raw: Any) -> dict[int, int]:
    """권종별 수량 정규화

    숫자로 해석되지 않는 권종, 0 이하 수량은 제거.
    """
    if not isinstance(raw, dict):
        return {}

    result: dict[int, int] = {}
    for key, count in raw.items():
        try:
            denomination = float(key)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(denomination):
            continue
        quantity = sanitize_money(count)
        if quantity > 0:
            result[int(denomination)] = quantity
    return result


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


# 감사 대상 필드: Python 필드명 → 저장 레코드 키
AUDIT_FIELD_KEYS: dict[str, str] = {
    "provider_code": "providerCode",
    "invoice_number": "invoiceNumber",
    "type": "type",
    "amount_credit": "amountCredit",
    "amount_debit": "amountDebit",
    "manager": "manager",
    "notes": "notes",
    "currency": "currency",
}

# 레거시 레코드 키 별칭
_LEGACY_FIELD_ALIASES: dict[str, str] = {
    "amountIngreso": "amount_credit",
    "amountEgreso": "amount_debit",
}

_RECORD_KEY_TO_FIELD: dict[str, str] = {
    **{record_key: name for name, record_key in AUDIT_FIELD_KEYS.items()},
    **{name: name for name in AUDIT_FIELD_KEYS},
    **_LEGACY_FIELD_ALIASES,
}


def _audit_value(name: str, value: Any) -> Any:
    if name in ("amount_credit", "amount_debit"):
        return sanitize_money(value)
    if name == "currency":
        parsed = parse_currency(value)
        return parsed.value if parsed else value
    return value if value is None or isinstance(value, str) else str(value)


# =========================================================================
# 감사 이력
# =========================================================================


@dataclass(frozen=True)
class AuditHistoryEntry:
    """감사 이력 항목

    before/after에는 변경된 필드만 존재.

    Attributes:
        at: 변경 시간
        before: 변경 전 값 (필드명 → 값)
        after: 변경 후 값 (필드명 → 값)
    """

    at: datetime
    before: dict[str, Any]
    after: dict[str, Any]

    def to_record(self) -> dict[str, Any]:
        return {
            "at": to_utc_iso(self.at),
            "before": {AUDIT_FIELD_KEYS.get(k, k): v for k, v in self.before.items()},
            "after": {AUDIT_FIELD_KEYS.get(k, k): v for k, v in self.after.items()},
        }

    @classmethod
    def from_record(
        cls,
        raw: Any,
        fallback_at: datetime | None = None,
    ) -> "AuditHistoryEntry | None":
        """저장 레코드 → AuditHistoryEntry (형식이 잘못되면 None)"""
        if not isinstance(raw, dict):
            return None
        before = raw.get("before")
        after = raw.get("after")
        if not isinstance(before, dict) or not isinstance(after, dict):
            return None

        at = parse_datetime(raw.get("at")) or fallback_at or EPOCH
        return cls(
            at=at,
            before=_decode_audit_side(before),
            after=_decode_audit_side(after),
        )


def _decode_audit_side(raw: dict[str, Any]) -> dict[str, Any]:
    decoded: dict[str, Any] = {}
    for key, value in raw.items():
        name = _RECORD_KEY_TO_FIELD.get(key)
        if name is None:
            continue
        decoded[name] = _audit_value(name, value)
    return decoded


def decode_audit_history(
    raw: dict[str, Any],
    fallback_at: datetime | None = None,
) -> tuple[AuditHistoryEntry, ...]:
    """Movement 레코드에서 감사 이력 추출

    지원 형식:
    - auditHistory: [{at, before, after}, ...]
    - auditDetails (레거시 JSON 문자열): {"history": [...]} 또는 {"at", "before", "after"}
    """
    source: Any = raw.get("auditHistory")

    if source is None and "auditDetails" in raw:
        details = raw.get("auditDetails")
        if isinstance(details, str) and details.strip():
            try:
                details = json.loads(details)
            except ValueError:
                details = None
        if isinstance(details, dict):
            if isinstance(details.get("history"), list):
                source = details["history"]
            elif "before" in details and "after" in details:
                source = [details]

    if not isinstance(source, list):
        return ()

    entries = [AuditHistoryEntry.from_record(item, fallback_at) for item in source]
    return tuple(sorted((e for e in entries if e is not None), key=lambda e: e.at))


# =========================================================================
# Movement
# =========================================================================


@dataclass(frozen=True)
class Movement:
    """자금 Movement (단일 입금/출금)

    amount_credit/amount_debit 중 정확히 하나만 0이 아님.
    (차액 없는 마감 정보 기록만 예외: 둘 다 0)

    Attributes:
        id: 생성 시간 + 계정 기반 ID (정렬 = 시간순)
        created_at: 생성 시간 (UTC)
        account_id: 계정
        currency: 통화
        provider_code: 거래처 코드
        invoice_number: 송장 번호
        type: Movement 유형 (VENTAS, GASTOS VARIOS 등)
        amount_credit: 입금액
        amount_debit: 출금액
        manager: 담당자
        notes: 메모
        is_audited: 수정 이력 존재 여부
        original_entry_id: 연결된 DailyClosing ID (조정 Movement)
        audit_history: 감사 이력 (최대 5건)
        breakdown: 권종별 수량
        kind: ORDINARY / SYSTEM_ADJUSTMENT / SYSTEM_INFORMATIONAL
    """

    id: str
    created_at: datetime
    account_id: AccountKey
    currency: Currency
    provider_code: str = ""
    invoice_number: str = ""
    type: str = ""
    amount_credit: int = 0
    amount_debit: int = 0
    manager: str = ""
    notes: str = ""
    is_audited: bool = False
    original_entry_id: str | None = None
    audit_history: tuple[AuditHistoryEntry, ...] = ()
    breakdown: dict[int, int] | None = None
    kind: MovementKind = MovementKind.ORDINARY

    @property
    def delta(self) -> int:
        """잔액 기여분 (입금 - 출금). 정보 기록은 항상 0"""
        if self.kind == MovementKind.SYSTEM_INFORMATIONAL:
            return 0
        return self.amount_credit - self.amount_debit

    @property
    def is_system(self) -> bool:
        """마감 조정 소유 Movement 여부"""
        return self.kind != MovementKind.ORDINARY

    def audited_values(self) -> dict[str, Any]:
        """감사 대상 필드 값"""
        return {
            name: (getattr(self, name).value if name == "currency" else getattr(self, name))
            for name in AUDIT_FIELD_KEYS
        }

    def to_record(self) -> dict[str, Any]:
        """저장 레코드 (camelCase)"""
        record: dict[str, Any] = {
            "id": self.id,
            "createdAt": to_utc_iso(self.created_at),
            "accountId": self.account_id.value,
            "currency": self.currency.value,
            "providerCode": self.provider_code,
            "invoiceNumber": self.invoice_number,
            "type": self.type,
            "amountCredit": self.amount_credit,
            "amountDebit": self.amount_debit,
            "manager": self.manager,
            "notes": self.notes,
            "isAudited": self.is_audited,
            "kind": self.kind.value,
        }
        if self.original_entry_id:
            record["originalEntryId"] = self.original_entry_id
        if self.audit_history:
            record["auditHistory"] = [entry.to_record() for entry in self.audit_history]
        if self.breakdown:
            record["breakdown"] = {str(k): v for k, v in self.breakdown.items()}
        return record

    @classmethod
    def from_record(
        cls,
        raw: dict[str, Any],
        movement_id: str | None = None,
    ) -> "Movement":
        """저장/레거시 레코드 → Movement

        레거시 필드(amountIngreso/amountEgreso, auditDetails)도 해석.
        kind가 없는 레거시 레코드는 여기서 한 번만 시스템 거래처 코드로 판별.

        Raises:
            ValueError: ID를 결정할 수 없는 경우
        """
        resolved_id = movement_id or _text(raw.get("id"))
        if not resolved_id:
            raise ValueError("movement id is required")

        created_at = parse_datetime(raw.get("createdAt", raw.get("created_at")))
        if created_at is None:
            ts_ms = parse_movement_timestamp(resolved_id)
            created_at = utc_from_timestamp_ms(ts_ms) if ts_ms is not None else EPOCH

        credit = sanitize_money(raw.get("amountCredit", raw.get("amountIngreso")))
        debit = sanitize_money(raw.get("amountDebit", raw.get("amountEgreso")))
        provider_code = _text(raw.get("providerCode"))

        kind_raw = raw.get("kind")
        try:
            kind = MovementKind(kind_raw) if kind_raw else None
        except ValueError:
            kind = None
        if kind is None:
            if provider_code == SystemIdentity.PROVIDER_CODE:
                kind = (
                    MovementKind.SYSTEM_INFORMATIONAL
                    if credit == 0 and debit == 0
                    else MovementKind.SYSTEM_ADJUSTMENT
                )
            else:
                kind = MovementKind.ORDINARY

        history = decode_audit_history(raw, fallback_at=created_at)
        breakdown = sanitize_breakdown(raw.get("breakdown"))
        original_entry_id = _text(raw.get("originalEntryId")) or None

        return cls(
            id=resolved_id,
            created_at=created_at,
            account_id=parse_account_key(raw.get("accountId")) or AccountKey.FONDO_GENERAL,
            currency=parse_currency(raw.get("currency")) or Currency.CRC,
            provider_code=provider_code,
            invoice_number=_text(raw.get("invoiceNumber")),
            type=_text(raw.get("type")),
            amount_credit=credit,
            amount_debit=debit,
            manager=_text(raw.get("manager")),
            notes=_text(raw.get("notes")),
            is_audited=bool(raw.get("isAudited")) or bool(history),
            original_entry_id=original_entry_id,
            audit_history=history,
            breakdown=breakdown or None,
            kind=kind,
        )


# =========================================================================
# 잔액 문서 (FundLedger)
# =========================================================================


@dataclass(frozen=True)
class AccountConfiguration:
    """계정 설정"""

    id: AccountKey
    label: str
    supported_currencies: tuple[Currency, ...] = CURRENCY_KEYS


@dataclass(frozen=True)
class CurrencyConfiguration:
    """통화 설정"""

    code: Currency
    enabled: bool = True


@dataclass(frozen=True)
class AccountBalance:
    """계정 × 통화 잔액

    Attributes:
        account_id: 계정
        currency: 통화
        enabled: 사용 여부
        initial_balance: 초기 잔액 (운영자 설정)
        current_balance: 현재 잔액 (delta로만 변경)
        extra: 해석하지 않는 추가 필드 (보존)
    """

    account_id: AccountKey
    currency: Currency
    enabled: bool = True
    initial_balance: int = 0
    current_balance: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[AccountKey, Currency]:
        return (self.account_id, self.currency)

    def to_record(self) -> dict[str, Any]:
        return {
            **self.extra,
            "accountId": self.account_id.value,
            "currency": self.currency.value,
            "enabled": self.enabled,
            "initialBalance": self.initial_balance,
            "currentBalance": self.current_balance,
        }


@dataclass(frozen=True)
class FundLedger:
    """회사(테넌트)별 자금 잔액 문서

    balances는 항상 계정 × 통화 전체 조합을 ACCOUNT_KEYS × CURRENCY_KEYS 순서로 포함.
    operations는 아직 마이그레이션되지 않은 레거시 Movement 레코드.
    """

    company: str
    accounts: tuple[AccountConfiguration, ...]
    currencies: tuple[CurrencyConfiguration, ...]
    balances: tuple[AccountBalance, ...]
    updated_at: datetime
    locked_until: datetime | None = None
    operations: tuple[dict[str, Any], ...] = ()

    def get_balance(self, account_id: AccountKey, currency: Currency) -> AccountBalance:
        """계정 × 통화 잔액 조회

        Raises:
            KeyError: 계정/통화 조합이 없는 경우 (정규화된 문서에서는 발생하지 않음)
        """
        for balance in self.balances:
            if balance.account_id == account_id and balance.currency == currency:
                return balance
        raise KeyError(f"{account_id.value}_{currency.value}")

    def supports(self, account_id: AccountKey, currency: Currency) -> bool:
        """해당 계정에서 통화 사용 가능 여부"""
        account = next((a for a in self.accounts if a.id == account_id), None)
        if account is None or currency not in account.supported_currencies:
            return False
        currency_config = next((c for c in self.currencies if c.code == currency), None)
        if currency_config is not None and not currency_config.enabled:
            return False
        return self.get_balance(account_id, currency).enabled

    def is_locked(self, created_at: datetime) -> bool:
        """잠금 시점 이전(포함) Movement 여부"""
        return self.locked_until is not None and created_at <= self.locked_until

    def to_document(self) -> dict[str, Any]:
        """정규 문서 형식"""
        state: dict[str, Any] = {
            "balancesByAccount": [balance.to_record() for balance in self.balances],
            "updatedAt": to_utc_iso(self.updated_at),
        }
        if self.locked_until is not None:
            state["lockedUntil"] = to_utc_iso(self.locked_until)

        return {
            "company": self.company,
            "configuration": {
                "accounts": [
                    {
                        "id": account.id.value,
                        "label": account.label,
                        "supportedCurrencies": [c.value for c in account.supported_currencies],
                    }
                    for account in self.accounts
                ],
                "currencies": [
                    {"code": c.code.value, "enabled": c.enabled} for c in self.currencies
                ],
            },
            "operations": {"movements": [dict(m) for m in self.operations]},
            "state": state,
        }


def balance_grid() -> list[tuple[AccountKey, Currency]]:
    """계정 × 통화 전체 조합 (정렬 순서 고정)"""
    return [(account, currency) for account in ACCOUNT_KEYS for currency in CURRENCY_KEYS]


# =========================================================================
# 일일 마감 (DailyClosing)
# =========================================================================


@dataclass(frozen=True)
class AdjustmentRecord:
    """마감 수정 시 제거/갱신된 조정 Movement 요약"""

    id: str
    currency: Currency
    amount: int
    amount_credit: int = 0
    amount_debit: int = 0
    manager: str = ""
    created_at: datetime | None = None

    @classmethod
    def from_movement(cls, movement: Movement) -> "AdjustmentRecord":
        return cls(
            id=movement.id,
            currency=movement.currency,
            amount=movement.delta,
            amount_credit=movement.amount_credit,
            amount_debit=movement.amount_debit,
            manager=movement.manager,
            created_at=movement.created_at,
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "currency": self.currency.value,
            "amount": self.amount,
            "amountCredit": self.amount_credit,
            "amountDebit": self.amount_debit,
        }
        if self.manager:
            record["manager"] = self.manager
        if self.created_at is not None:
            record["createdAt"] = to_utc_iso(self.created_at)
        return record

    @classmethod
    def from_record(cls, raw: Any) -> "AdjustmentRecord | None":
        if not isinstance(raw, dict):
            return None
        currency = parse_currency(raw.get("currency"))
        if currency is None:
            return None
        credit = sanitize_money(raw.get("amountCredit", raw.get("amountIngreso")))
        debit = sanitize_money(raw.get("amountDebit", raw.get("amountEgreso")))
        amount = sanitize_money(raw["amount"]) if "amount" in raw else credit - debit
        return cls(
            id=_text(raw.get("id")),
            currency=currency,
            amount=amount,
            amount_credit=credit,
            amount_debit=debit,
            manager=_text(raw.get("manager")),
            created_at=parse_datetime(raw.get("createdAt")),
        )


@dataclass(frozen=True)
class AdjustmentResolution:
    """마감 수정 후 조정 처리 결과 (감사 표시용)"""

    removed_adjustments: tuple[AdjustmentRecord, ...] = ()
    updated_adjustments: tuple[AdjustmentRecord, ...] = ()
    note: str | None = None
    post_adjustment_balance: dict[Currency, int] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        if self.removed_adjustments:
            record["removedAdjustments"] = [a.to_record() for a in self.removed_adjustments]
        if self.updated_adjustments:
            record["updatedAdjustments"] = [a.to_record() for a in self.updated_adjustments]
        if self.note:
            record["note"] = self.note
        for currency, amount in self.post_adjustment_balance.items():
            record[f"postAdjustmentBalance{currency.value}"] = amount
        return record

    @classmethod
    def from_record(cls, raw: Any) -> "AdjustmentResolution | None":
        if not isinstance(raw, dict):
            return None

        def records(key: str) -> tuple[AdjustmentRecord, ...]:
            items = raw.get(key)
            if not isinstance(items, list):
                return ()
            parsed = (AdjustmentRecord.from_record(item) for item in items)
            return tuple(p for p in parsed if p is not None)

        post: dict[Currency, int] = {}
        for currency in CURRENCY_KEYS:
            key = f"postAdjustmentBalance{currency.value}"
            if raw.get(key) is not None:
                post[currency] = sanitize_money(raw[key])

        note = _text(raw.get("note")) or None
        resolution = cls(
            removed_adjustments=records("removedAdjustments"),
            updated_adjustments=records("updatedAdjustments"),
            note=note,
            post_adjustment_balance=post,
        )
        if resolution == cls():
            return None
        return resolution


@dataclass(frozen=True)
class DailyClosing:
    """일일 마감 (현금 실사)

    Attributes:
        id: 마감 ID (dc_...)
        created_at: 생성 시간 (잠금 기준)
        closing_date: 마감 대상 일시
        account_id: 실사 대상 계정
        manager: 담당자
        counted: 통화별 실사 금액
        recorded_balance: 통화별 Ledger 잔액 (마감 시점, 조정 전)
        diff: 통화별 차액 (counted - recorded)
        notes: 메모
        breakdown: 통화별 권종 수량
        adjustment_resolution: 수정 후 조정 처리 결과
        state: DRAFT / COMMITTED
    """

    id: str
    created_at: datetime
    closing_date: datetime
    account_id: AccountKey = AccountKey.FONDO_GENERAL
    manager: str = ""
    counted: dict[Currency, int] = field(default_factory=dict)
    recorded_balance: dict[Currency, int] = field(default_factory=dict)
    diff: dict[Currency, int] = field(default_factory=dict)
    notes: str = ""
    breakdown: dict[Currency, dict[int, int]] = field(default_factory=dict)
    adjustment_resolution: AdjustmentResolution | None = None
    state: ClosingState = ClosingState.DRAFT

    @property
    def has_differences(self) -> bool:
        return any(value != 0 for value in self.diff.values())

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "createdAt": to_utc_iso(self.created_at),
            "closingDate": to_utc_iso(self.closing_date),
            "accountId": self.account_id.value,
            "manager": self.manager,
            "notes": self.notes,
            "state": self.state.value,
        }
        for currency in CURRENCY_KEYS:
            code = currency.value
            record[f"total{code}"] = self.counted.get(currency, 0)
            record[f"recordedBalance{code}"] = self.recorded_balance.get(currency, 0)
            record[f"diff{code}"] = self.diff.get(currency, 0)
            record[f"breakdown{code}"] = {
                str(k): v for k, v in self.breakdown.get(currency, {}).items()
            }
        if self.adjustment_resolution is not None:
            resolution = self.adjustment_resolution.to_record()
            if resolution:
                record["adjustmentResolution"] = resolution
        return record

    @classmethod
    def from_record(cls, raw: Any) -> "DailyClosing | None":
        """저장 레코드 → DailyClosing (형식이 잘못되면 None)

        금액은 절사, 권종은 정규화, 조정 결과는 잘못된 항목만 제외.
        """
        if not isinstance(raw, dict):
            return None
        closing_id = _text(raw.get("id"))
        if not closing_id:
            return None

        closing_date = parse_datetime(raw.get("closingDate")) or EPOCH
        created_at = parse_datetime(raw.get("createdAt")) or closing_date

        try:
            state = ClosingState(raw.get("state") or ClosingState.COMMITTED.value)
        except ValueError:
            state = ClosingState.COMMITTED

        counted: dict[Currency, int] = {}
        recorded: dict[Currency, int] = {}
        diff: dict[Currency, int] = {}
        breakdown: dict[Currency, dict[int, int]] = {}
        for currency in CURRENCY_KEYS:
            code = currency.value
            counted[currency] = sanitize_money(raw.get(f"total{code}"))
            recorded[currency] = sanitize_money(raw.get(f"recordedBalance{code}"))
            diff[currency] = sanitize_money(raw.get(f"diff{code}"))
            breakdown[currency] = sanitize_breakdown(raw.get(f"breakdown{code}"))

        return cls(
            id=closing_id,
            created_at=created_at,
            closing_date=closing_date,
            account_id=parse_account_key(raw.get("accountId")) or AccountKey.FONDO_GENERAL,
            manager=_text(raw.get("manager")),
            counted=counted,
            recorded_balance=recorded,
            diff=diff,
            notes=_text(raw.get("notes")),
            breakdown=breakdown,
            adjustment_resolution=AdjustmentResolution.from_record(raw.get("adjustmentResolution")),
            state=state,
        )


# =========================================================================
# 입력 / 결과 모델
# =========================================================================


@dataclass(frozen=True)
class MovementDraft:
    """신규 Movement 입력

    created_at을 지정하면 오프라인 작성분으로 간주 (잠금 검사 대상).
    type이 비어 있으면 거래처 디렉토리의 유형을 사용.
    """

    account_id: AccountKey
    currency: Currency
    provider_code: str
    amount_credit: int = 0
    amount_debit: int = 0
    invoice_number: str = ""
    type: str = ""
    manager: str = ""
    notes: str = ""
    created_at: datetime | None = None
    breakdown: dict[int, int] | None = None


@dataclass(frozen=True)
class ClosingDraft:
    """일일 마감 입력

    counted가 없으면 breakdown(권종 × 수량) 합계로 계산.
    """

    manager: str
    counted: dict[Currency, int] | None = None
    breakdown: dict[Currency, dict[int, int]] | None = None
    notes: str = ""
    closing_date: datetime | None = None
    account_id: AccountKey = AccountKey.FONDO_GENERAL


@dataclass(frozen=True)
class ClosingPatch:
    """일일 마감 수정 입력 (None = 변경 없음)"""

    manager: str | None = None
    counted: dict[Currency, int] | None = None
    breakdown: dict[Currency, dict[int, int]] | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PageCursor:
    """페이지 연속 커서 (created_at, movement_id 키셋)"""

    created_at: str
    movement_id: str


@dataclass(frozen=True)
class MovementPage:
    """Movement 페이지"""

    items: tuple[Movement, ...]
    cursor: PageCursor | None
    exhausted: bool


@dataclass(frozen=True)
class RunningBalance:
    """Movement 직전/직후 잔액 (표시용, 로드된 구간 기준)"""

    movement_id: str
    before: int
    after: int


@dataclass(frozen=True)
class MutationResult:
    """Movement 변경 결과

    status가 PENDING_CONFIRMATION이면 로컬에는 반영되었지만
    원격 저장소 확인이 타임아웃된 상태 (warning에 안내 문구).
    """

    kind: MutationKind | None
    status: WriteStatus
    movement: Movement | None
    balances: tuple[AccountBalance, ...]
    warning: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.status == WriteStatus.CONFIRMED


@dataclass(frozen=True)
class ClosingResult:
    """일일 마감 커밋/수정 결과"""

    closing: DailyClosing
    created: tuple[Movement, ...] = ()
    updated: tuple[Movement, ...] = ()
    removed: tuple[Movement, ...] = ()
    status: WriteStatus = WriteStatus.CONFIRMED
    warnings: tuple[str, ...] = ()
