"""
잔액 문서 정규화

저장소/레거시 형태의 임의 문서를 정규 FundLedger 하나로 변환하는 순수 함수.
I/O 없음. 레거시 해석은 이 모듈에만 존재하고 이후 로직은 정규 형태만 다룸.

지원 형태:
- CANONICAL: {company, configuration, operations: {movements}, state: {balancesByAccount, ...}}
- LEGACY_BUCKETS: {accounts: {<account>: {<currency>: {movements: [...]}}}}
- LEGACY_METADATA: {metadata: {accounts: {<account>: {<currency>: {...}}}, currencies: {...}}}
- EMPTY: 매핑이 아닌 입력

멱등성: normalize_fund_document(ledger.to_document(), company) == ledger
"""

from typing import Any

from core.domain.models import (
    AccountBalance,
    AccountConfiguration,
    CurrencyConfiguration,
    FundLedger,
    balance_grid,
    coerce_enabled,
    sanitize_money,
)
from core.types import (
    ACCOUNT_KEYS,
    CURRENCY_KEYS,
    DEFAULT_ACCOUNT_LABELS,
    AccountKey,
    Currency,
    DocumentShape,
    parse_account_key,
    parse_currency,
)
from core.utils.timezone import now_utc, parse_datetime

FUND_ID_PREFIX = "movements"

# 잔액 항목에서 해석하는 필드 (나머지는 extra로 보존)
_BALANCE_FIELDS = frozenset(
    {"accountId", "currency", "enabled", "initialBalance", "currentBalance"}
)


def build_fund_id(company: str) -> str:
    """회사명 → 자금 문서/Movement 파티션 키

    Example:
        >>> build_fund_id(" Delifood ")
        'movements_Delifood'
        >>> build_fund_id("")
        'movements_global'
    """
    identifier = (company or "").strip()
    return f"{FUND_ID_PREFIX}_{identifier or 'global'}"


def detect_shape(raw: Any) -> DocumentShape:
    """문서 형태 판별"""
    if not isinstance(raw, dict):
        return DocumentShape.EMPTY
    if isinstance(raw.get("accounts"), dict) and not isinstance(raw.get("operations"), dict):
        return DocumentShape.LEGACY_BUCKETS
    if isinstance(raw.get("metadata"), dict) and not isinstance(raw.get("state"), dict):
        return DocumentShape.LEGACY_METADATA
    return DocumentShape.CANONICAL


def empty_fund_ledger(company: str) -> FundLedger:
    """기본 설정 + 전체 0 잔액 문서"""
    return FundLedger(
        company=company or "",
        accounts=default_accounts(),
        currencies=default_currencies(),
        balances=default_balances(),
        updated_at=now_utc(),
    )


def default_accounts() -> tuple[AccountConfiguration, ...]:
    return tuple(
        AccountConfiguration(id=account, label=DEFAULT_ACCOUNT_LABELS[account])
        for account in ACCOUNT_KEYS
    )


def default_currencies() -> tuple[CurrencyConfiguration, ...]:
    return tuple(CurrencyConfiguration(code=currency) for currency in CURRENCY_KEYS)


def default_balances() -> tuple[AccountBalance, ...]:
    return tuple(
        AccountBalance(account_id=account, currency=currency)
        for account, currency in balance_grid()
    )


def normalize_fund_document(raw: Any, company: str) -> FundLedger:
    """임의 문서 → 정규 FundLedger

    잘못된 금액은 0, 신뢰할 수 없는 계정/통화 키는 제거 (예외 없음).

    Args:
        raw: 저장소에서 읽은 문서 (형태 무관)
        company: 대상 회사명 (문서에 회사명이 없을 때 사용)

    Returns:
        FundLedger (잔액은 계정 × 통화 전체 조합)
    """
    shape = detect_shape(raw)
    if shape == DocumentShape.EMPTY:
        return empty_fund_ledger(company)

    state = raw.get("state") if isinstance(raw.get("state"), dict) else None
    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else None

    accounts, currencies = _sanitize_configuration(raw.get("configuration"))
    operations = _sanitize_operations(raw.get("operations"), raw.get("accounts"))
    balances = _sanitize_balances(
        state.get("balancesByAccount") if state else None,
        metadata.get("accounts") if metadata else None,
        metadata.get("currencies") if metadata else None,
    )

    updated_raw = None
    if state is not None:
        updated_raw = state.get("updatedAt")
    if updated_raw is None and metadata is not None:
        updated_raw = metadata.get("updatedAt")

    locked_until = parse_datetime(state.get("lockedUntil")) if state else None

    return FundLedger(
        company=_resolve_company(raw.get("company"), raw.get("ownerId"), company),
        accounts=accounts,
        currencies=currencies,
        balances=balances,
        updated_at=parse_datetime(updated_raw) or now_utc(),
        locked_until=locked_until,
        operations=operations,
    )


def _resolve_company(candidate: Any, owner: Any, default: str) -> str:
    for value in (candidate, owner):
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default or ""


def _sanitize_configuration(
    config: Any,
) -> tuple[tuple[AccountConfiguration, ...], tuple[CurrencyConfiguration, ...]]:
    if not isinstance(config, dict):
        return default_accounts(), default_currencies()

    accounts: list[AccountConfiguration] = []
    seen_accounts: set[AccountKey] = set()
    for item in config.get("accounts") or []:
        if not isinstance(item, dict):
            continue
        account = parse_account_key(item.get("id"))
        if account is None or account in seen_accounts:
            continue
        seen_accounts.add(account)

        label = item.get("label")
        accounts.append(
            AccountConfiguration(
                id=account,
                label=label.strip() if isinstance(label, str) and label.strip() else DEFAULT_ACCOUNT_LABELS[account],
                supported_currencies=_sanitize_supported(item.get("supportedCurrencies")),
            )
        )

    currencies: list[CurrencyConfiguration] = []
    seen_currencies: set[Currency] = set()
    for item in config.get("currencies") or []:
        if not isinstance(item, dict):
            continue
        code = parse_currency(item.get("code"))
        if code is None or code in seen_currencies:
            continue
        seen_currencies.add(code)
        currencies.append(CurrencyConfiguration(code=code, enabled=coerce_enabled(item.get("enabled"))))

    return (
        tuple(accounts) if accounts else default_accounts(),
        tuple(currencies) if currencies else default_currencies(),
    )


def _sanitize_supported(raw: Any) -> tuple[Currency, ...]:
    source = raw if isinstance(raw, list) else list(CURRENCY_KEYS)
    result: list[Currency] = []
    for item in source:
        code = parse_currency(item)
        if code is not None and code not in result:
            result.append(code)
    return tuple(result) if result else CURRENCY_KEYS


def ensure_movement_envelope(
    movement: Any,
    fallback_account: AccountKey | None = None,
    fallback_currency: Currency | None = None,
) -> dict[str, Any]:
    """레거시 Movement 레코드에 accountId/currency 보장

    잘못된 값이면 버킷 위치(없으면 FondoGeneral/CRC)로 대체.
    """
    base = dict(movement) if isinstance(movement, dict) else {}
    account = parse_account_key(base.get("accountId")) or fallback_account or AccountKey.FONDO_GENERAL
    currency = parse_currency(base.get("currency")) or fallback_currency or Currency.CRC
    base["accountId"] = account.value
    base["currency"] = currency.value
    return base


def _sanitize_operations(operations: Any, legacy_accounts: Any) -> tuple[dict[str, Any], ...]:
    if isinstance(operations, dict) and isinstance(operations.get("movements"), list):
        return tuple(ensure_movement_envelope(m) for m in operations["movements"])

    if not isinstance(legacy_accounts, dict):
        return ()

    flattened: list[dict[str, Any]] = []
    for account in ACCOUNT_KEYS:
        buckets = legacy_accounts.get(account.value)
        if not isinstance(buckets, dict):
            continue
        for currency in CURRENCY_KEYS:
            bucket = buckets.get(currency.value)
            if not isinstance(bucket, dict) or not isinstance(bucket.get("movements"), list):
                continue
            for movement in bucket["movements"]:
                flattened.append(ensure_movement_envelope(movement, account, currency))
    return tuple(flattened)


def _balance_from(
    account: AccountKey,
    currency: Currency,
    settings: dict[str, Any],
) -> AccountBalance:
    return AccountBalance(
        account_id=account,
        currency=currency,
        enabled=coerce_enabled(settings.get("enabled")),
        initial_balance=sanitize_money(settings.get("initialBalance")),
        current_balance=sanitize_money(settings.get("currentBalance")),
        extra={k: v for k, v in settings.items() if k not in _BALANCE_FIELDS},
    )


def _sanitize_balances(
    balances: Any,
    legacy_accounts: Any,
    legacy_currencies: Any,
) -> tuple[AccountBalance, ...]:
    found: dict[tuple[AccountKey, Currency], AccountBalance] = {}

    if isinstance(balances, list):
        for item in balances:
            if not isinstance(item, dict):
                continue
            account = parse_account_key(item.get("accountId"))
            currency = parse_currency(item.get("currency"))
            if account is None or currency is None:
                continue
            found[(account, currency)] = _balance_from(account, currency, item)

    if not found and isinstance(legacy_accounts, dict):
        for account in ACCOUNT_KEYS:
            per_currency = legacy_accounts.get(account.value)
            if not isinstance(per_currency, dict):
                continue
            for currency in CURRENCY_KEYS:
                settings = per_currency.get(currency.value)
                if isinstance(settings, dict):
                    found[(account, currency)] = _balance_from(account, currency, settings)

    if not found and isinstance(legacy_currencies, dict):
        for account, currency in balance_grid():
            settings = legacy_currencies.get(currency.value)
            if isinstance(settings, dict):
                found[(account, currency)] = _balance_from(account, currency, settings)

    return tuple(
        found.get((account, currency)) or AccountBalance(account_id=account, currency=currency)
        for account, currency in balance_grid()
    )
