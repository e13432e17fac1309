"""
Balance Ledger

계정 × 통화 잔액의 단일 진실 원천.
잔액은 Movement 목록을 다시 합산해서 구하지 않는다 (로드된 목록은 일부 구간일 수 있음).
오직 Movement 변경의 부호 있는 delta, 초기 잔액 변경분, 명시적 덮어쓰기로만 변경된다.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from core.domain.models import AccountBalance, FundLedger, Movement, RunningBalance
from core.types import AccountKey, Currency, MutationKind
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


def movement_delta(movement: Movement | None) -> int:
    """Movement의 잔액 기여분 (입금 - 출금, 자기 통화 기준)"""
    if movement is None:
        return 0
    return movement.delta


def compute_deltas(
    kind: MutationKind | None,
    before: Movement | None,
    after: Movement | None,
) -> dict[Currency, int]:
    """변경 유형별 통화 delta 계산

    - CREATE: +delta(after)
    - DELETE: -delta(before)
    - EDIT: +delta(after) - delta(before) (통화가 바뀌면 각 통화에 나누어 반영)

    Raises:
        ValueError: 변경 유형에 필요한 before/after가 없는 경우
    """
    deltas: dict[Currency, int] = {}
    if kind is None:
        return deltas

    if kind in (MutationKind.DELETE, MutationKind.EDIT):
        if before is None:
            raise ValueError(f"{kind.value} mutation requires the previous movement")
        deltas[before.currency] = deltas.get(before.currency, 0) - before.delta

    if kind in (MutationKind.CREATE, MutationKind.EDIT):
        if after is None:
            raise ValueError(f"{kind.value} mutation requires the new movement")
        deltas[after.currency] = deltas.get(after.currency, 0) + after.delta

    return deltas


def apply_mutation(
    ledger: FundLedger,
    kind: MutationKind | None,
    before: Movement | None,
    after: Movement | None,
    account_id: AccountKey,
    initial_balances: dict[Currency, int] | None = None,
    current_overrides: dict[Currency, int] | None = None,
    at: datetime | None = None,
) -> FundLedger:
    """Movement 변경을 잔액에 반영한 새 FundLedger 반환

    변경된 (계정, 통화) 항목만 교체되고 나머지는 그대로 유지.
    초기 잔액 변경은 같은 차이만큼 현재 잔액도 이동시키며 같은 갱신에 포함.
    current_overrides가 있으면 해당 통화의 현재 잔액을 그 값으로 대체.

    Args:
        ledger: 최신 FundLedger 스냅샷
        kind: CREATE / EDIT / DELETE (None이면 잔액 설정만 변경)
        before: 변경 전 Movement
        after: 변경 후 Movement
        account_id: 대상 계정
        initial_balances: 통화별 새 초기 잔액
        current_overrides: 통화별 현재 잔액 덮어쓰기
        at: 갱신 시간 (기본: 현재)

    Returns:
        갱신된 FundLedger

    Raises:
        ValueError: Movement 계정이 account_id와 다른 경우
    """
    for movement in (before, after):
        if movement is not None and movement.account_id != account_id:
            raise ValueError(
                f"movement {movement.id} belongs to {movement.account_id.value}, "
                f"not {account_id.value}"
            )

    deltas = compute_deltas(kind, before, after)
    initial_balances = initial_balances or {}
    current_overrides = current_overrides or {}

    touched = set(deltas) | set(initial_balances) | set(current_overrides)
    if not touched:
        return ledger

    updated: dict[Currency, AccountBalance] = {}
    for currency in touched:
        balance = ledger.get_balance(account_id, currency)
        new_initial = balance.initial_balance
        new_current = balance.current_balance + deltas.get(currency, 0)

        if currency in initial_balances:
            new_initial = int(initial_balances[currency])
            new_current += new_initial - balance.initial_balance

        if currency in current_overrides:
            new_current = int(current_overrides[currency])

        updated[currency] = replace(
            balance,
            initial_balance=new_initial,
            current_balance=new_current,
        )

    balances = tuple(
        updated[b.currency] if b.account_id == account_id and b.currency in updated else b
        for b in ledger.balances
    )

    logger.debug(
        f"Balance mutation applied: {account_id.value}",
        extra={
            "mutation": kind.value if kind else None,
            "deltas": {c.value: d for c, d in deltas.items()},
        },
    )

    return replace(ledger, balances=balances, updated_at=at or now_utc())


def running_balances(
    movements: Iterable[Movement],
    current_balance: int,
    account_id: AccountKey,
    currency: Currency,
) -> dict[str, RunningBalance]:
    """Movement 직전/직후 잔액 (표시용)

    권위 있는 현재 잔액에서 시작해 로드된 Movement를 최신순으로 거슬러 올라가며 delta를 뺀다.
    로드된 구간이 "현재"까지 이어지는 연속 구간일 때만 정확하다.
    과거의 떨어진 구간만 로드한 경우 그 사이 Movement가 빠져 값이 어긋날 수 있다.

    Args:
        movements: 로드된 Movement 목록 (순서 무관)
        current_balance: 해당 계정/통화의 현재 잔액
        account_id: 계정
        currency: 통화

    Returns:
        Movement ID → RunningBalance
    """
    relevant = [
        m for m in movements
        if m.account_id == account_id and m.currency == currency
    ]
    relevant.sort(key=lambda m: (m.created_at, m.id), reverse=True)

    result: dict[str, RunningBalance] = {}
    running = current_balance
    for movement in relevant:
        before = running - movement.delta
        result[movement.id] = RunningBalance(
            movement_id=movement.id,
            before=before,
            after=running,
        )
        running = before
    return result
