"""
Audit History Manager

Movement별 필드 단위 변경 이력 (추가 전용, 크기 제한).

- record_change: 변경된 허용 필드만 before/after로 기록, 최대 횟수 초과 시 거부
- compress: 결정적 샘플링으로 이력 축약 (처음/마지막 항상 유지)
- replay: 이력을 시간순으로 재생해 각 시점의 필드 값 재구성
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from core.constants import Defaults
from core.domain.errors import AuditCapExceededError, ValidationError
from core.domain.models import AUDIT_FIELD_KEYS, AuditHistoryEntry, Movement
from core.types import parse_currency
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)

# 감사 대상 필드 (이 필드만 수정 가능)
AUDITED_FIELDS: tuple[str, ...] = tuple(AUDIT_FIELD_KEYS)

# compress 결과 크기 (처음 + 중간 3개 + 마지막)
COMPRESSED_SIZE = 5


def diff_fields(before: Movement, after: Movement) -> tuple[dict[str, Any], dict[str, Any]]:
    """허용 필드 중 변경된 값만 추출

    Returns:
        (변경 전 값, 변경 후 값) - 같은 키 집합
    """
    old_values = before.audited_values()
    new_values = after.audited_values()

    changed_before: dict[str, Any] = {}
    changed_after: dict[str, Any] = {}
    for name in AUDITED_FIELDS:
        if old_values[name] != new_values[name]:
            changed_before[name] = old_values[name]
            changed_after[name] = new_values[name]
    return changed_before, changed_after


def record_change(
    before: Movement,
    after: Movement,
    history: tuple[AuditHistoryEntry, ...] | None = None,
    at: datetime | None = None,
    enforce_cap: bool = True,
    cap: int = Defaults.MAX_AUDIT_EDITS,
) -> tuple[AuditHistoryEntry, ...]:
    """수정 이력 추가

    Args:
        before: 수정 전 Movement
        after: 수정 후 Movement
        history: 기존 이력 (기본: before.audit_history)
        at: 변경 시간 (기본: 현재)
        enforce_cap: 최대 수정 횟수 검사 여부 (마감 조정 재계산은 False)
        cap: 최대 수정 횟수

    Returns:
        새 이력 (기존 이력은 변경되지 않음)

    Raises:
        AuditCapExceededError: 이미 cap 회 수정된 경우
        ValidationError: 변경된 허용 필드가 없는 경우
    """
    existing = before.audit_history if history is None else history

    if enforce_cap and len(existing) >= cap:
        raise AuditCapExceededError(before.id, cap)

    changed_before, changed_after = diff_fields(before, after)
    if not changed_after:
        raise ValidationError("patch", "no audited field changed")

    entry = AuditHistoryEntry(
        at=at or now_utc(),
        before=changed_before,
        after=changed_after,
    )
    return (*existing, entry)


def compress(history: tuple[AuditHistoryEntry, ...]) -> tuple[AuditHistoryEntry, ...]:
    """이력 축약 (결정적, 멱등)

    5건 이하면 그대로. 초과 시 처음/마지막 + 내부 균등 간격 3건.
    step = (n - 2) // 4, 인덱스 step, 2*step, 3*step (1..n-2 범위로 제한)

    Example:
        n=10 → 인덱스 0, 2, 4, 6, 9
    """
    n = len(history)
    if n <= COMPRESSED_SIZE:
        return tuple(history)

    step = (n - 2) // 4
    interior = [min(max(step * k, 1), n - 2) for k in (1, 2, 3)]
    indices = sorted({0, *interior, n - 1})
    return tuple(history[i] for i in indices)


def replay(
    history: tuple[AuditHistoryEntry, ...],
    current: dict[str, Any],
) -> list[dict[str, Any]]:
    """이력 재생

    현재 값에서 before 값으로 거슬러 올라가 최초 상태를 만든 뒤,
    시간순으로 before → after를 적용하며 각 시점 스냅샷을 만든다.
    첫 항목의 before가 다른 필드의 현재 값과 같다고 가정하지 않는다.

    Args:
        history: 감사 이력
        current: 현재 필드 값 (Movement.audited_values())

    Returns:
        [최초 상태, 1차 수정 후, ..., 현재] (길이 = len(history) + 1)
    """
    ordered = sorted(history, key=lambda e: e.at)

    state = dict(current)
    for entry in reversed(ordered):
        state.update(entry.before)

    snapshots = [dict(state)]
    for entry in ordered:
        state.update(entry.after)
        snapshots.append(dict(state))
    return snapshots


def apply_patch(movement: Movement, patch: dict[str, Any]) -> Movement:
    """허용 필드 patch 적용

    Raises:
        ValidationError: 허용되지 않은 필드 또는 잘못된 값
    """
    changes: dict[str, Any] = {}
    for name, value in patch.items():
        if name not in AUDITED_FIELDS:
            raise ValidationError(name, "field is not editable")

        if name == "currency":
            currency = parse_currency(value)
            if currency is None:
                raise ValidationError(name, f"unsupported currency {value!r}")
            changes[name] = currency
        elif name in ("amount_credit", "amount_debit"):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(name, "amount must be a number")
            amount = int(value)
            if amount < 0:
                raise ValidationError(name, "amount must not be negative")
            changes[name] = amount
        else:
            if value is not None and not isinstance(value, str):
                raise ValidationError(name, "must be text")
            changes[name] = (value or "").strip()

    return replace(movement, **changes)


def with_history(
    movement: Movement,
    history: tuple[AuditHistoryEntry, ...],
) -> Movement:
    """이력 반영 (isAudited 갱신)"""
    return replace(movement, audit_history=history, is_audited=bool(history))
