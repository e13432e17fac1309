"""
Ledger 오류 분류

모든 거부 사유는 어떤 제약이 발동했는지(필드, 한도, 잠금)를 식별할 수 있어야 함.
각 예외는 constraint 문자열과 구조화된 컨텍스트(to_dict)를 가진다.
"""

from datetime import datetime
from typing import Any


class LedgerError(Exception):
    """Ledger 오류 기본 클래스"""

    constraint: str = "ledger"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """API 응답/로그용 직렬화"""
        payload: dict[str, Any] = {
            "error": type(self).__name__,
            "constraint": self.constraint,
            "message": self.message,
        }
        for key, value in self.context.items():
            payload[key] = value.isoformat() if isinstance(value, datetime) else value
        return payload


class ValidationError(LedgerError):
    """필수 필드 누락/잘못된 값 (부분 적용 없음)"""

    constraint = "validation"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}", field=field)
        self.field = field


class ConcurrentEditError(LedgerError):
    """같은 Movement의 수정이 진행 중이거나 쿨다운 내 재시도"""

    constraint = "concurrent_edit"

    def __init__(self, movement_id: str, reason: str):
        super().__init__(
            f"Movement {movement_id} edit rejected: {reason}",
            movement_id=movement_id,
            reason=reason,
        )
        self.movement_id = movement_id
        self.reason = reason


class LockedMovementError(LedgerError):
    """잠금 시점 이전 Movement 또는 시스템 조정 Movement"""

    constraint = "locked"

    REASON_CLOSED = "closed_period"
    REASON_SYSTEM = "system_movement"

    def __init__(
        self,
        movement_id: str,
        reason: str,
        locked_until: datetime | None = None,
    ):
        if reason == self.REASON_SYSTEM:
            message = f"Movement {movement_id} is owned by the closing reconciler"
        else:
            message = f"Movement {movement_id} predates lock {locked_until.isoformat() if locked_until else '-'}"
        super().__init__(
            message,
            movement_id=movement_id,
            reason=reason,
            locked_until=locked_until,
        )
        self.movement_id = movement_id
        self.reason = reason
        self.locked_until = locked_until


class AuditCapExceededError(LedgerError):
    """최대 수정 횟수 초과"""

    constraint = "audit_cap"

    def __init__(self, movement_id: str, cap: int):
        super().__init__(
            f"Movement {movement_id} already has {cap} edits",
            movement_id=movement_id,
            cap=cap,
        )
        self.movement_id = movement_id
        self.cap = cap


class PersistenceError(LedgerError):
    """원격 쓰기 실패"""

    constraint = "persistence"

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}", operation=operation)
        self.operation = operation


class NotFoundError(LedgerError):
    """참조한 Movement/Closing 없음"""

    constraint = "not_found"

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}", kind=kind, entity_id=entity_id)
        self.kind = kind
        self.entity_id = entity_id
