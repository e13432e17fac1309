"""
어댑터 공통 데이터 모델

외부 협력자(사용자 식별, 거래처 디렉토리, 알림 발송)와 주고받는 모델.
"""

from dataclasses import dataclass, field
from typing import Any

from core.constants import MovementTypes, SystemIdentity
from core.types import MovementCategory


@dataclass(frozen=True)
class Actor:
    """작업 주체 (로그인 사용자)

    코어는 "누가 작업하는지"만 읽고 권한 판단은 하지 않는다.
    is_privileged는 삭제 같은 권한 작업의 감사 기록에만 사용.

    Attributes:
        name: 사용자 이름
        role: 역할 (user, admin, superadmin 등)
        email: 이메일 (선택)
    """

    name: str
    role: str = "user"
    email: str | None = None

    @property
    def is_privileged(self) -> bool:
        return self.role in ("admin", "superadmin")


SYSTEM_ACTOR = Actor(name=SystemIdentity.MANAGER, role="system")


@dataclass(frozen=True)
class ProviderEntry:
    """거래처 디렉토리 항목

    Attributes:
        code: 거래처 코드
        name: 거래처 이름
        type: Movement 유형 (VENTAS, GASTOS VARIOS, COMPRA INVENTARIO 등)
        notification_email: 출금 알림 수신 이메일 (선택)
    """

    code: str
    name: str
    type: str | None = None
    notification_email: str | None = None

    @property
    def category(self) -> MovementCategory:
        return classify_movement_type(self.type)


def classify_movement_type(movement_type: str | None) -> MovementCategory:
    """Movement 유형 → 입금/출금 분류

    Example:
        >>> classify_movement_type("VENTAS")
        <MovementCategory.INCOME: 'INCOME'>
        >>> classify_movement_type("PAGO BANCA")
        <MovementCategory.EXPENSE: 'EXPENSE'>
    """
    if not movement_type:
        return MovementCategory.UNKNOWN

    normalized = movement_type.strip().upper()
    if normalized in MovementTypes.INCOME:
        return MovementCategory.INCOME
    if normalized in MovementTypes.EXPENSE or normalized in MovementTypes.OUTFLOW:
        return MovementCategory.EXPENSE
    if normalized == SystemIdentity.INFORMATIONAL_TYPE:
        return MovementCategory.INFORMATIONAL
    return MovementCategory.UNKNOWN


@dataclass(frozen=True)
class NotificationMessage:
    """완성된 알림 메시지 (발송만 위임)

    Attributes:
        recipient: 수신자 (이메일)
        subject: 제목
        body: 본문 (plain text)
        extra: 부가 데이터 (로그/추적용)
    """

    recipient: str
    subject: str
    body: str
    extra: dict[str, Any] = field(default_factory=dict)
