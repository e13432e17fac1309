"""
어댑터 레이어

외부 서비스(DB, 알림, 사용자 식별, 거래처 디렉토리)와의 연동을 담당.
Protocol 기반 인터페이스로 Mock 교체 가능.
"""

from adapters.interfaces import (
    IIdentityProvider,
    INotifier,
    IProviderDirectory,
)
from adapters.models import (
    Actor,
    NotificationMessage,
    ProviderEntry,
)

__all__ = [
    # Interfaces
    "IIdentityProvider",
    "IProviderDirectory",
    "INotifier",
    # Models
    "Actor",
    "ProviderEntry",
    "NotificationMessage",
]
