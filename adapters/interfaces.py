"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 Mock 교체 가능.
모든 구현체는 이 Protocol을 준수해야 함.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from adapters.models import Actor, NotificationMessage, ProviderEntry


@runtime_checkable
class IIdentityProvider(Protocol):
    """사용자 식별 인터페이스

    현재 작업 주체의 이름/역할만 제공. 권한 판단은 하지 않음.
    """

    def current_actor(self) -> "Actor":
        """현재 작업 주체

        Returns:
            Actor (로그인 정보가 없으면 익명 Actor)
        """
        ...


@runtime_checkable
class IProviderDirectory(Protocol):
    """거래처/직원 디렉토리 인터페이스

    거래처 코드 → {code, name, type} 조회.
    Movement 입금/출금 분류와 알림 이메일 조회에 사용.
    """

    async def get_provider(self, company: str, code: str) -> "ProviderEntry | None":
        """거래처 조회

        Args:
            company: 회사명
            code: 거래처 코드

        Returns:
            ProviderEntry 또는 None (미등록)
        """
        ...


@runtime_checkable
class INotifier(Protocol):
    """알림 발송 인터페이스

    완성된 메시지(수신자, 제목, 본문)를 외부로 전송.
    실패해도 Ledger 변경을 롤백하지 않음 (발송 실패는 False 반환).
    """

    async def send(self, message: "NotificationMessage") -> bool:
        """알림 전송

        Args:
            message: 발송할 메시지

        Returns:
            전송 성공 여부
        """
        ...
