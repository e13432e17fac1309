"""
Mock 알림 서비스

테스트용 Mock Notifier.
INotifier Protocol 준수.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from adapters.models import NotificationMessage


@dataclass
class NotificationRecord:
    """알림 기록"""

    message: NotificationMessage
    timestamp: datetime
    sent: bool


class MockNotifier:
    """Mock 알림 서비스

    INotifier Protocol 구현.
    발송된 모든 알림을 기록하여 테스트에서 검증 가능.

    사용 예시:
    ```python
    notifier = MockNotifier()

    await notifier.send(NotificationMessage("a@b.cr", "Cierre", "..."))

    assert notifier.message_count == 1
    assert notifier.last_notification.message.subject == "Cierre"
    ```
    """

    def __init__(self, should_fail: bool = False, should_raise: bool = False):
        """
        Args:
            should_fail: True면 모든 발송 실패 (False 반환)
            should_raise: True면 발송 시 예외 (잘못된 구현체 시나리오)
        """
        self.should_fail = should_fail
        self.should_raise = should_raise
        self.notifications: list[NotificationRecord] = []

    async def send(self, message: NotificationMessage) -> bool:
        """알림 전송"""
        if self.should_raise:
            raise RuntimeError("notifier unavailable")

        self.notifications.append(
            NotificationRecord(
                message=message,
                timestamp=datetime.now(timezone.utc),
                sent=not self.should_fail,
            )
        )
        return not self.should_fail

    # -------------------------------------------------------------------------
    # 테스트 헬퍼 메서드
    # -------------------------------------------------------------------------

    def clear(self) -> None:
        """알림 기록 초기화"""
        self.notifications.clear()

    def get_by_recipient(self, recipient: str) -> list[NotificationRecord]:
        """특정 수신자의 알림 조회"""
        return [n for n in self.notifications if n.message.recipient == recipient]

    @property
    def last_notification(self) -> NotificationRecord | None:
        """마지막 알림 조회"""
        return self.notifications[-1] if self.notifications else None

    @property
    def message_count(self) -> int:
        """전체 알림 수"""
        return len(self.notifications)

    @property
    def sent_count(self) -> int:
        """성공적으로 발송된 알림 수"""
        return sum(1 for n in self.notifications if n.sent)
