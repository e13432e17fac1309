"""
메일 어댑터

HTTP 메일 릴레이를 통한 알림 전송.
INotifier Protocol 준수.
"""

from adapters.mailer.notifier import HttpMailNotifier

__all__ = [
    "HttpMailNotifier",
]
