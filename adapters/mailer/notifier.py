"""
HTTP 메일 알림 서비스

메일 릴레이(HTTP API)에 완성된 메시지를 전달.
INotifier Protocol 준수.

릴레이 요청 형식:
    POST {relay_url}
    {"to": ..., "subject": ..., "text": ..., "from": ...}
"""

import logging
from typing import Any

import httpx

from adapters.models import NotificationMessage

logger = logging.getLogger(__name__)


class HttpMailNotifier:
    """HTTP 메일 알림 서비스

    INotifier Protocol 구현.
    발송 실패는 예외 대신 False 반환 (Ledger 변경은 롤백되지 않음).

    사용 예시:
    ```python
    notifier = HttpMailNotifier(relay_url="https://mail.example.com/send", api_key="...")

    await notifier.send(NotificationMessage(
        recipient="gerencia@example.com",
        subject="Nuevo cierre diario — Delifood",
        body="...",
    ))
    ```
    """

    def __init__(
        self,
        relay_url: str,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            relay_url: 메일 릴레이 엔드포인트
            api_key: Bearer 인증 키 (선택)
            sender: 발신자 주소 (선택, 기본은 릴레이 설정)
            timeout: HTTP 요청 타임아웃 (초)
        """
        if not relay_url:
            raise ValueError("relay_url은 필수입니다")

        self.relay_url = relay_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

        # httpx 비동기 클라이언트 (재사용)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 반환 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, message: NotificationMessage) -> bool:
        """알림 전송

        Args:
            message: 완성된 메시지

        Returns:
            전송 성공 여부
        """
        if not message.recipient or not message.subject or not message.body:
            logger.warning("메일 필수 필드 누락: to, subject, text")
            return False

        payload: dict[str, Any] = {
            "to": message.recipient,
            "subject": message.subject,
            "text": message.body,
        }
        if self.sender:
            payload["from"] = self.sender

        return await self._send_payload(payload)

    async def _send_payload(self, payload: dict[str, Any]) -> bool:
        """릴레이로 페이로드 전송

        Args:
            payload: 메일 페이로드

        Returns:
            전송 성공 여부 (2xx)
        """
        try:
            client = await self._get_client()
            response = await client.post(self.relay_url, json=payload)

            if response.is_success:
                logger.debug(f"메일 전송 성공: {payload['to']}")
                return True

            logger.warning(
                "메일 전송 실패: status=%s, body=%s",
                response.status_code,
                response.text,
            )
            return False

        except httpx.TimeoutException:
            logger.error("메일 전송 타임아웃")
            return False
        except httpx.HTTPError as e:
            logger.error("메일 전송 HTTP 에러: %s", e)
            return False

    # -------------------------------------------------------------------------
    # Context Manager 지원
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "HttpMailNotifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
