"""
HTTP Mail Notifier 테스트

HttpMailNotifier 단위 테스트.
httpx를 모킹하여 실제 네트워크 호출 없이 테스트.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from adapters.mailer.notifier import HttpMailNotifier
from adapters.models import NotificationMessage

RELAY_URL = "https://mail.example.com/send"


def _message(**overrides) -> NotificationMessage:
    fields = {
        "recipient": "gerencia@delifood.cr",
        "subject": "Nuevo cierre diario",
        "body": "Diferencia: ₡300.00",
    }
    fields.update(overrides)
    return NotificationMessage(**fields)


def _response(status_code: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.text = "" if response.is_success else "error"
    return response


class TestHttpMailNotifierInit:
    """HttpMailNotifier 초기화 테스트"""

    def test_init_with_relay_url(self) -> None:
        notifier = HttpMailNotifier(relay_url=RELAY_URL)

        assert notifier.relay_url == RELAY_URL
        assert notifier.api_key is None
        assert notifier.sender is None
        assert notifier.timeout == 10.0

    def test_init_without_relay_url_raises(self) -> None:
        """relay_url 없으면 에러"""
        with pytest.raises(ValueError, match="relay_url은 필수입니다"):
            HttpMailNotifier(relay_url="")


class TestHttpMailNotifierSend:
    """HttpMailNotifier.send() 테스트"""

    @pytest.fixture
    def notifier(self) -> HttpMailNotifier:
        return HttpMailNotifier(relay_url=RELAY_URL, sender="fondos@delifood.cr")

    @pytest.mark.asyncio
    async def test_send_success(self, notifier: HttpMailNotifier) -> None:
        """전송 성공 및 페이로드 확인"""
        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(200)
            mock_get_client.return_value = mock_client

            result = await notifier.send(_message())

            assert result is True
            mock_client.post.assert_called_once()
            args, kwargs = mock_client.post.call_args
            assert args[0] == RELAY_URL
            assert kwargs["json"] == {
                "to": "gerencia@delifood.cr",
                "subject": "Nuevo cierre diario",
                "text": "Diferencia: ₡300.00",
                "from": "fondos@delifood.cr",
            }

    @pytest.mark.asyncio
    async def test_send_without_sender_omits_from(self) -> None:
        notifier = HttpMailNotifier(relay_url=RELAY_URL)
        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(202)
            mock_get_client.return_value = mock_client

            assert await notifier.send(_message()) is True
            assert "from" not in mock_client.post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_send_http_error_status(self, notifier: HttpMailNotifier) -> None:
        """비-2xx 응답 → False"""
        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(500)
            mock_get_client.return_value = mock_client

            assert await notifier.send(_message()) is False

    @pytest.mark.asyncio
    async def test_send_timeout(self, notifier: HttpMailNotifier) -> None:
        """타임아웃 → False"""
        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.TimeoutException("timeout")
            mock_get_client.return_value = mock_client

            assert await notifier.send(_message()) is False

    @pytest.mark.asyncio
    async def test_send_connection_error(self, notifier: HttpMailNotifier) -> None:
        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.ConnectError("refused")
            mock_get_client.return_value = mock_client

            assert await notifier.send(_message()) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["recipient", "subject", "body"])
    async def test_missing_field_skips_request(self, notifier: HttpMailNotifier, field: str) -> None:
        """필수 필드 누락 → 요청 없이 False"""
        with patch.object(notifier, "_get_client") as mock_get_client:
            assert await notifier.send(_message(**{field: ""})) is False
            mock_get_client.assert_not_called()


class TestHttpMailNotifierClient:
    """HTTP 클라이언트 수명 테스트"""

    @pytest.mark.asyncio
    async def test_client_reused_and_closed(self) -> None:
        notifier = HttpMailNotifier(relay_url=RELAY_URL, api_key="secret")

        first = await notifier._get_client()
        second = await notifier._get_client()
        assert first is second
        assert first.headers["Authorization"] == "Bearer secret"

        await notifier.close()
        assert first.is_closed
        assert notifier._client is None

    @pytest.mark.asyncio
    async def test_context_manager_closes(self) -> None:
        async with HttpMailNotifier(relay_url=RELAY_URL) as notifier:
            client = await notifier._get_client()

        assert client.is_closed
