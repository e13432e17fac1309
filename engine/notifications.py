"""
알림 메시지 구성 + 비동기 발송

메시지 본문(plain text)만 만들고 전송은 INotifier에 위임.
발송은 Ledger 변경 이후 백그라운드로 진행되며 실패해도 변경을 롤백하지 않는다.
"""

import asyncio
import logging
from typing import Iterable

from adapters.interfaces import INotifier
from adapters.models import NotificationMessage, ProviderEntry
from core.domain.models import DailyClosing, Movement
from core.types import Currency
from core.utils.timezone import format_local

logger = logging.getLogger(__name__)

SIGNATURE = "Este es un correo automático generado por el sistema de fondos."


def format_amount(currency: Currency, value: int) -> str:
    """금액 표시 (CRC: ₡1.234.567, USD: $1,234)"""
    amount = abs(int(value))
    if currency == Currency.USD:
        return f"${amount:,}"
    return "₡" + f"{amount:,}".replace(",", ".")


def format_diff(currency: Currency, diff: int) -> str:
    if diff == 0:
        return "Sin diferencias"
    label = "Sobrante de" if diff > 0 else "Faltante de"
    return f"{label} {format_amount(currency, diff)}"


def build_closing_message(
    company: str,
    closing: DailyClosing,
    recipient: str,
) -> NotificationMessage:
    """일일 마감 알림 메시지"""
    lines = [
        "Se registró un nuevo cierre diario.",
        "",
        f"Empresa: {company}",
        f"Cuenta: {closing.account_id.value}",
        f"Fecha: {format_local(closing.closing_date)}",
        f"Encargado: {closing.manager}",
        "",
        "Totales declarados:",
        f" - Colones: {format_amount(Currency.CRC, closing.counted.get(Currency.CRC, 0))}",
        f" - Dólares: {format_amount(Currency.USD, closing.counted.get(Currency.USD, 0))}",
        "",
        "Saldos registrados en sistema:",
        f" - Colones: {format_amount(Currency.CRC, closing.recorded_balance.get(Currency.CRC, 0))}",
        f" - Dólares: {format_amount(Currency.USD, closing.recorded_balance.get(Currency.USD, 0))}",
        "",
        "Diferencias:",
        f" - Colones: {format_diff(Currency.CRC, closing.diff.get(Currency.CRC, 0))}",
        f" - Dólares: {format_diff(Currency.USD, closing.diff.get(Currency.USD, 0))}",
    ]
    if closing.notes.strip():
        lines += ["", "Notas:", closing.notes.strip()]

    return NotificationMessage(
        recipient=recipient,
        subject=f"Nuevo cierre diario — {company}",
        body="\n".join(lines),
        extra={"closing_id": closing.id, "company": company},
    )


def build_provider_debit_message(
    company: str,
    provider: ProviderEntry,
    movement: Movement,
) -> NotificationMessage | None:
    """거래처 출금 알림 메시지 (알림 이메일이 없으면 None)"""
    if not provider.notification_email:
        return None

    lines = [
        "Se registró un nuevo egreso en el fondo.",
        "",
        f"Empresa: {company}",
        f"Proveedor: {provider.name} ({provider.code})",
        f"Tipo: {movement.type or provider.type or '-'}",
        f"Monto: {format_amount(movement.currency, movement.amount_debit)}",
        f"Factura: {movement.invoice_number or '-'}",
        f"Encargado: {movement.manager or '-'}",
        f"Fecha: {format_local(movement.created_at)}",
        "",
        "---",
        SIGNATURE,
    ]
    return NotificationMessage(
        recipient=provider.notification_email,
        subject=f"Nuevo egreso registrado - {company}",
        body="\n".join(lines),
        extra={"movement_id": movement.id, "company": company},
    )


class NotificationDispatcher:
    """백그라운드 알림 발송

    Args:
        notifier: 알림 발송 구현체 (None이면 발송 생략)
    """

    def __init__(self, notifier: INotifier | None = None):
        self.notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, messages: Iterable[NotificationMessage]) -> int:
        """메시지 발송 예약

        Returns:
            예약된 메시지 수
        """
        if self.notifier is None:
            return 0

        scheduled = 0
        for message in messages:
            task = asyncio.create_task(self._send(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled += 1
        return scheduled

    async def _send(self, message: NotificationMessage) -> None:
        assert self.notifier is not None
        try:
            sent = await self.notifier.send(message)
        except Exception as e:
            logger.error(
                f"Notification dispatch error: {e}",
                extra={"recipient": message.recipient, "subject": message.subject},
            )
            return

        if not sent:
            logger.warning(
                f"Notification not delivered: {message.subject}",
                extra={"recipient": message.recipient},
            )

    async def drain(self) -> None:
        """예약된 발송이 끝날 때까지 대기"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)
