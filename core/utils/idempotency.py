"""
ID 생성 유틸리티

Movement / DailyClosing 식별자 생성 및 파싱 기능 제공
규칙:
- Movement: {epoch_ms 13자리}_{account}_{suffix}  (id 문자열 정렬 = 생성 시간 정렬)
- DailyClosing: dc_{epoch_ms}_{suffix}
- 레거시 Movement: legacy_{createdAt}_{provider}_{invoice}_{egreso}_{ingreso}_{index}
"""

import re
import secrets
from datetime import datetime
from typing import Any

from core.utils.timezone import to_timestamp_ms

CLOSING_ID_PREFIX: str = "dc"
LEGACY_ID_PREFIX: str = "legacy"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _suffix() -> str:
    return secrets.token_hex(3)


def make_movement_id(created_at: datetime, account_id: str) -> str:
    """생성 시간 + 계정 기반 Movement ID

    Args:
        created_at: 생성 시간
        account_id: 계정 키

    Returns:
        시간순 정렬 가능한 ID

    Example:
        >>> make_movement_id(datetime(2024, 3, 5, tzinfo=timezone.utc), "BCR")
        '1709596800000_BCR_a1b2c3'
    """
    if not account_id:
        raise ValueError("account_id는 비어 있을 수 없습니다")

    return f"{to_timestamp_ms(created_at):013d}_{account_id}_{_suffix()}"


def parse_movement_timestamp(movement_id: str) -> int | None:
    """Movement ID에서 epoch ms 추출 (형식 불일치 시 None)"""
    if not movement_id:
        return None

    head = movement_id.split("_", 1)[0]
    if len(head) == 13 and head.isdigit():
        return int(head)
    return None


def make_closing_id(created_at: datetime) -> str:
    """DailyClosing ID 생성"""
    return f"{CLOSING_ID_PREFIX}_{to_timestamp_ms(created_at)}_{_suffix()}"


def make_legacy_movement_id(record: dict[str, Any], index: int) -> str:
    """레거시 Movement 결정적 ID 생성

    같은 레코드/위치는 항상 같은 ID가 되어 마이그레이션을 재실행해도 중복되지 않음.

    Args:
        record: 레거시 Movement 레코드
        index: 레거시 배열 내 위치

    Returns:
        legacy_ 접두사 ID
    """
    created_at = record.get("createdAt") if isinstance(record.get("createdAt"), str) else ""
    provider = record.get("providerCode") if isinstance(record.get("providerCode"), str) else ""
    invoice = record.get("invoiceNumber") if isinstance(record.get("invoiceNumber"), str) else ""
    egreso = _legacy_amount(record.get("amountEgreso", record.get("amountDebit")))
    ingreso = _legacy_amount(record.get("amountIngreso", record.get("amountCredit")))

    raw = f"{created_at}_{provider}_{invoice}_{egreso}_{ingreso}_{index}"
    return f"{LEGACY_ID_PREFIX}_{_UNSAFE_ID_CHARS.sub('-', raw)}"


def _legacy_amount(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return "0"
    if isinstance(value, int):
        return str(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "NaN"
    return str(int(number)) if number.is_integer() else str(number)


def is_legacy_movement_id(movement_id: str) -> bool:
    """레거시 마이그레이션으로 생성된 ID인지 확인"""
    if not movement_id:
        return False

    return movement_id.startswith(f"{LEGACY_ID_PREFIX}_")
