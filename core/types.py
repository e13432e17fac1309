"""
타입 정의 모듈

Enum 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class AccountKey(str, Enum):
    """자금 계정 (현금 풀)"""

    FONDO_GENERAL = "FondoGeneral"
    BCR = "BCR"
    BN = "BN"
    BAC = "BAC"


class Currency(str, Enum):
    """통화"""

    CRC = "CRC"  # 콜론 (코스타리카)
    USD = "USD"


class MovementKind(str, Enum):
    """Movement 종류

    생성 시 한 번 설정되고 이후 변경되지 않음.
    시스템 종류는 일반 수정/삭제 경로에서 보호됨.
    """

    ORDINARY = "ORDINARY"
    SYSTEM_ADJUSTMENT = "SYSTEM_ADJUSTMENT"  # 마감 차액 조정
    SYSTEM_INFORMATIONAL = "SYSTEM_INFORMATIONAL"  # 차액 없는 마감 기록


class MovementCategory(str, Enum):
    """Movement 분류 (거래처 유형 기준)"""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    INFORMATIONAL = "INFORMATIONAL"
    UNKNOWN = "UNKNOWN"


class MutationKind(str, Enum):
    """잔액 변경 유형"""

    CREATE = "CREATE"
    EDIT = "EDIT"
    DELETE = "DELETE"


class WriteStatus(str, Enum):
    """쓰기 확정 상태"""

    CONFIRMED = "CONFIRMED"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"  # 로컬 반영, 원격 확인 대기


class WindowMode(str, Enum):
    """조회 구간 모드"""

    DAY = "day"
    RANGE = "range"


class DocumentShape(str, Enum):
    """잔액 문서 저장 형태"""

    CANONICAL = "CANONICAL"
    LEGACY_BUCKETS = "LEGACY_BUCKETS"  # accounts.{account}.{currency}.movements
    LEGACY_METADATA = "LEGACY_METADATA"  # metadata.accounts / metadata.currencies
    EMPTY = "EMPTY"


# 순서가 의미 있음 (잔액 목록 정렬 기준)
ACCOUNT_KEYS: tuple[AccountKey, ...] = (
    AccountKey.FONDO_GENERAL,
    AccountKey.BCR,
    AccountKey.BN,
    AccountKey.BAC,
)

CURRENCY_KEYS: tuple[Currency, ...] = (Currency.CRC, Currency.USD)

DEFAULT_ACCOUNT_LABELS: dict[AccountKey, str] = {
    AccountKey.FONDO_GENERAL: "Fondo General",
    AccountKey.BCR: "BCR",
    AccountKey.BN: "BN",
    AccountKey.BAC: "BAC",
}


def parse_account_key(value: object) -> AccountKey | None:
    """문자열 → AccountKey (신뢰할 수 없는 값이면 None)"""
    if isinstance(value, AccountKey):
        return value
    if not isinstance(value, str):
        return None
    try:
        return AccountKey(value)
    except ValueError:
        return None


def parse_currency(value: object) -> Currency | None:
    """문자열 → Currency (신뢰할 수 없는 값이면 None)"""
    if isinstance(value, Currency):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Currency(value)
    except ValueError:
        return None
