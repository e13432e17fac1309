"""
core/utils/idempotency.py 테스트

Movement/DailyClosing ID 생성, 파싱, 레거시 결정적 ID 테스트
"""

from datetime import datetime, timezone

import pytest

from core.utils.idempotency import (
    CLOSING_ID_PREFIX,
    LEGACY_ID_PREFIX,
    is_legacy_movement_id,
    make_closing_id,
    make_legacy_movement_id,
    make_movement_id,
    parse_movement_timestamp,
)

MARCH_5 = datetime(2024, 3, 5, tzinfo=timezone.utc)


class TestMakeMovementId:
    """make_movement_id 함수 테스트"""

    def test_format(self) -> None:
        """{epoch_ms}_{account}_{suffix}"""
        result = make_movement_id(MARCH_5, "BCR")
        head, account, suffix = result.split("_")
        assert head == "1709596800000"
        assert account == "BCR"
        assert len(suffix) == 6

    def test_unique(self) -> None:
        """같은 시간/계정이라도 다른 ID"""
        assert make_movement_id(MARCH_5, "BCR") != make_movement_id(MARCH_5, "BCR")

    def test_sortable_by_time(self) -> None:
        """ID 문자열 정렬 = 생성 시간 정렬"""
        earlier = make_movement_id(datetime(2001, 1, 1, tzinfo=timezone.utc), "BN")
        later = make_movement_id(MARCH_5, "BN")
        assert earlier < later

    def test_empty_account_raises(self) -> None:
        with pytest.raises(ValueError, match="account_id"):
            make_movement_id(MARCH_5, "")


class TestParseMovementTimestamp:
    """parse_movement_timestamp 함수 테스트"""

    def test_roundtrip(self) -> None:
        movement_id = make_movement_id(MARCH_5, "FondoGeneral")
        assert parse_movement_timestamp(movement_id) == 1709596800000

    def test_invalid(self) -> None:
        assert parse_movement_timestamp("") is None
        assert parse_movement_timestamp("abc_BCR_123") is None
        assert parse_movement_timestamp("legacy_2024-03-01_P001") is None


class TestMakeClosingId:
    def test_format(self) -> None:
        closing_id = make_closing_id(MARCH_5)
        assert closing_id.startswith(f"{CLOSING_ID_PREFIX}_1709596800000_")


class TestLegacyMovementId:
    """make_legacy_movement_id 함수 테스트"""

    @pytest.fixture
    def record(self) -> dict:
        return {
            "createdAt": "2024-03-01T10:00:00-06:00",
            "providerCode": "P001",
            "invoiceNumber": "F 001/2",
            "amountEgreso": 0,
            "amountIngreso": 1500.0,
        }

    def test_deterministic(self, record: dict) -> None:
        """동일 입력 → 동일 출력 (재실행 안전)"""
        assert make_legacy_movement_id(record, 3) == make_legacy_movement_id(dict(record), 3)

    def test_index_distinguishes_duplicates(self, record: dict) -> None:
        assert make_legacy_movement_id(record, 0) != make_legacy_movement_id(record, 1)

    def test_unsafe_characters_replaced(self, record: dict) -> None:
        result = make_legacy_movement_id(record, 0)
        assert result.startswith(f"{LEGACY_ID_PREFIX}_")
        assert ":" not in result
        assert " " not in result
        assert "/" not in result

    def test_integral_float_amount(self, record: dict) -> None:
        """1500.0 과 1500 은 같은 ID"""
        as_int = dict(record, amountIngreso=1500)
        assert make_legacy_movement_id(record, 0) == make_legacy_movement_id(as_int, 0)

    def test_missing_fields(self) -> None:
        assert make_legacy_movement_id({}, 0) == "legacy____0_0_0"


class TestIsLegacyMovementId:
    def test_detection(self) -> None:
        assert is_legacy_movement_id("legacy_abc")
        assert not is_legacy_movement_id(make_movement_id(MARCH_5, "BCR"))
        assert not is_legacy_movement_id("")
