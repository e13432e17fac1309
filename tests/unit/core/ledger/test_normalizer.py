"""
core/ledger/normalizer.py 테스트

정규/레거시 문서 → FundLedger 변환, 멱등성
"""

from datetime import datetime, timezone

import pytest

from core.ledger.normalizer import (
    build_fund_id,
    detect_shape,
    empty_fund_ledger,
    ensure_movement_envelope,
    normalize_fund_document,
)
from core.types import (
    ACCOUNT_KEYS,
    CURRENCY_KEYS,
    AccountKey,
    Currency,
    DocumentShape,
)

COMPANY = "Delifood"


class TestBuildFundId:
    def test_company(self) -> None:
        assert build_fund_id(" Delifood ") == "movements_Delifood"

    def test_empty_company(self) -> None:
        assert build_fund_id("") == "movements_global"
        assert build_fund_id("   ") == "movements_global"


class TestDetectShape:
    """문서 형태 판별"""

    def test_empty(self) -> None:
        assert detect_shape(None) == DocumentShape.EMPTY
        assert detect_shape([1, 2]) == DocumentShape.EMPTY

    def test_canonical(self) -> None:
        assert detect_shape({"state": {}, "operations": {}}) == DocumentShape.CANONICAL

    def test_legacy_buckets(self) -> None:
        assert detect_shape({"accounts": {}}) == DocumentShape.LEGACY_BUCKETS

    def test_legacy_metadata(self) -> None:
        assert detect_shape({"metadata": {}}) == DocumentShape.LEGACY_METADATA


class TestNormalizeEmpty:
    def test_non_mapping_gives_full_grid(self) -> None:
        """매핑이 아니면 기본 설정 + 전체 0 잔액"""
        ledger = normalize_fund_document("garbage", COMPANY)

        assert ledger.company == COMPANY
        assert len(ledger.balances) == len(ACCOUNT_KEYS) * len(CURRENCY_KEYS)
        assert all(b.current_balance == 0 and b.initial_balance == 0 for b in ledger.balances)
        assert ledger.locked_until is None
        assert ledger.operations == ()

    def test_grid_order(self) -> None:
        ledger = normalize_fund_document({}, COMPANY)
        assert [b.key for b in ledger.balances][:3] == [
            (AccountKey.FONDO_GENERAL, Currency.CRC),
            (AccountKey.FONDO_GENERAL, Currency.USD),
            (AccountKey.BCR, Currency.CRC),
        ]


class TestNormalizeCanonical:
    """정규 문서"""

    @pytest.fixture
    def document(self) -> dict:
        return {
            "company": "Delifood",
            "configuration": {
                "accounts": [
                    {"id": "FondoGeneral", "label": "Caja", "supportedCurrencies": ["CRC", "USD"]},
                    {"id": "BCR", "supportedCurrencies": ["CRC", "EUR"]},
                    {"id": "Desconocida"},
                ],
                "currencies": [{"code": "CRC"}, {"code": "USD", "enabled": False}],
            },
            "operations": {"movements": [{"id": "m1", "amountCredit": 5}]},
            "state": {
                "balancesByAccount": [
                    {
                        "accountId": "FondoGeneral",
                        "currency": "CRC",
                        "initialBalance": "1000.9",
                        "currentBalance": 4500,
                        "lastClosingId": "dc_1",
                    },
                    {"accountId": "BCR", "currency": "CRC", "currentBalance": "abc", "enabled": False},
                    {"accountId": "Fantasma", "currency": "CRC", "currentBalance": 99},
                ],
                "updatedAt": "2024-03-05T15:00:00Z",
                "lockedUntil": "2024-03-04T23:59:00-06:00",
            },
        }

    def test_balances(self, document: dict) -> None:
        ledger = normalize_fund_document(document, COMPANY)
        general = ledger.get_balance(AccountKey.FONDO_GENERAL, Currency.CRC)

        assert general.initial_balance == 1000
        assert general.current_balance == 4500
        assert general.extra == {"lastClosingId": "dc_1"}

    def test_invalid_amount_becomes_zero(self, document: dict) -> None:
        ledger = normalize_fund_document(document, COMPANY)
        bcr = ledger.get_balance(AccountKey.BCR, Currency.CRC)

        assert bcr.current_balance == 0
        assert bcr.enabled is False

    def test_untrusted_keys_dropped(self, document: dict) -> None:
        """알 수 없는 계정/통화 제거, 전체 조합은 유지"""
        ledger = normalize_fund_document(document, COMPANY)

        assert [a.id for a in ledger.accounts] == [AccountKey.FONDO_GENERAL, AccountKey.BCR]
        assert ledger.accounts[0].label == "Caja"
        assert ledger.accounts[1].label == "BCR"
        assert ledger.accounts[1].supported_currencies == (Currency.CRC,)
        assert len(ledger.balances) == 8

    def test_currency_configuration(self, document: dict) -> None:
        ledger = normalize_fund_document(document, COMPANY)

        assert not ledger.supports(AccountKey.FONDO_GENERAL, Currency.USD)
        assert ledger.supports(AccountKey.FONDO_GENERAL, Currency.CRC)
        assert not ledger.supports(AccountKey.BCR, Currency.CRC)  # 잔액 항목 비활성
        assert not ledger.supports(AccountKey.BN, Currency.CRC)  # 설정에 없는 계정

    def test_lock_and_timestamps(self, document: dict) -> None:
        ledger = normalize_fund_document(document, COMPANY)

        assert ledger.locked_until == datetime(2024, 3, 5, 5, 59, tzinfo=timezone.utc)
        assert ledger.updated_at == datetime(2024, 3, 5, 15, 0, tzinfo=timezone.utc)

    def test_operations_get_envelope(self, document: dict) -> None:
        ledger = normalize_fund_document(document, COMPANY)
        assert ledger.operations == (
            {"id": "m1", "amountCredit": 5, "accountId": "FondoGeneral", "currency": "CRC"},
        )

    def test_idempotent(self, document: dict) -> None:
        """normalize(to_document(ledger)) == ledger"""
        ledger = normalize_fund_document(document, COMPANY)
        assert normalize_fund_document(ledger.to_document(), COMPANY) == ledger

    def test_idempotent_empty(self) -> None:
        ledger = empty_fund_ledger(COMPANY)
        assert normalize_fund_document(ledger.to_document(), COMPANY) == ledger

    def test_company_from_owner(self) -> None:
        ledger = normalize_fund_document({"ownerId": "Otra", "state": {}}, COMPANY)
        assert ledger.company == "Otra"


class TestNormalizeLegacy:
    """레거시 문서"""

    def test_legacy_buckets_flattened(self) -> None:
        """accounts.{account}.{currency}.movements → operations"""
        raw = {
            "accounts": {
                "BCR": {
                    "USD": {"movements": [{"id": "a", "amountIngreso": 10}]},
                    "CRC": {"movements": [{"id": "b", "accountId": "BN", "currency": "XXX"}]},
                },
                "Nope": {"CRC": {"movements": [{"id": "c"}]}},
            }
        }
        ledger = normalize_fund_document(raw, COMPANY)

        by_id = {m["id"]: m for m in ledger.operations}
        assert set(by_id) == {"a", "b"}
        assert (by_id["a"]["accountId"], by_id["a"]["currency"]) == ("BCR", "USD")
        # 레코드 자체의 유효한 계정은 유지, 잘못된 통화는 버킷 위치로
        assert (by_id["b"]["accountId"], by_id["b"]["currency"]) == ("BN", "CRC")

    def test_legacy_metadata_accounts(self) -> None:
        raw = {
            "metadata": {
                "accounts": {"BCR": {"CRC": {"initialBalance": 1000, "currentBalance": "500.7"}}},
                "updatedAt": "2024-03-01T00:00:00Z",
            }
        }
        ledger = normalize_fund_document(raw, COMPANY)
        bcr = ledger.get_balance(AccountKey.BCR, Currency.CRC)

        assert (bcr.initial_balance, bcr.current_balance) == (1000, 500)
        assert ledger.get_balance(AccountKey.BN, Currency.CRC).current_balance == 0
        assert ledger.updated_at == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_legacy_metadata_currencies(self) -> None:
        """통화별 설정은 모든 계정에 적용"""
        raw = {"metadata": {"currencies": {"USD": {"enabled": False, "initialBalance": 7}}}}
        ledger = normalize_fund_document(raw, COMPANY)

        for account in ACCOUNT_KEYS:
            usd = ledger.get_balance(account, Currency.USD)
            assert usd.enabled is False
            assert usd.initial_balance == 7

    @pytest.mark.parametrize(
        "raw",
        [
            pytest.param(
                {
                    "accounts": {
                        "BCR": {"USD": {"movements": [{"id": "a", "amountIngreso": 10}]}},
                        "FondoGeneral": {"CRC": {"movements": [{"id": "b", "currency": "XXX"}]}},
                    }
                },
                id="legacy-buckets",
            ),
            pytest.param(
                {
                    "metadata": {
                        "accounts": {"BCR": {"CRC": {"initialBalance": 1000, "currentBalance": "500.7"}}},
                        "updatedAt": "2024-03-01T00:00:00Z",
                    }
                },
                id="legacy-metadata-accounts",
            ),
            pytest.param(
                {"metadata": {"currencies": {"USD": {"enabled": False, "initialBalance": 7}}}},
                id="legacy-metadata-currencies",
            ),
            pytest.param(
                {"ownerId": "owner-123", "metadata": {"currencies": {"CRC": {"currentBalance": 1000}}}},
                id="owner-id",
            ),
        ],
    )
    def test_idempotent(self, raw: dict) -> None:
        """레거시 문서도 한 번 정규화한 뒤에는 다시 정규화해도 동일"""
        ledger = normalize_fund_document(raw, COMPANY)

        assert detect_shape(ledger.to_document()) == DocumentShape.CANONICAL
        assert normalize_fund_document(ledger.to_document(), COMPANY) == ledger

    def test_owner_document_balances(self) -> None:
        ledger = normalize_fund_document(
            {"ownerId": "owner-123", "metadata": {"currencies": {"CRC": {"currentBalance": 1000}}}},
            COMPANY,
        )

        assert ledger.company == "owner-123"
        assert ledger.get_balance(AccountKey.FONDO_GENERAL, Currency.CRC).current_balance == 1000


class TestEnsureMovementEnvelope:
    def test_fallbacks(self) -> None:
        assert ensure_movement_envelope("x") == {"accountId": "FondoGeneral", "currency": "CRC"}

    def test_does_not_mutate_input(self) -> None:
        original = {"id": "m"}
        ensure_movement_envelope(original, AccountKey.BAC, Currency.USD)
        assert original == {"id": "m"}
