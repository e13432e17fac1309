"""
pytest 공통 fixture 정의

메모리 DB, 고정 시계, 테스트용 설정 파일, Ledger 서비스
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.mock.directory import MockProviderDirectory
from adapters.mock.notifier import MockNotifier
from adapters.models import ProviderEntry
from core.config.loader import LedgerSettings
from engine.service import FundLedgerService

COMPANY = "Delifood"


class FakeClock:
    """수동으로 진행하는 UTC 시계"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml 파일 생성"""
    settings_content = """# 테스트용 settings.yaml
database:
  path: data/test.db

ledger:
  page_size: 200
  max_pages: 10
  migration_chunk_size: 100
  max_audit_edits: 5
  write_confirm_timeout_sec: 2.5
  edit_cooldown_sec: 0
  timezone_offset_hours: -6

mailer:
  enabled: true
  relay_url: "https://mail.example.com/send"
  api_key: "test_key"
  sender: "fondos@example.com"
  closing_recipients:
    - gerencia@example.com
    - contabilidad@example.com

web:
  host: 0.0.0.0
  port: 9000

logging:
  level: debug
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture
def clock() -> FakeClock:
    """2024-03-05 15:00 UTC (현지 09:00)"""
    return FakeClock(datetime(2024, 3, 5, 15, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def memory_db() -> SQLiteAdapter:
    """스키마가 초기화된 메모리 DB"""
    adapter = SQLiteAdapter(":memory:")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def directory() -> MockProviderDirectory:
    """기본 거래처 디렉토리"""
    return MockProviderDirectory(
        {
            COMPANY: [
                ProviderEntry(code="P001", name="Ventas Mostrador", type="VENTAS"),
                ProviderEntry(
                    code="P002",
                    name="Distribuidora Central",
                    type="COMPRA INVENTARIO",
                    notification_email="pagos@distribuidora.cr",
                ),
                ProviderEntry(code="P003", name="Varios", type=None),
            ]
        }
    )


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    """쿨다운 없음 + 작은 마이그레이션 청크"""
    return LedgerSettings(edit_cooldown_sec=0, migration_chunk_size=2)


@pytest_asyncio.fixture
async def service(
    memory_db: SQLiteAdapter,
    ledger_settings: LedgerSettings,
    directory: MockProviderDirectory,
    notifier: MockNotifier,
    clock: FakeClock,
) -> FundLedgerService:
    """메모리 DB 기반 Ledger 서비스"""
    ledger_service = FundLedgerService(
        memory_db,
        ledger_settings,
        directory=directory,
        notifier=notifier,
        closing_recipients=("gerencia@delifood.cr",),
        clock=clock,
    )
    yield ledger_service
    await ledger_service.drain()
