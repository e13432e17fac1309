"""
레거시 Movement 배열 마이그레이션

잔액 문서 안에 들어 있던 Movement 배열을 fund_movements 테이블로 옮긴다.
- 청크(기본 450건) 단위 트랜잭션, 재실행 안전 (UPSERT)
- 모든 청크 저장 후에만 문서의 레거시 배열을 비움

사용법:
    python -m scripts.migrate_movements --company Delifood
    python -m scripts.migrate_movements --company Delifood --import export/delifood.json
    python -m scripts.migrate_movements --company Delifood --dry-run
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.models import Actor
from core.config.loader import SettingsLoadError, get_settings
from core.ledger.normalizer import build_fund_id, detect_shape, normalize_fund_document
from core.logging import setup_logging
from engine.service import FundLedgerService

logger = logging.getLogger(__name__)

MIGRATION_ACTOR = Actor(name="system:migrate", role="system")


async def import_document(service: FundLedgerService, company: str, path: Path) -> int:
    """내보낸 레거시 문서를 잔액 문서로 저장

    Returns:
        문서에 포함된 레거시 Movement 수
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    logger.info(f"Import document: {path} (shape={detect_shape(raw).value})")

    ledger = normalize_fund_document(raw, company)
    _, version = await service.fund_store.load_snapshot(company)
    await service.fund_store.save(
        build_fund_id(company),
        ledger,
        updated_by=MIGRATION_ACTOR.name,
        expected_version=version or None,
    )
    return len(ledger.operations)


async def main(
    company: str,
    db_path: Path | None = None,
    import_path: Path | None = None,
    dry_run: bool = False,
) -> int:
    """마이그레이션 실행

    Returns:
        종료 코드 (0: 성공)
    """
    settings = get_settings()
    db_path = db_path or settings.db_path
    fund_id = build_fund_id(company)

    logger.info("=== 레거시 Movement 마이그레이션 시작 ===")
    logger.info(f"Fund: {fund_id}")
    logger.info(f"DB: {db_path}")
    logger.info(f"Dry Run: {dry_run}")

    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)
        service = FundLedgerService(db, settings.ledger)

        if import_path is not None:
            if dry_run:
                logger.info(f"(Dry Run) import 생략: {import_path}")
            else:
                imported = await import_document(service, company, import_path)
                logger.info(f"Imported legacy movements: {imported}")

        ledger = await service.get_ledger(company)
        pending = len(ledger.operations)
        existing = await service.movement_store.count(fund_id)
        logger.info(f"레거시 Movement: {pending}, 저장된 Movement: {existing}")

        if dry_run:
            chunk_size = settings.ledger.migration_chunk_size
            chunks = (pending + chunk_size - 1) // chunk_size
            logger.info(f"(Dry Run) {chunks}개 청크로 이전 예정 - 실제 저장되지 않음")
            return 0

        report = await service.migrate_legacy_movements(company, MIGRATION_ACTOR)

    logger.info("=== 마이그레이션 완료 ===")
    logger.info(f"대상: {report.total}, 저장: {report.written}, 청크: {report.chunks}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="레거시 Movement 배열 마이그레이션")
    parser.add_argument("--company", required=True, help="회사명 (자금 문서 키)")
    parser.add_argument("--db", type=Path, default=None, help="DB 경로 (기본: settings.yaml)")
    parser.add_argument(
        "--import",
        dest="import_path",
        type=Path,
        default=None,
        help="내보낸 레거시 문서(JSON)를 먼저 저장",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="실제 저장하지 않고 대상 건수만 확인",
    )
    args = parser.parse_args()

    setup_logging("migrate")
    try:
        exit_code = asyncio.run(main(args.company, args.db, args.import_path, args.dry_run))
    except SettingsLoadError as e:
        logger.error(f"설정 로드 실패: {e}")
        exit_code = 1
    sys.exit(exit_code)
