"""
FundStore - 자금 잔액/설정 문서 저장소

fund_ledger 테이블: 회사(자금)당 1건의 문서 (JSON) + version.
읽을 때마다 정규화(normalize_fund_document)하며 캐시하지 않는다.
잔액 변경은 항상 최신 스냅샷을 기준으로 계산해야 하기 때문.

문서 키: movements_<company> (회사명이 없으면 movements_global)
"""

import json
import logging
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.errors import PersistenceError
from core.domain.models import FundLedger
from core.ledger.normalizer import build_fund_id, empty_fund_ledger, normalize_fund_document
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class FundStore:
    """자금 문서 저장소

    Args:
        db: SQLiteAdapter 인스턴스

    사용 예시:
    ```python
    fund_store = FundStore(db)

    ledger, version = await fund_store.load_snapshot("Delifood")
    await fund_store.save(build_fund_id("Delifood"), new_ledger, updated_by="maria", expected_version=version)
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def get_raw(self, fund_id: str) -> tuple[dict[str, Any] | None, int]:
        """저장된 원본 문서 조회

        Returns:
            (문서 또는 None, version - 없으면 0)
        """
        row = await self.db.fetchone(
            "SELECT document_json, version FROM fund_ledger WHERE fund_id = ?",
            (fund_id,),
        )
        if not row:
            return None, 0

        document = json.loads(row[0]) if isinstance(row[0], str) else row[0]
        return document, int(row[1])

    async def load_snapshot(self, company: str) -> tuple[FundLedger, int]:
        """최신 정규화 스냅샷 + version"""
        raw, version = await self.get_raw(build_fund_id(company))
        if raw is None:
            return empty_fund_ledger(company), 0
        return normalize_fund_document(raw, company), version

    async def load(self, company: str) -> FundLedger:
        """최신 정규화 스냅샷"""
        ledger, _ = await self.load_snapshot(company)
        return ledger

    async def save(
        self,
        fund_id: str,
        ledger: FundLedger,
        updated_by: str,
        expected_version: int | None = None,
    ) -> int:
        """문서 저장 (UPSERT, version 증가)

        문서 키는 항상 호출자가 준 fund_id를 사용한다.
        문서 안의 company(레거시 ownerId 포함)는 키에 쓰지 않는다.

        Args:
            fund_id: 문서 키 (build_fund_id)
            ledger: 저장할 FundLedger
            updated_by: 변경 주체
            expected_version: 읽을 때의 version (다르면 충돌)

        Returns:
            새 version

        Raises:
            PersistenceError: version 충돌
        """
        now = now_utc().isoformat()
        document_json = json.dumps(ledger.to_document(), ensure_ascii=False)

        if expected_version:
            cursor = await self.db.execute(
                """
                UPDATE fund_ledger
                SET document_json = ?, version = version + 1, updated_by = ?, updated_at = ?
                WHERE fund_id = ? AND version = ?
                """,
                (document_json, updated_by, now, fund_id, expected_version),
            )
            if cursor.rowcount == 0:
                raise PersistenceError(
                    "save_fund",
                    f"{fund_id} changed concurrently (expected version {expected_version})",
                )
            await self.db.commit()
            return expected_version + 1

        await self.db.execute(
            """
            INSERT INTO fund_ledger (fund_id, company, document_json, version, updated_by, created_at, updated_at)
            VALUES (?, ?, ?, 1, ?, ?, ?)
            ON CONFLICT(fund_id) DO UPDATE SET
                document_json = excluded.document_json,
                version = fund_ledger.version + 1,
                updated_by = excluded.updated_by,
                updated_at = excluded.updated_at
            """,
            (fund_id, ledger.company, document_json, updated_by, now, now),
        )
        await self.db.commit()

        row = await self.db.fetchone(
            "SELECT version FROM fund_ledger WHERE fund_id = ?",
            (fund_id,),
        )
        version = int(row[0]) if row else 1
        logger.debug(f"Fund document saved: {fund_id} v{version} by {updated_by}")
        return version

    async def ensure(self, company: str, updated_by: str = "system:init") -> FundLedger:
        """문서가 없으면 기본 문서 생성"""
        ledger, version = await self.load_snapshot(company)
        if version == 0:
            await self.save(build_fund_id(company), ledger, updated_by=updated_by)
            logger.info(f"Created default fund document: {build_fund_id(company)}")
        return ledger
