"""
MovementStore - Movement 저장소

fund_movements 테이블: 자금(fund_id)별 파티션, Movement당 1행.
- upsert / delete (ID 기준)
- 생성 시간 내림차순 페이지 조회 (구간 필터 + 키셋 커서)
- 레거시 Movement 배열 마이그레이션 (청크 단위, 재실행 안전)

created_at은 항상 같은 형식의 UTC ISO 문자열로 저장하므로 문자열 정렬 = 시간 정렬.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.domain.models import Movement, MovementPage, PageCursor
from core.utils.idempotency import make_legacy_movement_id
from core.utils.timezone import now_utc, to_utc_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationReport:
    """레거시 마이그레이션 결과

    Attributes:
        fund_id: 자금 파티션 키
        total: 레거시 레코드 수
        written: upsert된 Movement 수
        chunks: 커밋된 청크 수
    """

    fund_id: str
    total: int
    written: int
    chunks: int


def _movement_params(fund_id: str, movement: Movement) -> tuple[Any, ...]:
    return (
        fund_id,
        movement.id,
        to_utc_iso(movement.created_at),
        movement.account_id.value,
        movement.currency.value,
        movement.kind.value,
        movement.original_entry_id,
        json.dumps(movement.to_record(), ensure_ascii=False),
        now_utc().isoformat(),
    )


_UPSERT_SQL = """
    INSERT INTO fund_movements (
        fund_id, movement_id, created_at, account_id, currency,
        kind, original_entry_id, payload_json, updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(fund_id, movement_id) DO UPDATE SET
        created_at = excluded.created_at,
        account_id = excluded.account_id,
        currency = excluded.currency,
        kind = excluded.kind,
        original_entry_id = excluded.original_entry_id,
        payload_json = excluded.payload_json,
        updated_at = excluded.updated_at
"""


class MovementStore:
    """Movement 저장소

    Args:
        db: SQLiteAdapter 인스턴스

    사용 예시:
    ```python
    store = MovementStore(db)
    await store.upsert(fund_id, movement)

    page = await store.list_page(fund_id, page_size=500, start=window.start, end=window.end)
    while not page.exhausted:
        page = await store.list_page(fund_id, page_size=500, cursor=page.cursor, ...)
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # =========================================================================
    # 쓰기
    # =========================================================================

    async def upsert(self, fund_id: str, movement: Movement) -> None:
        """Movement 저장 (ID 기준 UPSERT)"""
        await self.db.execute(_UPSERT_SQL, _movement_params(fund_id, movement))
        await self.db.commit()

    async def delete(self, fund_id: str, movement_id: str) -> bool:
        """Movement 삭제

        Returns:
            삭제된 행이 있었는지 여부
        """
        cursor = await self.db.execute(
            "DELETE FROM fund_movements WHERE fund_id = ? AND movement_id = ?",
            (fund_id, movement_id),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def append_audit_log(
        self,
        fund_id: str,
        movement: Movement,
        action: str,
        actor: str,
    ) -> None:
        """권한 작업 감사 로그 기록 (삭제 등)"""
        await self.db.execute(
            """
            INSERT INTO movement_audit_log (fund_id, movement_id, action, actor, record_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                fund_id,
                movement.id,
                action,
                actor,
                json.dumps(movement.to_record(), ensure_ascii=False),
                now_utc().isoformat(),
            ),
        )
        await self.db.commit()

    async def get_audit_log(self, fund_id: str, movement_id: str) -> list[dict[str, Any]]:
        """Movement의 권한 작업 감사 로그 조회 (오래된 순)"""
        rows = await self.db.fetchall(
            """
            SELECT action, actor, record_json, created_at
            FROM movement_audit_log
            WHERE fund_id = ? AND movement_id = ?
            ORDER BY seq
            """,
            (fund_id, movement_id),
        )
        return [
            {
                "action": row[0],
                "actor": row[1],
                "record": json.loads(row[2]),
                "created_at": row[3],
            }
            for row in rows
        ]

    # =========================================================================
    # 조회
    # =========================================================================

    async def get(self, fund_id: str, movement_id: str) -> Movement | None:
        """ID로 Movement 조회"""
        row = await self.db.fetchone(
            """
            SELECT movement_id, payload_json
            FROM fund_movements
            WHERE fund_id = ? AND movement_id = ?
            """,
            (fund_id, movement_id),
        )
        return self._row_to_movement(row) if row else None

    async def count(self, fund_id: str) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM fund_movements WHERE fund_id = ?",
            (fund_id,),
        )
        return int(row[0]) if row else 0

    async def list_page(
        self,
        fund_id: str,
        page_size: int = Defaults.PAGE_SIZE,
        cursor: PageCursor | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MovementPage:
        """생성 시간 내림차순 페이지 조회

        Args:
            fund_id: 자금 파티션 키
            page_size: 페이지 크기 (1..500)
            cursor: 이전 페이지 마지막 항목 (없으면 처음부터)
            start: 구간 시작 (포함)
            end: 구간 끝 (제외)

        Returns:
            MovementPage (items가 page_size보다 적으면 exhausted)
        """
        page_size = max(1, min(int(page_size), Defaults.MAX_PAGE_SIZE))

        clauses = ["fund_id = ?"]
        params: list[Any] = [fund_id]

        if start is not None:
            clauses.append("created_at >= ?")
            params.append(to_utc_iso(start))
        if end is not None:
            clauses.append("created_at < ?")
            params.append(to_utc_iso(end))
        if cursor is not None:
            clauses.append("(created_at < ? OR (created_at = ? AND movement_id < ?))")
            params.extend([cursor.created_at, cursor.created_at, cursor.movement_id])

        params.append(page_size)
        rows = await self.db.fetchall(
            f"""
            SELECT movement_id, payload_json, created_at
            FROM fund_movements
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, movement_id DESC
            LIMIT ?
            """,
            tuple(params),
        )

        items = tuple(self._row_to_movement(row) for row in rows)
        next_cursor = PageCursor(created_at=rows[-1][2], movement_id=rows[-1][0]) if rows else None

        return MovementPage(
            items=items,
            cursor=next_cursor,
            exhausted=len(rows) < page_size,
        )

    async def list_by_original_entry(self, fund_id: str, original_entry_id: str) -> list[Movement]:
        """DailyClosing에 연결된 조정 Movement 조회"""
        rows = await self.db.fetchall(
            """
            SELECT movement_id, payload_json
            FROM fund_movements
            WHERE fund_id = ? AND original_entry_id = ?
            ORDER BY created_at, movement_id
            """,
            (fund_id, original_entry_id),
        )
        return [self._row_to_movement(row) for row in rows]

    # =========================================================================
    # 레거시 마이그레이션
    # =========================================================================

    async def migrate_legacy(
        self,
        fund_id: str,
        records: Iterable[dict[str, Any]],
        chunk_size: int = Defaults.MIGRATION_CHUNK_SIZE,
    ) -> MigrationReport:
        """레거시 Movement 배열 → 파티션 저장

        기존 ID는 유지, ID가 없으면 결정적 legacy_ ID 생성.
        청크마다 하나의 트랜잭션으로 커밋되며 재실행해도 중복되지 않음 (UPSERT).

        Args:
            fund_id: 자금 파티션 키
            records: 레거시 Movement 레코드 (accountId/currency 보장된 형태)
            chunk_size: 트랜잭션당 레코드 수

        Returns:
            MigrationReport
        """
        movements: list[Movement] = []
        for index, record in enumerate(records):
            raw_id = record.get("id")
            movement_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else None
            movements.append(
                Movement.from_record(record, movement_id or make_legacy_movement_id(record, index))
            )

        chunk_size = max(1, chunk_size)
        chunks = 0
        for offset in range(0, len(movements), chunk_size):
            chunk = movements[offset:offset + chunk_size]
            async with self.db.transaction():
                await self.db.executemany(
                    _UPSERT_SQL,
                    [_movement_params(fund_id, m) for m in chunk],
                )
            chunks += 1
            logger.debug(
                f"Legacy chunk committed: {fund_id}",
                extra={"offset": offset, "size": len(chunk)},
            )

        logger.info(
            f"Legacy movements migrated: {fund_id} ({len(movements)} records, {chunks} chunks)"
        )
        return MigrationReport(
            fund_id=fund_id,
            total=len(movements),
            written=len(movements),
            chunks=chunks,
        )

    # =========================================================================
    # 변환
    # =========================================================================

    @staticmethod
    def _row_to_movement(row: tuple[Any, ...]) -> Movement:
        payload = json.loads(row[1]) if isinstance(row[1], str) else row[1]
        return Movement.from_record(payload, row[0])
