"""
ClosingStore - 일일 마감 저장소

daily_closings 테이블: 자금별 DailyClosing 1건당 1행.
조정 Movement는 마감 레코드가 저장 확인된 뒤에만 생성되므로
save_verified()로 다시 읽어 확인한다.
"""

import json
import logging
from datetime import datetime
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.errors import PersistenceError
from core.domain.models import DailyClosing
from core.utils.timezone import now_utc, to_utc_iso

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class ClosingStore:
    """일일 마감 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def save(self, fund_id: str, closing: DailyClosing) -> None:
        """마감 저장 (UPSERT)"""
        await self.db.execute(
            """
            INSERT INTO daily_closings (
                fund_id, closing_id, created_at, closing_date,
                account_id, state, record_json, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(fund_id, closing_id) DO UPDATE SET
                closing_date = excluded.closing_date,
                account_id = excluded.account_id,
                state = excluded.state,
                record_json = excluded.record_json,
                updated_at = excluded.updated_at
            """,
            (
                fund_id,
                closing.id,
                to_utc_iso(closing.created_at),
                to_utc_iso(closing.closing_date),
                closing.account_id.value,
                closing.state.value,
                json.dumps(closing.to_record(), ensure_ascii=False),
                now_utc().isoformat(),
            ),
        )
        await self.db.commit()

    async def save_verified(self, fund_id: str, closing: DailyClosing) -> DailyClosing:
        """저장 후 다시 읽어 확인

        Raises:
            PersistenceError: 저장 실패 또는 읽은 값이 다른 경우
        """
        try:
            await self.save(fund_id, closing)
            stored = await self.get(fund_id, closing.id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError("save_closing", str(e)) from e

        if stored is None or stored.to_record() != closing.to_record():
            raise PersistenceError("save_closing", f"closing {closing.id} could not be verified")
        return stored

    async def get(self, fund_id: str, closing_id: str) -> DailyClosing | None:
        """ID로 마감 조회"""
        row = await self.db.fetchone(
            "SELECT record_json FROM daily_closings WHERE fund_id = ? AND closing_id = ?",
            (fund_id, closing_id),
        )
        return self._row_to_closing(row) if row else None

    async def list_recent(
        self,
        fund_id: str,
        limit: int = DEFAULT_LIST_LIMIT,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DailyClosing]:
        """최근 마감 목록 (생성 시간 내림차순)"""
        clauses = ["fund_id = ?"]
        params: list[Any] = [fund_id]
        if start is not None:
            clauses.append("created_at >= ?")
            params.append(to_utc_iso(start))
        if end is not None:
            clauses.append("created_at < ?")
            params.append(to_utc_iso(end))
        params.append(max(1, limit))

        rows = await self.db.fetchall(
            f"""
            SELECT record_json
            FROM daily_closings
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, closing_id DESC
            LIMIT ?
            """,
            tuple(params),
        )
        closings = (self._row_to_closing(row) for row in rows)
        return [c for c in closings if c is not None]

    @staticmethod
    def _row_to_closing(row: tuple[Any, ...]) -> DailyClosing | None:
        raw = json.loads(row[0]) if isinstance(row[0], str) else row[0]
        closing = DailyClosing.from_record(raw)
        if closing is None:
            logger.warning("Malformed daily closing record skipped")
        return closing
