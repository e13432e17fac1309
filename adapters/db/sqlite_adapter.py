"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
Engine(API 서비스)과 마이그레이션 스크립트가 동시에 접근 가능하도록 설정.

주의: SQLite alias로 time, count 사용 금지 (예약어)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)
        readonly: 읽기 전용 여부

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    if db_path_str == MEMORY_DB:
        conn = await aiosqlite.connect(MEMORY_DB)
    else:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        if readonly:
            conn = await aiosqlite.connect(f"file:{db_path_str}?mode=ro", uri=True)
        else:
            conn = await aiosqlite.connect(db_path_str)

    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드 연결 + 트랜잭션 컨텍스트 매니저.

    transaction()은 재진입 가능:
    - 같은 Task 안에서 중첩되면 바깥 트랜잭션에 합류 (커밋/롤백은 가장 바깥에서 한 번)
    - 다른 Task는 진행 중인 트랜잭션이 끝날 때까지 대기
    트랜잭션 안에서 호출된 commit()은 무시된다.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부

    사용 예시:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None
        self._tx_depth = 0

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """현재 Task가 트랜잭션 안에 있는지"""
        return self._tx_depth > 0 and self._tx_owner is asyncio.current_task()

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    async def _wait_for_other_transaction(self) -> None:
        """다른 Task의 트랜잭션이 끝날 때까지 대기"""
        if self._tx_depth > 0 and not self.in_transaction:
            async with self._tx_lock:
                pass

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        await self._wait_for_other_transaction()

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """SQL 다중 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        await self._wait_for_other_transaction()

        return await self._conn.executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchall()

    async def commit(self) -> None:
        """커밋 (트랜잭션 안에서는 무시)"""
        if self._conn is not None and not self.in_transaction:
            await self._wait_for_other_transaction()
            await self._conn.commit()

    async def rollback(self) -> None:
        """롤백"""
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if self.in_transaction:
            self._tx_depth += 1
            try:
                yield self._conn
            finally:
                self._tx_depth -= 1
            return

        async with self._tx_lock:
            self._tx_owner = asyncio.current_task()
            self._tx_depth = 1
            try:
                yield self._conn
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise
            finally:
                self._tx_depth = 0
                self._tx_owner = None

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성)

    Args:
        adapter: 연결된 SQLiteAdapter
    """
    # 자금 잔액/설정 문서 (회사당 1건)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS fund_ledger (
            fund_id        TEXT PRIMARY KEY,
            company        TEXT NOT NULL,
            document_json  TEXT NOT NULL,
            version        INTEGER NOT NULL DEFAULT 1,

            updated_by     TEXT NOT NULL,
            created_at     TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at     TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # Movement (자금별 파티션, Movement당 1건)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS fund_movements (
            fund_id            TEXT NOT NULL,
            movement_id        TEXT NOT NULL,
            created_at         TEXT NOT NULL,

            account_id         TEXT NOT NULL,
            currency           TEXT NOT NULL,
            kind               TEXT NOT NULL DEFAULT 'ORDINARY',
            original_entry_id  TEXT,

            payload_json       TEXT NOT NULL,
            updated_at         TEXT NOT NULL DEFAULT (datetime('now')),

            PRIMARY KEY (fund_id, movement_id)
        )
    """)

    # 일일 마감
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS daily_closings (
            fund_id       TEXT NOT NULL,
            closing_id    TEXT NOT NULL,
            created_at    TEXT NOT NULL,
            closing_date  TEXT NOT NULL,

            account_id    TEXT NOT NULL,
            state         TEXT NOT NULL,

            record_json   TEXT NOT NULL,
            updated_at    TEXT NOT NULL DEFAULT (datetime('now')),

            PRIMARY KEY (fund_id, closing_id)
        )
    """)

    # 권한 작업 감사 로그 (Movement 삭제 등)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS movement_audit_log (
            seq           INTEGER PRIMARY KEY AUTOINCREMENT,
            fund_id       TEXT NOT NULL,
            movement_id   TEXT NOT NULL,
            action        TEXT NOT NULL,
            actor         TEXT NOT NULL,
            record_json   TEXT NOT NULL,
            created_at    TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # 인덱스 생성
    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_fund_movements_created
        ON fund_movements(fund_id, created_at DESC, movement_id DESC)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_fund_movements_entry
        ON fund_movements(fund_id, original_entry_id)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_daily_closings_created
        ON daily_closings(fund_id, created_at DESC)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_movement_audit_log_movement
        ON movement_audit_log(fund_id, movement_id)
    """)

    await adapter.commit()

    logger.info("스키마 초기화 완료")
