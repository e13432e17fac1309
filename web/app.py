"""
FastAPI 애플리케이션

라우터 등록, Ledger 오류 → HTTP 응답 변환, 앱 수명 주기 관리.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.domain.errors import (
    AuditCapExceededError,
    ConcurrentEditError,
    LedgerError,
    LockedMovementError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from web.routes import closings, funds, health

logger = logging.getLogger(__name__)

# 오류 종류 → HTTP 상태 코드
ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConcurrentEditError: 409,
    AuditCapExceededError: 409,
    LockedMovementError: 423,
    PersistenceError: 503,
}


def status_for(error: LedgerError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """LedgerError → JSON 응답 (발동한 제약 포함)"""
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.constraint}")
    return JSONResponse(status_code=status, content=exc.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리

    서비스가 이미 설정되어 있으면(테스트) 그대로 사용.
    """
    from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
    from adapters.directory.yaml_directory import YamlProviderDirectory
    from adapters.mailer.notifier import HttpMailNotifier
    from core.config.loader import get_settings
    from core.logging import setup_logging
    from engine.service import FundLedgerService
    from web.dependencies import is_service_ready, set_service

    if is_service_ready():
        yield
        return

    settings = get_settings()
    setup_logging("web", console_level=getattr(logging, settings.log_level, logging.INFO))

    # 거래처 디렉토리 (없으면 유형 자동 지정/거래처 출금 알림 생략)
    directory = None
    if settings.directory.path is not None:
        directory = YamlProviderDirectory.load(settings.directory.path)

    # 시작 시 - DB 연결 + 스키마 자동 초기화
    db = SQLiteAdapter(settings.db_path)
    await db.connect()
    await init_schema(db)

    notifier = None
    if settings.mailer.enabled:
        notifier = HttpMailNotifier(
            relay_url=settings.mailer.relay_url,
            api_key=settings.mailer.api_key or None,
            sender=settings.mailer.sender or None,
            timeout=settings.mailer.timeout_sec,
        )

    service = FundLedgerService(
        db,
        settings.ledger,
        directory=directory,
        notifier=notifier,
        closing_recipients=settings.mailer.closing_recipients,
    )
    set_service(service)
    logger.info(f"Web: Ledger service ready ({settings.db_path})")

    yield

    # 종료 시 - 리소스 정리
    await service.drain()
    if notifier is not None:
        await notifier.close()
    await db.close()
    set_service(None)
    logger.info("Web: DB 연결 종료 완료")


def create_app() -> FastAPI:
    """FastAPI 앱 생성"""
    application = FastAPI(
        title="Fondo Ledger API",
        description="자금 Movement Ledger 및 일일 마감 대조 API",
        version=health.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS 설정 (개발용)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(LedgerError, ledger_error_handler)

    application.include_router(health.router)
    application.include_router(funds.router)
    application.include_router(closings.router)
    return application


app = create_app()
