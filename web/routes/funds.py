"""
자금 API 라우터

잔액 조회/설정, Movement 조회/등록/수정/삭제, 레거시 마이그레이션.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from adapters.models import Actor
from core.ledger.query_planner import resolve_window
from core.types import AccountKey, Currency
from engine.service import FundLedgerService
from web.dependencies import get_actor, get_service
from web.models.requests import BalanceUpdateRequest, MovementCreateRequest, MovementPatchRequest
from web.models.responses import (
    AuditLogEntryResponse,
    BalanceResponse,
    MigrationResponse,
    MovementListResponse,
    MovementResponse,
    MutationResponse,
    WindowResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/funds", tags=["Funds"])


# =========================================================================
# 잔액
# =========================================================================


@router.get("/{company}/balances", response_model=list[BalanceResponse])
async def list_balances(
    company: str,
    service: FundLedgerService = Depends(get_service),
) -> list[BalanceResponse]:
    """계정 × 통화 전체 잔액"""
    ledger = await service.get_ledger(company)
    return [BalanceResponse.from_domain(b) for b in ledger.balances]


@router.get("/{company}/balances/{account_id}/{currency}", response_model=BalanceResponse)
async def get_balance(
    company: str,
    account_id: AccountKey,
    currency: Currency,
    service: FundLedgerService = Depends(get_service),
) -> BalanceResponse:
    """계정 × 통화 현재 잔액"""
    ledger = await service.get_ledger(company)
    return BalanceResponse.from_domain(ledger.get_balance(account_id, currency))


@router.put("/{company}/balances/{account_id}", response_model=MutationResponse)
async def update_balances(
    company: str,
    account_id: AccountKey,
    request: BalanceUpdateRequest,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> MutationResponse:
    """초기 잔액 변경 / 현재 잔액 덮어쓰기"""
    result = await service.update_balances(
        company,
        account_id,
        initial_balances=request.initial_balances,
        current_overrides=request.current_overrides,
        actor=actor,
    )
    return MutationResponse.from_domain(result)


# =========================================================================
# Movement
# =========================================================================


@router.get("/{company}/movements", response_model=MovementListResponse)
async def list_movements(
    company: str,
    day: date | None = Query(default=None, description="조회 일자 (현지)"),
    from_date: date | None = Query(default=None, alias="from", description="구간 시작 일자"),
    to_date: date | None = Query(default=None, alias="to", description="구간 끝 일자 (포함)"),
    account_id: AccountKey | None = Query(default=None, description="계정 필터"),
    currency: Currency | None = Query(default=None, description="통화 (계정과 함께 주면 직전/직후 잔액 포함)"),
    refresh: bool = Query(default=False, description="캐시 무시"),
    service: FundLedgerService = Depends(get_service),
) -> MovementListResponse:
    """구간 내 Movement 조회 (최신순)"""
    window = resolve_window(selected_day=day, from_date=from_date, to_date=to_date)
    movements = await service.list_movements(company, window, account_id, refresh=refresh)

    running = {}
    if account_id is not None and currency is not None:
        running = await service.running_balances(company, account_id, currency, movements)

    return MovementListResponse(
        window=WindowResponse.from_domain(window),
        count=len(movements),
        items=[MovementResponse.from_domain(m, running.get(m.id)) for m in movements],
    )


@router.get("/{company}/movements/{movement_id}", response_model=MovementResponse)
async def get_movement(
    company: str,
    movement_id: str,
    service: FundLedgerService = Depends(get_service),
) -> MovementResponse:
    movement = await service.get_movement(company, movement_id)
    return MovementResponse.from_domain(movement)


@router.get("/{company}/movements/{movement_id}/audit-log", response_model=list[AuditLogEntryResponse])
async def get_audit_log(
    company: str,
    movement_id: str,
    service: FundLedgerService = Depends(get_service),
) -> list[AuditLogEntryResponse]:
    """권한 작업 감사 로그 (삭제된 Movement 포함, 오래된 순)"""
    entries = await service.get_audit_log(company, movement_id)
    return [AuditLogEntryResponse.from_domain(e) for e in entries]


@router.post("/{company}/movements", response_model=MutationResponse, status_code=201)
async def record_movement(
    company: str,
    request: MovementCreateRequest,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> MutationResponse:
    """Movement 등록"""
    result = await service.record_movement(company, request.to_draft(), actor)
    return MutationResponse.from_domain(result)


@router.patch("/{company}/movements/{movement_id}", response_model=MutationResponse)
async def edit_movement(
    company: str,
    movement_id: str,
    request: MovementPatchRequest,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> MutationResponse:
    """Movement 수정 (감사 이력 기록)"""
    result = await service.edit_movement(company, movement_id, request.to_patch(), actor)
    return MutationResponse.from_domain(result)


@router.delete("/{company}/movements/{movement_id}", response_model=MutationResponse)
async def delete_movement(
    company: str,
    movement_id: str,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> MutationResponse:
    """Movement 삭제"""
    result = await service.delete_movement(company, movement_id, actor)
    return MutationResponse.from_domain(result)


# =========================================================================
# 마이그레이션
# =========================================================================


@router.post("/{company}/migrate", response_model=MigrationResponse)
async def migrate_legacy_movements(
    company: str,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> MigrationResponse:
    """잔액 문서 내 레거시 Movement 배열 이전"""
    report = await service.migrate_legacy_movements(company, actor)
    return MigrationResponse.from_domain(report)
