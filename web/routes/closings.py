"""
일일 마감 API 라우터

GET   /api/funds/{company}/closings               - 최근 마감 목록
POST  /api/funds/{company}/closings               - 마감 커밋
PATCH /api/funds/{company}/closings/{closing_id}  - 마감 수정 (조정 재계산)
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from adapters.models import Actor
from core.ledger.query_planner import resolve_window
from engine.service import FundLedgerService
from web.dependencies import get_actor, get_service
from web.models.requests import ClosingCreateRequest, ClosingPatchRequest
from web.models.responses import ClosingResponse, ClosingResultResponse

router = APIRouter(prefix="/api/funds", tags=["Closings"])


@router.get("/{company}/closings", response_model=list[ClosingResponse])
async def list_closings(
    company: str,
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    limit: int = Query(default=50, ge=1, le=500),
    service: FundLedgerService = Depends(get_service),
) -> list[ClosingResponse]:
    """최근 마감 목록 (구간을 주지 않으면 전체에서 최신순)"""
    window = None
    if from_date is not None and to_date is not None:
        window = resolve_window(from_date=from_date, to_date=to_date)
    closings = await service.list_closings(company, limit=limit, window=window)
    return [ClosingResponse.from_domain(c) for c in closings]


@router.post("/{company}/closings", response_model=ClosingResultResponse, status_code=201)
async def commit_closing(
    company: str,
    request: ClosingCreateRequest,
    service: FundLedgerService = Depends(get_service),
) -> ClosingResultResponse:
    """일일 마감 커밋"""
    result = await service.commit_daily_closing(company, request.to_draft())
    return ClosingResultResponse.from_domain(result)


@router.patch("/{company}/closings/{closing_id}", response_model=ClosingResultResponse)
async def edit_closing(
    company: str,
    closing_id: str,
    request: ClosingPatchRequest,
    service: FundLedgerService = Depends(get_service),
    actor: Actor = Depends(get_actor),
) -> ClosingResultResponse:
    """일일 마감 수정"""
    result = await service.edit_daily_closing(company, closing_id, request.to_patch(), actor)
    return ClosingResultResponse.from_domain(result)
