"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    BalanceUpdateRequest,
    ClosingCreateRequest,
    ClosingPatchRequest,
    MovementCreateRequest,
    MovementPatchRequest,
)
from web.models.responses import (
    AuditLogEntryResponse,
    BalanceResponse,
    ClosingResponse,
    ClosingResultResponse,
    ErrorResponse,
    HealthResponse,
    MigrationResponse,
    MovementListResponse,
    MovementResponse,
    MutationResponse,
    WindowResponse,
)

__all__ = [
    # Requests
    "MovementCreateRequest",
    "MovementPatchRequest",
    "BalanceUpdateRequest",
    "ClosingCreateRequest",
    "ClosingPatchRequest",
    # Responses
    "HealthResponse",
    "ErrorResponse",
    "BalanceResponse",
    "MovementResponse",
    "MovementListResponse",
    "AuditLogEntryResponse",
    "MigrationResponse",
    "MutationResponse",
    "WindowResponse",
    "ClosingResponse",
    "ClosingResultResponse",
]
