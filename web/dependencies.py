"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
"""

from fastapi import Header, HTTPException

from adapters.models import Actor
from engine.service import FundLedgerService


# =========================================================================
# FundLedgerService (앱 수명 동안 공유)
# =========================================================================

# lifespan 또는 테스트에서 설정되는 전역 서비스 인스턴스
# 자금별 Lock/캐시를 요청 간에 공유해야 하므로 요청마다 만들지 않음
_service: FundLedgerService | None = None


def set_service(service: FundLedgerService | None) -> None:
    """FundLedgerService 설정

    Args:
        service: FundLedgerService 인스턴스 (None이면 해제)
    """
    global _service
    _service = service


def get_service() -> FundLedgerService:
    """FundLedgerService 반환

    Raises:
        HTTPException: 서비스가 초기화되지 않은 경우 503
    """
    if _service is None:
        raise HTTPException(
            status_code=503,
            detail={"error": "ServiceUnavailable", "message": "Ledger service is not initialized"},
        )
    return _service


def is_service_ready() -> bool:
    """서비스 초기화 여부"""
    return _service is not None


def get_actor(
    x_actor: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """요청 헤더의 작업 주체

    인증은 앞단(게이트웨이)에서 끝났다고 보고 이름/역할만 읽는다.
    """
    name = (x_actor or "").strip() or "anonimo"
    role = (x_actor_role or "").strip() or "user"
    return Actor(name=name, role=role)
