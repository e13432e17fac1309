"""
Movement Guard

Movement 수정/삭제 전 검증.
여러 규칙을 체인으로 연결하여 검사하고, 첫 번째로 실패한 규칙의 오류를 그대로 발생시킨다.

규칙:
- SystemMovement: 마감 조정 Movement는 일반 경로로 수정/삭제 불가
- ClosedPeriod: 잠금 시점 이전(포함) Movement 수정/삭제 불가
- AuditCap: 최대 수정 횟수 초과 시 수정 불가

동시 수정 방지:
- 같은 Movement 수정이 진행 중이면 거부
- 직전 수정 후 쿨다운 시간 내 재시도 거부
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from core.constants import Defaults
from core.domain.errors import (
    AuditCapExceededError,
    ConcurrentEditError,
    LedgerError,
    LockedMovementError,
)
from core.domain.models import FundLedger, Movement
from core.types import MutationKind

logger = logging.getLogger(__name__)


@dataclass
class GuardCheckResult:
    """규칙 검사 결과"""
    passed: bool
    rule_name: str
    error: LedgerError | None = None


class GuardRule(ABC):
    """Movement 보호 규칙 추상 클래스"""

    @property
    @abstractmethod
    def name(self) -> str:
        """규칙 이름"""
        pass

    @abstractmethod
    def check(self, movement: Movement, ledger: FundLedger) -> GuardCheckResult:
        """규칙 검사

        Args:
            movement: 대상 Movement (변경 전)
            ledger: 최신 FundLedger 스냅샷

        Returns:
            GuardCheckResult
        """
        pass

    def applies_to(self, kind: MutationKind) -> bool:
        """해당 변경 유형에 적용되는지 여부"""
        return kind in (MutationKind.EDIT, MutationKind.DELETE)


class SystemMovementRule(GuardRule):
    """마감 조정 Movement 보호"""

    @property
    def name(self) -> str:
        return "SystemMovement"

    def check(self, movement: Movement, ledger: FundLedger) -> GuardCheckResult:
        if movement.is_system:
            return GuardCheckResult(
                passed=False,
                rule_name=self.name,
                error=LockedMovementError(movement.id, LockedMovementError.REASON_SYSTEM),
            )
        return GuardCheckResult(passed=True, rule_name=self.name)


class ClosedPeriodRule(GuardRule):
    """잠금 시점 이전 Movement 보호"""

    @property
    def name(self) -> str:
        return "ClosedPeriod"

    def check(self, movement: Movement, ledger: FundLedger) -> GuardCheckResult:
        if ledger.is_locked(movement.created_at):
            return GuardCheckResult(
                passed=False,
                rule_name=self.name,
                error=LockedMovementError(
                    movement.id,
                    LockedMovementError.REASON_CLOSED,
                    locked_until=ledger.locked_until,
                ),
            )
        return GuardCheckResult(passed=True, rule_name=self.name)


class AuditCapRule(GuardRule):
    """최대 수정 횟수 제한"""

    def __init__(self, max_edits: int = Defaults.MAX_AUDIT_EDITS):
        self.max_edits = max_edits

    @property
    def name(self) -> str:
        return "AuditCap"

    def applies_to(self, kind: MutationKind) -> bool:
        return kind == MutationKind.EDIT

    def check(self, movement: Movement, ledger: FundLedger) -> GuardCheckResult:
        if len(movement.audit_history) >= self.max_edits:
            return GuardCheckResult(
                passed=False,
                rule_name=self.name,
                error=AuditCapExceededError(movement.id, self.max_edits),
            )
        return GuardCheckResult(passed=True, rule_name=self.name)


class MovementGuard:
    """Movement Guard

    수정/삭제 전 규칙 검사 + 같은 Movement 동시 수정 방지.

    Args:
        cooldown_sec: 같은 Movement 재수정 쿨다운 (초)
        max_edits: 최대 수정 횟수
        clock: 단조 시계 (테스트용 주입)

    사용 예시:
    ```python
    guard = MovementGuard(cooldown_sec=3.0)

    async with guard.editing(fund_id, movement.id):
        guard.check(MutationKind.EDIT, movement, ledger)
        ...
    ```
    """

    def __init__(
        self,
        cooldown_sec: float = Defaults.EDIT_COOLDOWN_SEC,
        max_edits: int = Defaults.MAX_AUDIT_EDITS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_sec = cooldown_sec
        self._clock = clock

        self._rules: list[GuardRule] = []
        self._add_default_rules(max_edits)

        self._in_progress: set[tuple[str, str]] = set()
        self._last_edit: dict[tuple[str, str], float] = {}

        # 통계
        self._check_count = 0
        self._rejected_count = 0

    def _add_default_rules(self, max_edits: int) -> None:
        self.add_rule(SystemMovementRule())
        self.add_rule(ClosedPeriodRule())
        self.add_rule(AuditCapRule(max_edits))

    def add_rule(self, rule: GuardRule) -> None:
        self._rules.append(rule)
        logger.debug(f"Guard rule added: {rule.name}")

    def check(self, kind: MutationKind, movement: Movement, ledger: FundLedger) -> None:
        """규칙 검사 (첫 실패 규칙의 오류 발생)

        Raises:
            LockedMovementError: 시스템 Movement 또는 잠긴 기간
            AuditCapExceededError: 최대 수정 횟수 초과
        """
        self._check_count += 1

        for rule in self._rules:
            if not rule.applies_to(kind):
                continue

            result = rule.check(movement, ledger)
            if not result.passed:
                self._rejected_count += 1
                logger.warning(
                    f"Movement {kind.value} rejected by {result.rule_name}",
                    extra={"movement_id": movement.id},
                )
                assert result.error is not None
                raise result.error

    @asynccontextmanager
    async def editing(self, fund_id: str, movement_id: str) -> AsyncIterator[None]:
        """같은 Movement 동시 수정 방지 구간

        구간이 예외 없이 끝나면 쿨다운 시작.

        Raises:
            ConcurrentEditError: 진행 중이거나 쿨다운 내 재시도
        """
        key = (fund_id, movement_id)

        if key in self._in_progress:
            self._rejected_count += 1
            raise ConcurrentEditError(movement_id, "edit already in progress")

        last = self._last_edit.get(key)
        if last is not None and self._clock() - last < self.cooldown_sec:
            self._rejected_count += 1
            raise ConcurrentEditError(movement_id, "edited too recently, retry after cooldown")

        self._in_progress.add(key)
        try:
            yield
            self._last_edit[key] = self._clock()
        finally:
            self._in_progress.discard(key)

    @property
    def rules(self) -> list[str]:
        """등록된 규칙 목록"""
        return [rule.name for rule in self._rules]

    def get_stats(self) -> dict[str, int]:
        return {
            "check_count": self._check_count,
            "rejected_count": self._rejected_count,
        }
