"""
State Machines

일일 마감(DailyClosing), 원격 쓰기 확인 등 핵심 엔티티의 상태 전이 관리.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class StateMachineError(Exception):
    """상태 전이 오류"""
    pass


class ClosingState(str, Enum):
    """일일 마감 상태

    전이 규칙:
    - DRAFT → COMMITTED: 저장 확인 + 조정 Movement 생성 + 잠금 시점 갱신
    - DRAFT → DISCARDED: 저장 실패/취소 (잠금/잔액 변화 없음)
    """
    DRAFT = "DRAFT"
    COMMITTED = "COMMITTED"
    DISCARDED = "DISCARDED"


class WriteState(str, Enum):
    """원격 쓰기 상태

    전이 규칙:
    - SUBMITTED → CONFIRMED: 제한 시간 내 확인
    - SUBMITTED → PENDING_CONFIRMATION: 확인 타임아웃 (로컬 반영 유지)
    - SUBMITTED → FAILED: 쓰기 실패
    - PENDING_CONFIRMATION → CONFIRMED: 뒤늦은 확인
    - PENDING_CONFIRMATION → FAILED: 뒤늦은 실패 (캐시 무효화)
    """
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    FAILED = "FAILED"


class StateMachine:
    """상태 머신 기본 클래스

    Args:
        initial_state: 초기 상태
        transitions: 허용된 전이 정의 {from_state: [to_states]}
        name: 머신 이름 (로깅용)
    """

    def __init__(
        self,
        initial_state: str | Enum,
        transitions: dict[str, list[str]],
        name: str = "StateMachine",
    ):
        self._state = initial_state.value if isinstance(initial_state, Enum) else initial_state
        self._transitions = transitions
        self._name = name
        self._history: list[tuple[str, str]] = []

    @property
    def state(self) -> str:
        """현재 상태"""
        return self._state

    def can_transition(self, to_state: str | Enum) -> bool:
        """전이 가능 여부 확인"""
        target = to_state.value if isinstance(to_state, Enum) else to_state
        return target in self._transitions.get(self._state, [])

    def transition(self, to_state: str | Enum) -> str:
        """상태 전이

        Args:
            to_state: 목표 상태

        Returns:
            새 상태

        Raises:
            StateMachineError: 허용되지 않은 전이
        """
        target = to_state.value if isinstance(to_state, Enum) else to_state

        if not self.can_transition(target):
            allowed = self._transitions.get(self._state, [])
            raise StateMachineError(
                f"{self._name}: Cannot transition from {self._state} to {target}. "
                f"Allowed: {allowed}"
            )

        old_state = self._state
        self._state = target
        self._history.append((old_state, target))

        logger.debug(f"{self._name}: {old_state} → {target}")

        return target

    @property
    def history(self) -> list[tuple[str, str]]:
        """상태 전이 이력"""
        return self._history.copy()


class ClosingStateMachine(StateMachine):
    """일일 마감 상태 머신"""

    TRANSITIONS: dict[str, list[str]] = {
        "DRAFT": ["COMMITTED", "DISCARDED"],
    }

    def __init__(self, initial_state: str | ClosingState = ClosingState.DRAFT):
        super().__init__(
            initial_state=initial_state,
            transitions=self.TRANSITIONS,
            name="ClosingStateMachine",
        )

    @property
    def is_committed(self) -> bool:
        """커밋 완료 여부 (수정 가능 상태)"""
        return self._state == "COMMITTED"

    @property
    def is_terminal(self) -> bool:
        return self._state in ("COMMITTED", "DISCARDED")


class WriteStateMachine(StateMachine):
    """원격 쓰기 확인 상태 머신"""

    TRANSITIONS: dict[str, list[str]] = {
        "SUBMITTED": ["CONFIRMED", "PENDING_CONFIRMATION", "FAILED"],
        "PENDING_CONFIRMATION": ["CONFIRMED", "FAILED"],
    }

    def __init__(self, name: str = "WriteStateMachine"):
        super().__init__(
            initial_state=WriteState.SUBMITTED,
            transitions=self.TRANSITIONS,
            name=name,
        )

    @property
    def is_settled(self) -> bool:
        """최종 결과 확정 여부"""
        return self._state in ("CONFIRMED", "FAILED")
