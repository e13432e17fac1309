"""
Movement Ledger

잔액 문서 정규화, delta 기반 잔액 관리, 감사 이력, 조회 구간 계획.

사용 예시:
```python
from core.ledger import apply_mutation, normalize_fund_document, resolve_window

ledger = normalize_fund_document(raw_document, "Delifood")
ledger = apply_mutation(ledger, MutationKind.CREATE, None, movement, movement.account_id)

window = resolve_window(from_date=date(2024, 3, 1), to_date=date(2024, 3, 10))
```
"""

from core.ledger.audit import AUDITED_FIELDS, compress, record_change, replay
from core.ledger.balance import apply_mutation, movement_delta, running_balances
from core.ledger.normalizer import build_fund_id, normalize_fund_document
from core.ledger.query_planner import MovementQueryPlanner, TimeWindow, resolve_window

__all__ = [
    # 정규화
    "normalize_fund_document",
    "build_fund_id",
    # 잔액
    "apply_mutation",
    "movement_delta",
    "running_balances",
    # 감사 이력
    "AUDITED_FIELDS",
    "record_change",
    "compress",
    "replay",
    # 조회 구간
    "MovementQueryPlanner",
    "TimeWindow",
    "resolve_window",
]
