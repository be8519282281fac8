"""
Gate evaluator.

Gate status is derived from memo statuses; the value stored in the
document is only a cache refreshed before every write.
"""

import dataclasses
from typing import Dict, List

from .models import Gate, GateStatus, Memo, MemoStatus


def evaluate_gate(gate: Gate, memos: List[Memo]) -> str:
    """
    Compute a gate's status.

    1. blocked  - a memo named in ``blocked_by`` exists and is still open
    2. done     - no memo anywhere in the document is open
    3. proceed  - otherwise

    The "done" rule is document-wide rather than scoped to ``blocked_by``.
    """
    first_by_id: Dict[str, Memo] = {}
    for memo in memos:
        first_by_id.setdefault(memo.id, memo)

    for memo_id in gate.blocked_by:
        memo = first_by_id.get(memo_id)
        if memo is not None and memo.status == MemoStatus.OPEN.value:
            return GateStatus.BLOCKED.value

    if not any(m.status == MemoStatus.OPEN.value for m in memos):
        return GateStatus.DONE.value
    return GateStatus.PROCEED.value


def evaluate_all_gates(gates: List[Gate], memos: List[Memo]) -> List[Gate]:
    """Return copies of ``gates`` with freshly computed statuses."""
    return [dataclasses.replace(g, status=evaluate_gate(g, memos), blocked_by=list(g.blocked_by))
            for g in gates]


def gate_summary(gates: List[Gate]) -> Dict[str, int]:
    """Count gates by (cached) status; unknown statuses count as done."""
    summary = {"blocked": 0, "proceed": 0, "done": 0}
    for gate in gates:
        if gate.status == GateStatus.BLOCKED.value:
            summary["blocked"] += 1
        elif gate.status == GateStatus.PROCEED.value:
            summary["proceed"] += 1
        else:
            summary["done"] += 1
    return summary
