"""Full structured review view of an annotated document."""

from typing import Any, Dict, Optional

from .checkpoint import all_sections, sections_with_annotations
from .config import FeedbackConfig, get_feedback_config
from .gates import evaluate_all_gates
from .models import RESOLVED_STATUSES, GateStatus, MemoStatus, MemoType
from .splitter import split_document
from .version import REVIEW_SCHEMA_VERSION


def build_review_document(
    text: str,
    file: str = "",
    config: Optional[FeedbackConfig] = None,
) -> Dict[str, Any]:
    """
    Split ``text`` and assemble the review document handed to agents.

    Gates are re-evaluated against the current memos rather than trusting
    the statuses cached in the file.
    """
    config = config or get_feedback_config()
    parts = split_document(text, config=config)
    gates = evaluate_all_gates(parts.gates, parts.memos)
    everything = all_sections(text, config)
    reviewed = sections_with_annotations(text, config)
    memos = parts.memos

    return {
        "version": REVIEW_SCHEMA_VERSION,
        "file": file,
        "bodyMd": parts.body,
        "memos": [m.to_dict() for m in memos],
        "checkpoints": [c.to_dict() for c in parts.checkpoints],
        "gates": [g.to_dict() for g in gates],
        "cursor": parts.cursor.to_dict() if parts.cursor else None,
        "sections": {
            "all": everything,
            "reviewed": reviewed,
            "uncovered": [s for s in everything if s not in reviewed],
        },
        "summary": {
            "total": len(memos),
            "open": sum(1 for m in memos if m.status == MemoStatus.OPEN.value),
            "done": sum(1 for m in memos if m.status in RESOLVED_STATUSES),
            "blocked": sum(1 for g in gates if g.status == GateStatus.BLOCKED.value),
            "fixes": sum(1 for m in memos if m.type == MemoType.FIX.value),
            "questions": sum(1 for m in memos if m.type == MemoType.QUESTION.value),
            "highlights": sum(1 for m in memos if m.type == MemoType.HIGHLIGHT.value),
        },
    }
