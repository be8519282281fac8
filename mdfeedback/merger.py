"""
Merger: DocumentParts -> annotated markdown text.

Only canonical dialects are written (multi-line blocks for memos, gates
and the cursor, one line per checkpoint), so every save migrates v0.3 and
legacy memos forward.
"""

import logging
from typing import Dict, List, Optional

from .anchors import UNRESOLVED, find_anchor_line
from .config import FeedbackConfig, get_feedback_config
from .grammar import escape_attr
from .models import Checkpoint, DocumentParts, Gate, Memo, PlanCursor

logger = logging.getLogger(__name__)


def _block(opener: str, fields: List[tuple]) -> str:
    lines = [opener]
    lines.extend(f'  {key}="{escape_attr(str(value))}"' for key, value in fields)
    lines.append("-->")
    return "\n".join(lines)


def serialize_memo(memo: Memo) -> str:
    return _block("<!-- USER_MEMO", [
        ("id", memo.id),
        ("type", memo.type),
        ("status", memo.status),
        ("owner", memo.owner),
        ("source", memo.source),
        ("color", memo.color),
        ("text", memo.text),
        ("anchorText", memo.anchor_text),
        ("anchor", memo.anchor),
        ("createdAt", memo.created_at),
        ("updatedAt", memo.updated_at),
    ])


def serialize_gate(gate: Gate) -> str:
    return _block("<!-- GATE", [
        ("id", gate.id),
        ("type", gate.type),
        ("status", gate.status),
        ("blockedBy", ",".join(gate.blocked_by)),
        ("canProceedIf", gate.can_proceed_if),
        ("doneDefinition", gate.done_definition),
    ])


def serialize_cursor(cursor: PlanCursor) -> str:
    return _block("<!-- PLAN_CURSOR", [
        ("taskId", cursor.task_id),
        ("step", cursor.step),
        ("nextAction", cursor.next_action),
        ("lastSeenHash", cursor.last_seen_hash),
        ("updatedAt", cursor.updated_at),
    ])


def serialize_checkpoint(cp: Checkpoint) -> str:
    sections = ",".join(escape_attr(s) for s in cp.sections_reviewed)
    return (
        f'<!-- CHECKPOINT id="{escape_attr(cp.id)}" time="{escape_attr(cp.timestamp)}" '
        f'note="{escape_attr(cp.note)}" fixes={int(cp.fixes)} '
        f"questions={int(cp.questions)} highlights={int(cp.highlights)} "
        f'sections="{sections}" -->'
    )


def _body_with_memos(
    body: str,
    memos: List[Memo],
    config: FeedbackConfig,
) -> tuple:
    """Insert memos after their anchor lines; return (text, unresolved memos)."""
    lines = body.split("\n") if body else []
    while lines and not lines[-1].strip():
        lines.pop()
    by_line: Dict[int, List[Memo]] = {}
    unresolved: List[Memo] = []

    for memo in memos:
        idx = find_anchor_line(memo, lines, config)
        if idx == UNRESOLVED:
            logger.warning(f"Memo {memo.id}: anchor not found, appending after body")
            unresolved.append(memo)
        else:
            by_line.setdefault(idx, []).append(memo)

    out: List[str] = []
    for idx, line in enumerate(lines):
        out.append(line)
        for memo in by_line.get(idx, []):
            out.append(serialize_memo(memo))
    return "\n".join(out), unresolved


def merge_document(
    parts: DocumentParts,
    config: Optional[FeedbackConfig] = None,
) -> str:
    """
    Rebuild one document string from a bundle.

    Section order: frontmatter, body with anchored memos, unresolved memos,
    gates, checkpoints, cursor. Sections are separated by one blank line and
    the result ends with exactly one newline.
    """
    config = config or get_feedback_config()
    sections: List[str] = []

    frontmatter = parts.frontmatter.rstrip()
    if frontmatter:
        sections.append(frontmatter)

    body, unresolved = _body_with_memos(parts.body, parts.memos, config)
    if body.strip():
        sections.append(body)
    sections.extend(serialize_memo(m) for m in unresolved)
    sections.extend(serialize_gate(g) for g in parts.gates)
    sections.extend(serialize_checkpoint(c) for c in parts.checkpoints)
    if parts.cursor is not None:
        sections.append(serialize_cursor(parts.cursor))

    return "\n\n".join(sections).rstrip("\n") + "\n"
