"""
Splitter: annotated markdown text -> DocumentParts.

Drives the grammar matchers over the document one line at a time. Every
recognized annotation is lifted into the bundle; everything else (including
unknown comments and truncated blocks) is kept in the body verbatim.
"""

import logging
from typing import List, Optional

from .anchors import nearest_anchor
from .config import FeedbackConfig, get_feedback_config
from .grammar import (
    DialectKind,
    DialectMatch,
    is_comment_line,
    match_dialect,
    match_frontmatter,
    unescape_attr,
)
from .hashing import hash_line
from .models import (
    Checkpoint,
    DocumentParts,
    Gate,
    GateStatus,
    GateType,
    Memo,
    MemoStatus,
    PlanCursor,
    color_to_type,
    normalize_color,
)

logger = logging.getLogger(__name__)


def _split_ids(value: str) -> List[str]:
    return [s.strip() for s in value.split(",") if s.strip()]


def _block_hash(match: DialectMatch) -> str:
    return hash_line("\n".join(match.raw))


def _memo_from_single_line(
    match: DialectMatch,
    body_lines: List[str],
    now: str,
    config: FeedbackConfig,
) -> Memo:
    attrs = match.attrs
    color = normalize_color(attrs.get("color"), config.defaults.color)
    anchor, anchor_text = nearest_anchor(body_lines)
    return Memo(
        id=attrs["id"],
        type=color_to_type(color),
        status=attrs.get("status") or MemoStatus.OPEN.value,
        owner=config.defaults.owner,
        source=config.defaults.source,
        color=color,
        text=match.text,
        anchor_text=anchor_text,
        anchor=anchor,
        created_at=now,
        updated_at=now,
    )


def _memo_from_legacy(
    match: DialectMatch,
    body_lines: List[str],
    now: str,
    config: FeedbackConfig,
) -> Memo:
    attrs = match.attrs
    color = normalize_color(attrs.get("color"), config.defaults.color)
    anchor, anchor_text = nearest_anchor(body_lines)
    created = attrs.get("date") or now
    return Memo(
        id=attrs["id"],
        type=color_to_type(color),
        status=MemoStatus.OPEN.value,
        owner=config.defaults.owner,
        source=config.defaults.source,
        color=color,
        text=match.text,
        anchor_text=anchor_text,
        anchor=anchor,
        created_at=created,
        updated_at=created,
    )


def _memo_from_block(
    match: DialectMatch,
    body_lines: List[str],
    config: FeedbackConfig,
) -> Memo:
    attrs = match.attrs
    color = normalize_color(attrs.get("color"), config.defaults.color)
    # Only absent keys are derived; present-but-empty values are kept as written.
    derived_anchor, derived_text = nearest_anchor(body_lines)
    anchor_text = attrs.get("anchorText", derived_text)
    if "anchor" in attrs:
        anchor = attrs["anchor"]
    elif "anchorText" in attrs:
        anchor = ""
    else:
        anchor = derived_anchor
    return Memo(
        id=attrs.get("id") or f"memo_{_block_hash(match)}",
        type=attrs.get("type") or color_to_type(color),
        status=attrs.get("status") or MemoStatus.OPEN.value,
        owner=attrs.get("owner") or config.defaults.owner,
        source=attrs.get("source") or config.defaults.source,
        color=color,
        text=attrs.get("text", ""),
        anchor_text=anchor_text,
        anchor=anchor,
        created_at=attrs.get("createdAt", ""),
        updated_at=attrs.get("updatedAt", ""),
    )


def _gate_from_block(match: DialectMatch) -> Gate:
    attrs = match.attrs
    return Gate(
        id=attrs.get("id") or f"gate_{_block_hash(match)}",
        type=attrs.get("type") or GateType.CUSTOM.value,
        status=attrs.get("status") or GateStatus.BLOCKED.value,
        blocked_by=_split_ids(attrs.get("blockedBy", "")),
        can_proceed_if=attrs.get("canProceedIf", ""),
        done_definition=attrs.get("doneDefinition", ""),
    )


def _cursor_from_block(match: DialectMatch) -> PlanCursor:
    return PlanCursor.from_dict(match.attrs)


def checkpoint_from_match(match: DialectMatch) -> Checkpoint:
    """Build a Checkpoint from a matched CHECKPOINT line."""
    attrs = match.attrs
    return Checkpoint(
        id=attrs["id"],
        timestamp=attrs["time"],
        note=attrs["note"],
        fixes=int(attrs["fixes"]),
        questions=int(attrs["questions"]),
        highlights=int(attrs["highlights"]),
        # sections are escaped one by one, so split before unescaping
        sections_reviewed=[unescape_attr(s) for s in _split_ids(attrs["sections"])],
    )


def split_document(
    text: str,
    now: Optional[str] = None,
    config: Optional[FeedbackConfig] = None,
) -> DocumentParts:
    """
    Split raw annotated markdown into a ``DocumentParts`` bundle.

    Args:
        text: Full document text.
        now: Timestamp used for migrated memos that carry none. Defaults to ""
            so the result depends on ``text`` alone.
        config: Optional configuration (global config when omitted).

    Never raises for string input: malformed or truncated comment blocks are
    kept in the body.
    """
    config = config or get_feedback_config()
    now = now or ""
    parts = DocumentParts()

    parts.frontmatter = match_frontmatter(text)
    lines = text[len(parts.frontmatter):].split("\n")
    body_lines: List[str] = []

    i = 0
    while i < len(lines):
        match = match_dialect(lines, i, config.grammar.banner_marker)
        if match is None:
            line = lines[i]
            if is_comment_line(line):
                parts.unknown_comments.append(line.strip())
            body_lines.append(line)
            i += 1
            continue

        kind = match.kind
        if kind == DialectKind.MEMO_V3:
            parts.memos.append(_memo_from_single_line(match, body_lines, now, config))
        elif kind == DialectKind.MEMO_V4:
            parts.memos.append(_memo_from_block(match, body_lines, config))
        elif kind == DialectKind.MEMO_LEGACY:
            parts.memos.append(_memo_from_legacy(match, body_lines, now, config))
        elif kind == DialectKind.GATE:
            parts.gates.append(_gate_from_block(match))
        elif kind == DialectKind.CURSOR:
            parts.cursor = _cursor_from_block(match)
        elif kind == DialectKind.CHECKPOINT:
            parts.checkpoints.append(checkpoint_from_match(match))
        # banner and wrapper comments are dropped
        i += match.consumed

    while body_lines and not body_lines[-1].strip():
        body_lines.pop()
    parts.body = "\n".join(body_lines)

    logger.debug(
        f"Split document: {len(body_lines)} body lines, {len(parts.memos)} memos, "
        f"{len(parts.gates)} gates, {len(parts.checkpoints)} checkpoints, "
        f"cursor={'yes' if parts.cursor else 'no'}"
    )
    return parts
