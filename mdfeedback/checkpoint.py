"""
Annotation counters and checkpoint builder.

These work on raw text without building a full bundle, for status queries
that only need counts and section coverage. Lines inside fenced code blocks
are ignored; memo comments are classified by type, falling back to color;
inline highlights (``<mark style="background-color:...">`` and ``==text==``)
are counted when no memo comment directly follows their line.
"""

import logging
import re
from typing import Iterator, List, Optional, Tuple

from .config import FeedbackConfig, get_feedback_config
from .grammar import DialectKind, match_checkpoint, match_dialect
from .ids import new_checkpoint_id, utc_now
from .merger import serialize_checkpoint
from .models import (
    AnnotationCounts,
    Checkpoint,
    MemoType,
    color_to_type,
    is_valid,
)
from .splitter import checkpoint_from_match

logger = logging.getLogger(__name__)

_MEMO_KINDS = (DialectKind.MEMO_V3, DialectKind.MEMO_V4, DialectKind.MEMO_LEGACY)

_MARK_RE = re.compile(r'<mark[^>]*style="background-color:\s*([^"]+)"[^>]*>')
_EQ_HIGHLIGHT_RE = re.compile(r"(?<!`)==(?!.*==.*`)(.+?)==(?!`)")

# (event, value): ("heading", title) or ("annotation", memo type)
_Event = Tuple[str, str]


def _is_fence(stripped: str) -> bool:
    return stripped.startswith("```") or stripped.startswith("~~~")


def _memo_type(match) -> str:
    declared = match.attrs.get("type", "")
    if match.kind == DialectKind.MEMO_V4 and is_valid(MemoType, declared):
        return declared
    return color_to_type(match.attrs.get("color"))


def _inline_types(line: str) -> Iterator[str]:
    for m in _MARK_RE.finditer(line):
        yield color_to_type(m.group(1).strip())
    for _ in _EQ_HIGHLIGHT_RE.finditer(line):
        yield MemoType.HIGHLIGHT.value


def _scan(text: str, config: FeedbackConfig) -> Iterator[_Event]:
    """Walk the document once, yielding headings and annotations in order."""
    lines = text.split("\n")
    heading_prefix = "#" * config.counter.section_level + " "
    marker = config.grammar.banner_marker
    in_fence = False
    fence_marker = ""
    in_comment = False

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if _is_fence(stripped):
            if not in_fence:
                in_fence = True
                fence_marker = stripped[:3]
            elif stripped.startswith(fence_marker):
                in_fence = False
                fence_marker = ""
            i += 1
            continue
        if in_fence:
            i += 1
            continue

        if in_comment:
            in_comment = "-->" not in line
            i += 1
            continue

        if line.startswith(heading_prefix):
            yield ("heading", line[len(heading_prefix):].strip())
            i += 1
            continue

        match = match_dialect(lines, i, marker)
        if match is not None:
            if match.kind in _MEMO_KINDS:
                yield ("annotation", _memo_type(match))
            i += match.consumed
            continue

        if stripped.startswith("<!--"):
            in_comment = "-->" not in stripped[4:]
            i += 1
            continue

        followed_by_memo = False
        if i + 1 < len(lines):
            nxt = match_dialect(lines, i + 1, marker)
            followed_by_memo = nxt is not None and nxt.kind in _MEMO_KINDS
        if not followed_by_memo:
            for kind in _inline_types(line):
                yield ("annotation", kind)
        elif _MARK_RE.search(line) or _EQ_HIGHLIGHT_RE.search(line):
            # the memo below carries the count; still mark the section
            yield ("marker", "")
        i += 1


def count_annotations(text: str, config: Optional[FeedbackConfig] = None) -> AnnotationCounts:
    """Count fixes, questions and highlights in raw annotated markdown."""
    config = config or get_feedback_config()
    counts = AnnotationCounts()
    for event, value in _scan(text, config):
        if event != "annotation":
            continue
        if value == MemoType.FIX.value:
            counts.fixes += 1
        elif value == MemoType.QUESTION.value:
            counts.questions += 1
        else:
            counts.highlights += 1
    return counts


def sections_with_annotations(text: str, config: Optional[FeedbackConfig] = None) -> List[str]:
    """Titles of sections containing at least one annotation, in document order."""
    config = config or get_feedback_config()
    sections: List[str] = []
    current = ""
    for event, value in _scan(text, config):
        if event == "heading":
            current = value
        elif current and current not in sections:
            sections.append(current)
    return sections


def all_sections(text: str, config: Optional[FeedbackConfig] = None) -> List[str]:
    """Every section heading title at the configured level, fenced code excluded."""
    config = config or get_feedback_config()
    return [value for event, value in _scan(text, config) if event == "heading"]


def extract_checkpoints(text: str) -> List[Checkpoint]:
    """All canonical checkpoint lines found anywhere in ``text``, oldest first."""
    lines = text.split("\n")
    checkpoints = []
    for i in range(len(lines)):
        match = match_checkpoint(lines, i)
        if match is not None:
            checkpoints.append(checkpoint_from_match(match))
    return checkpoints


def normalize_highlights(text: str, config: Optional[FeedbackConfig] = None) -> str:
    """Rewrite ``==text==`` as ``<mark>text</mark>`` outside code fences and annotations."""
    config = config or get_feedback_config()
    lines = text.split("\n")
    out: List[str] = []
    in_fence = False
    fence_marker = ""

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        if _is_fence(stripped):
            if not in_fence:
                in_fence = True
                fence_marker = stripped[:3]
            elif stripped.startswith(fence_marker):
                in_fence = False
                fence_marker = ""
        elif not in_fence:
            match = match_dialect(lines, i, config.grammar.banner_marker)
            if match is not None:
                out.extend(lines[i:i + match.consumed])
                i += match.consumed
                continue
            line = _EQ_HIGHLIGHT_RE.sub(r"<mark>\1</mark>", line)
        out.append(line)
        i += 1
    return "\n".join(out)


def create_checkpoint(
    text: str,
    note: str,
    checkpoint_id: Optional[str] = None,
    timestamp: Optional[str] = None,
    config: Optional[FeedbackConfig] = None,
) -> Tuple[Checkpoint, str]:
    """
    Snapshot current counts and reviewed sections, appending one checkpoint line.

    Returns ``(checkpoint, updated_text)``. The rest of the document is not
    re-serialized: the line is appended after the trimmed text.
    """
    config = config or get_feedback_config()
    counts = count_annotations(text, config)
    checkpoint = Checkpoint(
        id=checkpoint_id or new_checkpoint_id(),
        timestamp=timestamp or utc_now(),
        note=note,
        fixes=counts.fixes,
        questions=counts.questions,
        highlights=counts.highlights,
        sections_reviewed=sections_with_annotations(text, config),
    )
    trimmed = text.rstrip()
    line = serialize_checkpoint(checkpoint)
    updated = f"{trimmed}\n\n{line}\n" if trimmed else f"{line}\n"
    logger.debug(f"Checkpoint {checkpoint.id}: {counts.to_dict()}")
    return checkpoint, updated
