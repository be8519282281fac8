"""
Session handoff: a compact summary of a review for the next agent session.

``build_handoff_document`` derives a ``HandoffDocument`` from annotated
markdown, ``format_handoff_markdown`` renders it for one of three targets
(standalone file, CLAUDE.md section, Cursor rule), and ``parse_handoff_file``
reads a rendered handoff back.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .anchors import UNRESOLVED, find_anchor_line
from .checkpoint import all_sections, count_annotations, sections_with_annotations
from .config import FeedbackConfig, get_feedback_config
from .ids import utc_now
from .models import Checkpoint, MemoStatus, MemoType, color_to_type
from .splitter import split_document

HANDOFF_TARGETS = ("standalone", "claude-md", "cursor-rules")
FOOTER = "*Generated by md-feedback. Feed this to your AI coding agent.*"

_MARK_TAG_RE = re.compile(r"</?mark[^>]*>")
_MARK_SPAN_RE = re.compile(
    r'<mark[^>]*?(?:data-color="([^"]+)"|style="background-color:\s*([^"]+)")?\s*>(.*?)</mark>'
)
_EQ_SPAN_RE = re.compile(r"(?<!`)==(?!.*==.*`)(.+?)==(?!`)")


@dataclass
class HandoffItem:
    section: str = ""
    text: str = ""
    feedback: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"section": self.section, "text": self.text, "feedback": self.feedback}


@dataclass
class SessionMetadata:
    file: str = ""
    started_at: str = ""
    last_checkpoint: str = ""
    checkpoint_count: int = 0
    total_fixes: int = 0
    total_questions: int = 0
    total_highlights: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "startedAt": self.started_at,
            "lastCheckpoint": self.last_checkpoint,
            "checkpointCount": self.checkpoint_count,
            "totalFixes": self.total_fixes,
            "totalQuestions": self.total_questions,
            "totalHighlights": self.total_highlights,
        }


@dataclass
class HandoffDocument:
    meta: SessionMetadata = field(default_factory=SessionMetadata)
    decisions: List[HandoffItem] = field(default_factory=list)
    open_questions: List[HandoffItem] = field(default_factory=list)
    key_points: List[HandoffItem] = field(default_factory=list)
    checkpoints: List[Checkpoint] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "decisions": [i.to_dict() for i in self.decisions],
            "openQuestions": [i.to_dict() for i in self.open_questions],
            "keyPoints": [i.to_dict() for i in self.key_points],
            "checkpoints": [c.to_dict() for c in self.checkpoints],
            "nextSteps": list(self.next_steps),
        }


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------

def _section_index(body_lines: List[str], heading_prefix: str) -> List[str]:
    """Enclosing section title for every body line (fenced code skipped)."""
    result = []
    current = ""
    in_fence = False
    for line in body_lines:
        stripped = line.strip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            in_fence = not in_fence
        elif not in_fence and line.startswith(heading_prefix):
            current = line[len(heading_prefix):].strip()
        result.append(current)
    return result


def _inline_items(line: str) -> List[Tuple[str, str]]:
    """(memo type, text) for every highlight span on a body line."""
    items = []
    for m in _MARK_SPAN_RE.finditer(line):
        color = (m.group(1) or m.group(2) or "yellow").strip()
        items.append((color_to_type(color), _MARK_TAG_RE.sub("", m.group(3))))
    for m in _EQ_SPAN_RE.finditer(line):
        items.append((MemoType.HIGHLIGHT.value, m.group(1)))
    return items


def build_handoff_document(
    text: str,
    file: str,
    now: Optional[str] = None,
    config: Optional[FeedbackConfig] = None,
) -> HandoffDocument:
    """Derive session metadata, decisions, questions, key points and next steps."""
    config = config or get_feedback_config()
    parts = split_document(text, config=config)
    counts = count_annotations(text, config)
    checkpoints = parts.checkpoints

    meta = SessionMetadata(
        file=file,
        started_at=checkpoints[0].timestamp if checkpoints else (now or utc_now()),
        last_checkpoint=checkpoints[-1].timestamp if checkpoints else "",
        checkpoint_count=len(checkpoints),
        total_fixes=counts.fixes,
        total_questions=counts.questions,
        total_highlights=counts.highlights,
    )

    body_lines = parts.body_lines
    sections = _section_index(body_lines, "#" * config.counter.section_level + " ")
    tail = len(body_lines)

    # (line index, sequence, memo type, item, is_open)
    found: List[Tuple[int, int, str, HandoffItem, bool]] = []
    anchored = set()
    for memo in parts.memos:
        idx = find_anchor_line(memo, body_lines, config)
        if idx == UNRESOLVED:
            line_text, section, pos = memo.anchor_text, "", tail
        else:
            anchored.add(idx)
            line_text, section, pos = body_lines[idx].strip(), sections[idx], idx
        item = HandoffItem(
            section=section,
            text=_MARK_TAG_RE.sub("", line_text).strip(),
            feedback=memo.text,
        )
        found.append((pos, len(found), memo.type, item, memo.status == MemoStatus.OPEN.value))

    in_fence = False
    for idx, line in enumerate(body_lines):
        stripped = line.strip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            in_fence = not in_fence
            continue
        if in_fence or idx in anchored:
            continue
        for kind, span in _inline_items(line):
            found.append((idx, len(found), kind, HandoffItem(sections[idx], span, ""), True))

    doc = HandoffDocument(meta=meta, checkpoints=list(checkpoints))
    for _, _, kind, item, is_open in sorted(found, key=lambda f: (f[0], f[1])):
        if kind == MemoType.FIX.value:
            doc.decisions.append(item)
        elif kind == MemoType.QUESTION.value:
            if is_open:
                doc.open_questions.append(item)
        else:
            doc.key_points.append(item)

    for q in doc.open_questions:
        doc.next_steps.append(f"Resolve: {q.feedback or q.text}")
    reviewed = sections_with_annotations(text, config)
    for s in all_sections(text, config):
        if s not in reviewed:
            doc.next_steps.append(f"Review uncovered: {s} section")

    return doc


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------

def _trunc(s: str, length: int) -> str:
    return s[:length] + "..." if len(s) > length else s


def _render_items(
    out: List[str],
    items: List[HandoffItem],
    separator: str,
    config: FeedbackConfig,
) -> None:
    for n, item in enumerate(items, 1):
        section = f"[{item.section}]" if item.section else "[General]"
        if item.text and item.feedback:
            quoted = _trunc(item.text, config.handoff.decision_trunc)
            out.append(f'{n}. **{section}** "{quoted}" {separator} {item.feedback}')
        elif item.feedback:
            out.append(f"{n}. **{section}** {item.feedback}")
        elif item.text:
            out.append(f'{n}. **{section}** "{_trunc(item.text, config.handoff.text_trunc)}"')


def format_handoff_markdown(
    doc: HandoffDocument,
    target: str = "standalone",
    config: Optional[FeedbackConfig] = None,
) -> str:
    """Render a handoff document as markdown for the given target."""
    config = config or get_feedback_config()
    meta = doc.meta
    out: List[str] = []

    if target == "claude-md":
        out += [f"## Session Handoff: {meta.file}", ""]
    elif target == "cursor-rules":
        out += ["---", f"description: Session handoff for {meta.file}", "alwaysApply: true", "---", ""]
    else:
        out += [f"# HANDOFF — `{meta.file}`", ""]

    out.append("## Session")
    out.append(f"- **File**: `{meta.file}`")
    out.append(f"- **Started**: {meta.started_at}")
    if meta.last_checkpoint:
        out.append(f"- **Last checkpoint**: {meta.last_checkpoint}")
    out.append(f"- **Checkpoints**: {meta.checkpoint_count}")
    out.append(
        f"- **Annotations**: {meta.total_fixes} fix, {meta.total_questions} question, "
        f"{meta.total_highlights} highlight"
    )
    out.append("")

    if doc.decisions:
        out.append(f"## Decisions Made ({len(doc.decisions)})")
        out.append("Marked as FIX. Decided — implement as specified.")
        _render_items(out, doc.decisions, "→", config)
        out.append("")

    if doc.open_questions:
        out.append(f"## Open Questions ({len(doc.open_questions)})")
        out.append("Marked as QUESTION. Unresolved — investigate before implementing.")
        _render_items(out, doc.open_questions, "—", config)
        out.append("")

    if doc.key_points:
        out.append(f"## Key Points ({len(doc.key_points)})")
        out.append("Marked as HIGHLIGHT. Important context — preserve during implementation.")
        for n, item in enumerate(doc.key_points, 1):
            section = f"[{item.section}]" if item.section else "[General]"
            if item.text:
                out.append(f'{n}. **{section}** "{_trunc(item.text, config.handoff.text_trunc)}"')
            if item.feedback:
                out.append(f"   {item.feedback}")
        out.append("")

    if doc.checkpoints:
        out.append("## Progress Checkpoints")
        out.append("| # | Time | Note | Fixes | Questions | Highlights |")
        out.append("|---|------|------|-------|-----------|------------|")
        for n, cp in enumerate(doc.checkpoints, 1):
            time = cp.timestamp.split("T")[1].split(".")[0] if "T" in cp.timestamp else cp.timestamp
            out.append(
                f"| {n} | {time} | {cp.note} | {cp.fixes} | {cp.questions} | {cp.highlights} |"
            )
        out.append("")

    if doc.next_steps:
        out.append("## Next Steps")
        out.extend(f"- [ ] {step}" for step in doc.next_steps)
        out.append("")

    out.append("---")
    out.append(FOOTER)
    return "\n".join(out)


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

_H2_RE = re.compile(r"^## (.+)")
_FILE_RE = re.compile(r"\*\*File\*\*:\s*`([^`]+)`")
_STARTED_RE = re.compile(r"\*\*Started\*\*:\s*(.+)")
_LAST_RE = re.compile(r"\*\*Last checkpoint\*\*:\s*(.+)")
_COUNT_RE = re.compile(r"\*\*Checkpoints\*\*:\s*(\d+)")
_ANNOTATIONS_RE = re.compile(
    r"\*\*Annotations\*\*:\s*(\d+)\s*fix,\s*(\d+)\s*question,\s*(\d+)\s*highlight"
)
_ITEM_RE = re.compile(r"^\d+\.\s+\*\*\[([^\]]*)\]\*\*\s+(.+)")
_ARROW_RE = re.compile(r'"([^"]+)"\s*→\s*(.+)')
_DASH_RE = re.compile(r'"([^"]+)"\s*—\s*(.+)')
_QUOTED_RE = re.compile(r'"([^"]+)"')
_STEP_RE = re.compile(r"^- \[ \]\s+(.+)")


def parse_handoff_file(text: str) -> Optional[HandoffDocument]:
    """Parse a rendered handoff; None when it has no ``**File**`` line."""
    doc = HandoffDocument()
    meta = doc.meta
    current = ""

    for line in text.split("\n"):
        h2 = _H2_RE.match(line)
        if h2:
            current = h2.group(1).strip()
            continue

        if current.startswith("Session"):
            m = _FILE_RE.search(line)
            if m:
                meta.file = m.group(1)
            m = _STARTED_RE.search(line)
            if m:
                meta.started_at = m.group(1).strip()
            m = _LAST_RE.search(line)
            if m:
                meta.last_checkpoint = m.group(1).strip()
            m = _COUNT_RE.search(line)
            if m:
                meta.checkpoint_count = int(m.group(1))
            m = _ANNOTATIONS_RE.search(line)
            if m:
                meta.total_fixes = int(m.group(1))
                meta.total_questions = int(m.group(2))
                meta.total_highlights = int(m.group(3))

        item_match = _ITEM_RE.match(line)
        if item_match:
            section, rest = item_match.group(1), item_match.group(2)
            pair = _ARROW_RE.search(rest) or _DASH_RE.search(rest)
            if pair:
                item = HandoffItem(section, pair.group(1), pair.group(2))
            else:
                quoted = _QUOTED_RE.search(rest)
                item = HandoffItem(section, quoted.group(1) if quoted else "", "" if quoted else rest)
            if current.startswith("Decisions"):
                doc.decisions.append(item)
            elif current.startswith("Open Questions"):
                doc.open_questions.append(item)
            elif current.startswith("Key Points"):
                doc.key_points.append(item)

        if current.startswith("Next Steps"):
            m = _STEP_RE.match(line)
            if m:
                doc.next_steps.append(m.group(1))

    if not meta.file:
        return None
    return doc
