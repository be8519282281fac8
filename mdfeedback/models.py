"""
Core data models for md-feedback annotated documents.

All models are JSON-serializable dataclasses shared by the splitter, the
merger, the gate evaluator and the tool layer. ``to_dict`` uses the same
attribute names as the on-disk comment grammar (camelCase), so the dicts
handed to agents match what they would read in the markdown file.

Enum-typed fields are stored as plain strings: values found on disk that
are not members of the enum are kept verbatim instead of being coerced.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MemoType(str, Enum):
    """Memo intent, derived from color when absent."""
    FIX = "fix"
    QUESTION = "question"
    HIGHLIGHT = "highlight"


class MemoStatus(str, Enum):
    """Memo workflow status."""
    OPEN = "open"
    ANSWERED = "answered"
    DONE = "done"
    WONTFIX = "wontfix"


class MemoOwner(str, Enum):
    """Who is expected to act on a memo."""
    HUMAN = "human"
    AGENT = "agent"
    TOOL = "tool"


class MemoColor(str, Enum):
    """Reviewer color; yellow = highlight, red = fix, blue = question."""
    YELLOW = "yellow"
    RED = "red"
    BLUE = "blue"


class GateType(str, Enum):
    """Readiness gate kinds."""
    MERGE = "merge"
    RELEASE = "release"
    IMPLEMENT = "implement"
    CUSTOM = "custom"


class GateStatus(str, Enum):
    """Derived gate status (the serialized value is only a cache)."""
    BLOCKED = "blocked"
    PROCEED = "proceed"
    DONE = "done"


HIGHLIGHT_COLORS: Dict[str, str] = {
    MemoColor.YELLOW.value: "#fef08a",
    MemoColor.RED.value: "#fca5a5",
    MemoColor.BLUE.value: "#93c5fd",
}

HEX_TO_COLOR_NAME: Dict[str, str] = {v: k for k, v in HIGHLIGHT_COLORS.items()}

_COLOR_TO_TYPE: Dict[str, str] = {
    MemoColor.RED.value: MemoType.FIX.value,
    MemoColor.BLUE.value: MemoType.QUESTION.value,
}

RESOLVED_STATUSES = (
    MemoStatus.ANSWERED.value,
    MemoStatus.DONE.value,
    MemoStatus.WONTFIX.value,
)


def _value(v: Any) -> Any:
    """Unwrap enum members so dataclass fields always hold plain strings."""
    return v.value if isinstance(v, Enum) else v


def normalize_color(color: Optional[str], default: str = MemoColor.RED.value) -> str:
    """Map historical hex colors to names; empty means ``default``."""
    color = _value(color)
    if not color:
        return default
    color = color.strip()
    return HEX_TO_COLOR_NAME.get(color.lower(), color)


def color_to_type(color: Optional[str]) -> str:
    """Convert a memo color (name or historical hex) to a memo type."""
    return _COLOR_TO_TYPE.get(normalize_color(color), MemoType.HIGHLIGHT.value)


def is_valid(enum_cls, value: Any) -> bool:
    """Check that ``value`` is one of the members of ``enum_cls``."""
    return _value(value) in {m.value for m in enum_cls}


# ---------------------------------------------------------------------------
# Memo
# ---------------------------------------------------------------------------

@dataclass
class Memo:
    """
    A reviewer or agent annotation attached to a line of prose.

    ``anchor`` is the machine locator ``L<n>|<hash8>`` (or ``L<n>:L<m>|<hash8>``),
    ``anchor_text`` the human-readable excerpt used as a fallback.
    """
    id: str
    type: str = MemoType.FIX.value
    status: str = MemoStatus.OPEN.value
    owner: str = MemoOwner.HUMAN.value
    source: str = "generic"
    color: str = MemoColor.RED.value
    text: str = ""
    anchor_text: str = ""
    anchor: str = ""
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        self.type = _value(self.type)
        self.status = _value(self.status)
        self.owner = _value(self.owner)
        self.color = _value(self.color)

    @property
    def is_open(self) -> bool:
        return self.status == MemoStatus.OPEN.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "owner": self.owner,
            "source": self.source,
            "color": self.color,
            "text": self.text,
            "anchorText": self.anchor_text,
            "anchor": self.anchor,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Memo":
        color = normalize_color(d.get("color"))
        return cls(
            id=d["id"],
            type=d.get("type") or color_to_type(color),
            status=d.get("status", MemoStatus.OPEN.value),
            owner=d.get("owner", MemoOwner.HUMAN.value),
            source=d.get("source", "generic"),
            color=color,
            text=d.get("text", ""),
            anchor_text=d.get("anchorText", ""),
            anchor=d.get("anchor", ""),
            created_at=d.get("createdAt", ""),
            updated_at=d.get("updatedAt", ""),
        )


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

@dataclass
class Gate:
    """A merge/release/implement readiness gate over memo statuses."""
    id: str
    type: str = GateType.CUSTOM.value
    status: str = GateStatus.BLOCKED.value
    blocked_by: List[str] = field(default_factory=list)
    can_proceed_if: str = ""
    done_definition: str = ""

    def __post_init__(self):
        self.type = _value(self.type)
        self.status = _value(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "blockedBy": list(self.blocked_by),
            "canProceedIf": self.can_proceed_if,
            "doneDefinition": self.done_definition,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Gate":
        blocked_by = d.get("blockedBy", [])
        if isinstance(blocked_by, str):
            blocked_by = [s.strip() for s in blocked_by.split(",") if s.strip()]
        return cls(
            id=d["id"],
            type=d.get("type", GateType.CUSTOM.value),
            status=d.get("status", GateStatus.BLOCKED.value),
            blocked_by=list(blocked_by),
            can_proceed_if=d.get("canProceedIf", ""),
            done_definition=d.get("doneDefinition", ""),
        )


# ---------------------------------------------------------------------------
# Plan Cursor
# ---------------------------------------------------------------------------

@dataclass
class PlanCursor:
    """Singleton "where we are" pointer for session continuity."""
    task_id: str = ""
    step: str = ""              # "3/7" or "Phase 2"
    next_action: str = ""
    last_seen_hash: str = ""    # hash8 of the body at last update
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "step": self.step,
            "nextAction": self.next_action,
            "lastSeenHash": self.last_seen_hash,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PlanCursor":
        return cls(
            task_id=d.get("taskId", ""),
            step=d.get("step", ""),
            next_action=d.get("nextAction", ""),
            last_seen_hash=d.get("lastSeenHash", ""),
            updated_at=d.get("updatedAt", ""),
        )


# ---------------------------------------------------------------------------
# Checkpoint
# ---------------------------------------------------------------------------

@dataclass
class Checkpoint:
    """Immutable snapshot of annotation counts and reviewed sections."""
    id: str
    timestamp: str
    note: str = ""
    fixes: int = 0
    questions: int = 0
    highlights: int = 0
    sections_reviewed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "note": self.note,
            "fixes": self.fixes,
            "questions": self.questions,
            "highlights": self.highlights,
            "sectionsReviewed": list(self.sections_reviewed),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Checkpoint":
        return cls(
            id=d["id"],
            timestamp=d["timestamp"],
            note=d.get("note", ""),
            fixes=int(d.get("fixes", 0)),
            questions=int(d.get("questions", 0)),
            highlights=int(d.get("highlights", 0)),
            sections_reviewed=list(d.get("sectionsReviewed", [])),
        )


# ---------------------------------------------------------------------------
# Annotation counts
# ---------------------------------------------------------------------------

@dataclass
class AnnotationCounts:
    """Raw-text annotation tally, independent of a full split."""
    fixes: int = 0
    questions: int = 0
    highlights: int = 0

    @property
    def total(self) -> int:
        return self.fixes + self.questions + self.highlights

    def to_dict(self) -> Dict[str, int]:
        return {
            "fixes": self.fixes,
            "questions": self.questions,
            "highlights": self.highlights,
        }


# ---------------------------------------------------------------------------
# Document bundle
# ---------------------------------------------------------------------------

@dataclass
class DocumentParts:
    """
    Structured bundle passed between the splitter and the merger.

    ``body`` holds the prose with every recognized annotation comment removed;
    unrecognized comments stay in the body and are also listed in
    ``unknown_comments`` for information.
    """
    frontmatter: str = ""
    body: str = ""
    memos: List[Memo] = field(default_factory=list)
    gates: List[Gate] = field(default_factory=list)
    cursor: Optional[PlanCursor] = None
    checkpoints: List[Checkpoint] = field(default_factory=list)
    unknown_comments: List[str] = field(default_factory=list)

    @property
    def body_lines(self) -> List[str]:
        return self.body.split("\n")

    def find_memo(self, memo_id: str) -> Optional[Memo]:
        """First memo with this id (duplicates are not validated)."""
        for memo in self.memos:
            if memo.id == memo_id:
                return memo
        return None

    def find_gate(self, gate_id: str) -> Optional[Gate]:
        for gate in self.gates:
            if gate.id == gate_id:
                return gate
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frontmatter": self.frontmatter,
            "body": self.body,
            "memos": [m.to_dict() for m in self.memos],
            "gates": [g.to_dict() for g in self.gates],
            "cursor": self.cursor.to_dict() if self.cursor else None,
            "checkpoints": [c.to_dict() for c in self.checkpoints],
            "unknownComments": list(self.unknown_comments),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DocumentParts":
        cursor = d.get("cursor")
        return cls(
            frontmatter=d.get("frontmatter", ""),
            body=d.get("body", ""),
            memos=[Memo.from_dict(m) for m in d.get("memos", [])],
            gates=[Gate.from_dict(g) for g in d.get("gates", [])],
            cursor=PlanCursor.from_dict(cursor) if cursor else None,
            checkpoints=[Checkpoint.from_dict(c) for c in d.get("checkpoints", [])],
            unknown_comments=list(d.get("unknownComments", [])),
        )
