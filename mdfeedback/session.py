"""
Per-document read -> split -> mutate -> merge -> write transactions.

Each transaction holds a lock shared by every session on the same resolved
path in this process, so two tool calls editing one file cannot interleave.
Gates are re-evaluated before every write and the file is left untouched
when the merged text equals what was read.

Cross-process writers are not coordinated.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from .anchors import make_anchor
from .checkpoint import create_checkpoint as _create_checkpoint
from .config import FeedbackConfig, get_feedback_config
from .errors import InvalidValueError, MemoNotFoundError
from .file_ops import read_markdown_file, write_markdown_file
from .gates import evaluate_all_gates
from .hashing import body_hash
from .ids import new_gate_id, new_memo_id, utc_now
from .merger import merge_document
from .models import (
    Checkpoint,
    DocumentParts,
    Gate,
    GateType,
    Memo,
    MemoColor,
    MemoOwner,
    MemoStatus,
    MemoType,
    PlanCursor,
    color_to_type,
    is_valid,
    normalize_color,
)
from .splitter import split_document

logger = logging.getLogger(__name__)

# One lock per resolved path, kept for the life of the process (never evicted).
_path_locks: Dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = str(path)
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _path_locks[key] = lock
        return lock


def _check(enum_cls, field_name: str, value) -> str:
    if not is_valid(enum_cls, value):
        raise InvalidValueError(field_name, value, [m.value for m in enum_cls])
    return getattr(value, "value", value)


class FeedbackSession:
    """
    Serialized mutations on one annotated markdown file.

    Usage:
        session = FeedbackSession("plan.md")
        with session.transaction() as parts:
            parts.memos[0].status = "done"
    """

    def __init__(
        self,
        path: Union[str, Path],
        config: Optional[FeedbackConfig] = None,
        clock: Callable[[], str] = utc_now,
    ):
        self.path = Path(path).resolve()
        self.config = config or get_feedback_config()
        self.clock = clock
        self._lock = _lock_for(self.path)

    def read(self) -> str:
        return read_markdown_file(self.path)

    def snapshot(self) -> DocumentParts:
        """Split the current file without writing anything."""
        with self._lock:
            return split_document(self.read(), config=self.config)

    @contextmanager
    def transaction(self) -> Iterator[DocumentParts]:
        """Yield the split document; merge and write it back on normal exit."""
        with self._lock:
            original = self.read()
            parts = split_document(original, now=self.clock(), config=self.config)
            yield parts
            parts.gates = evaluate_all_gates(parts.gates, parts.memos)
            updated = merge_document(parts, self.config)
            if updated != original:
                write_markdown_file(self.path, updated, self.config)
                logger.info(f"Updated {self.path}")
            else:
                logger.debug(f"No changes for {self.path}")

    # -- memos ---------------------------------------------------------------

    def update_memo_status(
        self,
        memo_id: str,
        status: str,
        owner: Optional[str] = None,
    ) -> Tuple[Memo, List[Gate]]:
        """Set a memo's status (and optionally owner); returns the memo and re-evaluated gates."""
        status = _check(MemoStatus, "status", status)
        if owner is not None:
            owner = _check(MemoOwner, "owner", owner)
        with self.transaction() as parts:
            memo = parts.find_memo(memo_id)
            if memo is None:
                raise MemoNotFoundError(memo_id)
            memo.status = status
            if owner is not None:
                memo.owner = owner
            memo.updated_at = self.clock()
        return memo, parts.gates

    def add_memo(
        self,
        text: str,
        line: int,
        color: str = MemoColor.RED.value,
        memo_type: Optional[str] = None,
        owner: str = MemoOwner.AGENT.value,
        source: str = "",
        memo_id: Optional[str] = None,
    ) -> Memo:
        """
        Attach a new memo after body line ``line`` (1-based).

        ``line`` is clamped to the body; the anchor records the line's hash
        and its stripped text.
        """
        color = _check(MemoColor, "color", normalize_color(color))
        if memo_type is not None:
            memo_type = _check(MemoType, "type", memo_type)
        owner = _check(MemoOwner, "owner", owner)
        with self.transaction() as parts:
            lines = parts.body_lines
            idx = max(0, min(len(lines) - 1, line - 1))
            now = self.clock()
            memo = Memo(
                id=memo_id or new_memo_id(),
                type=memo_type or color_to_type(color),
                owner=owner,
                source=source or self.config.defaults.source,
                color=color,
                text=text,
                anchor_text=lines[idx].strip(),
                anchor=make_anchor(idx, lines[idx]),
                created_at=now,
                updated_at=now,
            )
            parts.memos.append(memo)
        return memo

    def remove_memo(self, memo_id: str) -> Memo:
        """Delete a memo and drop its id from every gate's ``blocked_by``."""
        with self.transaction() as parts:
            memo = parts.find_memo(memo_id)
            if memo is None:
                raise MemoNotFoundError(memo_id)
            parts.memos.remove(memo)
            for gate in parts.gates:
                gate.blocked_by = [b for b in gate.blocked_by if b != memo_id]
        return memo

    # -- gates ---------------------------------------------------------------

    def add_gate(
        self,
        gate_type: str = GateType.CUSTOM.value,
        blocked_by: Optional[List[str]] = None,
        can_proceed_if: str = "",
        done_definition: str = "",
        gate_id: Optional[str] = None,
    ) -> Gate:
        gate_type = _check(GateType, "gate type", gate_type)
        with self.transaction() as parts:
            gate = Gate(
                id=gate_id or new_gate_id(),
                type=gate_type,
                blocked_by=list(blocked_by or []),
                can_proceed_if=can_proceed_if,
                done_definition=done_definition,
            )
            parts.gates.append(gate)
        return parts.find_gate(gate.id)

    def evaluate_gates(self) -> List[Gate]:
        """Current gate statuses, without writing."""
        parts = self.snapshot()
        return evaluate_all_gates(parts.gates, parts.memos)

    # -- cursor and checkpoints ----------------------------------------------

    def update_cursor(self, task_id: str, step: str, next_action: str) -> PlanCursor:
        """Replace the plan cursor; ``last_seen_hash`` is the hash of the current body."""
        with self.transaction() as parts:
            parts.cursor = PlanCursor(
                task_id=task_id,
                step=step,
                next_action=next_action,
                last_seen_hash=body_hash(parts.body),
                updated_at=self.clock(),
            )
        return parts.cursor

    def create_checkpoint(self, note: str) -> Checkpoint:
        """Append a checkpoint line (no full re-serialization)."""
        with self._lock:
            text = self.read()
            checkpoint, updated = _create_checkpoint(
                text, note, timestamp=self.clock(), config=self.config
            )
            write_markdown_file(self.path, updated, self.config)
        logger.info(f"Checkpoint {checkpoint.id} added to {self.path}")
        return checkpoint

    def normalize(self) -> bool:
        """Rewrite the file in canonical dialects; True when it changed."""
        with self._lock:
            before = self.read()
            with self.transaction():
                pass
            return self.read() != before
