"""
Anchor resolution: re-locate a memo's attachment line after the body moved.

An anchor is ``L<n>|<hash8>`` (or ``L<n>:L<m>|<hash8>`` for a range), where
``n`` is the 1-based line number at anchoring time and ``hash8`` the hash of
that line's exact text. Resolution order:

1. exact position, when the line at ``n`` still hashes to ``hash8``
2. hash probe outward from ``n`` (nearer first, upper side before lower)
3. first body line containing the stripped ``anchorText``
4. unresolved (-1)
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import FeedbackConfig, get_feedback_config
from .hashing import hash_line
from .models import Memo

logger = logging.getLogger(__name__)

UNRESOLVED = -1

_ANCHOR_RE = re.compile(r"^L(\d+)(?::L(\d+))?\|(.+)$")


@dataclass(frozen=True)
class AnchorRef:
    """Parsed anchor locator (1-based line numbers)."""
    start: int
    end: Optional[int]
    hash: str


def parse_anchor(anchor: Optional[str]) -> Optional[AnchorRef]:
    """Parse ``L<n>(:L<m>)?|<hash>``; returns None for anything else."""
    if not anchor:
        return None
    m = _ANCHOR_RE.match(anchor.strip())
    if not m:
        return None
    end = int(m.group(2)) if m.group(2) else None
    return AnchorRef(start=int(m.group(1)), end=end, hash=m.group(3).strip().lower())


def make_anchor(line_index: int, line: str, end_index: Optional[int] = None) -> str:
    """Build an anchor for the 0-based ``line_index`` whose text is ``line``."""
    if end_index is not None and end_index != line_index:
        return f"L{line_index + 1}:L{end_index + 1}|{hash_line(line)}"
    return f"L{line_index + 1}|{hash_line(line)}"


def nearest_anchor(body_lines: List[str]) -> Tuple[str, str]:
    """
    Anchor the last non-blank line of ``body_lines``.

    Returns ``(anchor, anchor_text)``, or ``("", "")`` when every line is blank.
    """
    for idx in range(len(body_lines) - 1, -1, -1):
        line = body_lines[idx]
        if line.strip():
            return make_anchor(idx, line), line.strip()
    return "", ""


def resolve_anchor(
    anchor: Optional[str],
    anchor_text: Optional[str],
    body_lines: List[str],
    probe_radius: Optional[int] = None,
) -> int:
    """Return the 0-based body line a memo attaches to, or ``UNRESOLVED``."""
    if probe_radius is None:
        probe_radius = get_feedback_config().anchor.probe_radius

    ref = parse_anchor(anchor)
    if ref is not None:
        target = ref.start - 1
        count = len(body_lines)
        if 0 <= target < count and hash_line(body_lines[target]) == ref.hash:
            return target
        for d in range(1, probe_radius + 1):
            for idx in (target - d, target + d):
                if 0 <= idx < count and hash_line(body_lines[idx]) == ref.hash:
                    logger.debug(f"Anchor {anchor} moved {idx - target:+d} lines")
                    return idx

    needle = (anchor_text or "").strip()
    if needle:
        for idx, line in enumerate(body_lines):
            if needle in line:
                return idx

    return UNRESOLVED


def find_anchor_line(
    memo: Memo,
    body_lines: List[str],
    config: Optional[FeedbackConfig] = None,
) -> int:
    """Resolve a memo's attachment line in ``body_lines``."""
    config = config or get_feedback_config()
    return resolve_anchor(
        memo.anchor,
        memo.anchor_text,
        body_lines,
        probe_radius=config.anchor.probe_radius,
    )
