"""
Comment grammar for annotated markdown.

A line scanner with one matcher per dialect. Each matcher looks at the
line at index ``i`` and returns a ``DialectMatch`` (what was recognized and
how many lines it consumed) or ``None``. ``match_dialect`` tries them in
the fixed priority order; the first match wins and its block is consumed
atomically by the caller.

Recognized dialects:
    frontmatter      leading ``---`` ... ``---`` block (start of document only)
    memo_v3          ``<!-- USER_MEMO id="ID" [color] [status] : TEXT -->``
    memo_v4          ``<!-- USER_MEMO`` / key="value" lines / ``-->``
    memo_legacy      ``<!-- @memo id="ID" ... -->`` ... ``<!-- @/memo -->``
    gate             ``<!-- GATE`` / key="value" lines / ``-->``
    cursor           ``<!-- PLAN_CURSOR`` / key="value" lines / ``-->``
    checkpoint       ``<!-- CHECKPOINT id=... sections="..." -->``
    banner           ``<!--`` followed by a product-marker line, through ``-->``
    wrapper          feedback-notes wrapper tags

A block opener whose terminator never appears is not a match: the opener
line falls through to the body, so nothing is ever dropped.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class DialectKind(str, Enum):
    FRONTMATTER = "frontmatter"
    MEMO_V3 = "memo_v3"
    MEMO_V4 = "memo_v4"
    MEMO_LEGACY = "memo_legacy"
    GATE = "gate"
    CURSOR = "cursor"
    CHECKPOINT = "checkpoint"
    BANNER = "banner"
    WRAPPER = "wrapper"


@dataclass
class DialectMatch:
    """Result of a successful dialect match starting at one line."""
    kind: DialectKind
    consumed: int                       # number of source lines consumed (>= 1)
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""                      # memo text for v3/legacy dialects
    raw: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(?:[\s\S]*?\n)?---[ \t]*\n")

_MEMO_V3_RE = re.compile(
    r'^<!-- USER_MEMO\s+id="([^"]+)"'
    r'(?:\s+color="([^"]+)")?'
    r'(?:\s+status="([^"]+)")?'
    r"\s*:\s*(.*?)\s*-->$"
)
_MEMO_V4_START_RE = re.compile(r"^<!-- USER_MEMO\s*$")
_GATE_START_RE = re.compile(r"^<!-- GATE\s*$")
_CURSOR_START_RE = re.compile(r"^<!-- PLAN_CURSOR\s*$")
_BLOCK_END = "-->"

_LEGACY_START_RE = re.compile(
    r'^<!-- @memo\s+id="([^"]+)"'
    r'(?:\s+color="([^"]+)")?'
    r'(?:\s+date="([^"]+)")?'
    r"\s*-->$"
)
_LEGACY_END_RE = re.compile(r"^<!-- @/memo -->$")
_LEGACY_LINE_OPEN_RE = re.compile(r"^<!--\s*")
_LEGACY_LINE_CLOSE_RE = re.compile(r"\s*-->$")

_CHECKPOINT_RE = re.compile(
    r'^<!-- CHECKPOINT\s+id="([^"]+)"\s+time="([^"]+)"\s+note="([^"]*)"'
    r"\s+fixes=(\d+)\s+questions=(\d+)\s+highlights=(\d+)"
    r'\s+sections="([^"]*)" -->$'
)

_WRAPPER_RE = re.compile(r"^<!-- /?(USER_FEEDBACK_NOTES|@/?feedback-notes)\b.*-->$")

_ATTR_RE = re.compile(r'(\w+)="([^"]*)"')

# Zero-width space keeps "-->" inside a value from closing the HTML comment.
_COMMENT_CLOSE_GUARD = "--\u200b>"


# ---------------------------------------------------------------------------
# Attribute escaping
# ---------------------------------------------------------------------------

def escape_attr(value: str) -> str:
    """Escape a value for a ``key="value"`` attribute on a single line."""
    return (
        value.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("\r", "&#13;")
        .replace("\n", "&#10;")
        .replace("-->", _COMMENT_CLOSE_GUARD)
    )


def unescape_attr(value: str) -> str:
    return (
        value.replace(_COMMENT_CLOSE_GUARD, "-->")
        .replace("&#10;", "\n")
        .replace("&#13;", "\r")
        .replace("&quot;", '"')
        .replace("&amp;", "&")
    )


def parse_attrs(lines: List[str]) -> Dict[str, str]:
    """Parse ``key="value"`` pairs from block lines; last occurrence wins."""
    attrs: Dict[str, str] = {}
    for line in lines:
        for key, value in _ATTR_RE.findall(line):
            attrs[key] = unescape_attr(value)
    return attrs


def is_comment_line(line: str) -> bool:
    """True when the stripped line opens an HTML comment."""
    return line.strip().startswith("<!--")


# ---------------------------------------------------------------------------
# Frontmatter
# ---------------------------------------------------------------------------

def match_frontmatter(text: str) -> str:
    """
    Return the leading frontmatter block verbatim, or "" if there is none.

    The capture includes the closing ``---`` line and at most one following
    blank line, which is the separator the merger writes back.
    """
    m = _FRONTMATTER_RE.match(text)
    if not m:
        return ""
    end = m.end()
    rest = text[end:]
    nl = rest.find("\n")
    if nl >= 0 and rest[:nl].strip() == "":
        end += nl + 1
    return text[:end]


# ---------------------------------------------------------------------------
# Dialect matchers
# ---------------------------------------------------------------------------

def _find_block_end(lines: List[str], start: int, is_end: Callable[[str], bool]) -> int:
    """Index of the first terminator line at or after ``start``, or -1."""
    for j in range(start, len(lines)):
        if is_end(lines[j].strip()):
            return j
    return -1


def _match_attr_block(
    lines: List[str],
    i: int,
    start_re: "re.Pattern[str]",
    kind: DialectKind,
) -> Optional[DialectMatch]:
    if not start_re.match(lines[i].strip()):
        return None
    end = _find_block_end(lines, i + 1, lambda s: s == _BLOCK_END)
    if end < 0:
        logger.warning(
            f"Unterminated {kind.value} block at line {i + 1}; keeping it as body text"
        )
        return None
    return DialectMatch(
        kind=kind,
        consumed=end - i + 1,
        attrs=parse_attrs(lines[i + 1:end]),
        raw=lines[i:end + 1],
    )


def match_memo_v3(lines: List[str], i: int) -> Optional[DialectMatch]:
    m = _MEMO_V3_RE.match(lines[i].strip())
    if not m:
        return None
    attrs = {"id": m.group(1)}
    if m.group(2):
        attrs["color"] = m.group(2)
    if m.group(3):
        attrs["status"] = m.group(3)
    return DialectMatch(
        kind=DialectKind.MEMO_V3,
        consumed=1,
        attrs=attrs,
        text=m.group(4).replace(_COMMENT_CLOSE_GUARD, "-->"),
        raw=[lines[i]],
    )


def match_memo_v4(lines: List[str], i: int) -> Optional[DialectMatch]:
    return _match_attr_block(lines, i, _MEMO_V4_START_RE, DialectKind.MEMO_V4)


def match_memo_legacy(lines: List[str], i: int) -> Optional[DialectMatch]:
    m = _LEGACY_START_RE.match(lines[i].strip())
    if not m:
        return None
    end = _find_block_end(lines, i + 1, lambda s: bool(_LEGACY_END_RE.match(s)))
    if end < 0:
        logger.warning(f"Unterminated legacy memo at line {i + 1}; keeping it as body text")
        return None
    inner = [
        _LEGACY_LINE_CLOSE_RE.sub("", _LEGACY_LINE_OPEN_RE.sub("", line))
        for line in lines[i + 1:end]
    ]
    attrs = {"id": m.group(1)}
    if m.group(2):
        attrs["color"] = m.group(2)
    if m.group(3):
        attrs["date"] = m.group(3)
    return DialectMatch(
        kind=DialectKind.MEMO_LEGACY,
        consumed=end - i + 1,
        attrs=attrs,
        text="\n".join(inner).strip(),
        raw=lines[i:end + 1],
    )


def match_gate(lines: List[str], i: int) -> Optional[DialectMatch]:
    return _match_attr_block(lines, i, _GATE_START_RE, DialectKind.GATE)


def match_cursor(lines: List[str], i: int) -> Optional[DialectMatch]:
    return _match_attr_block(lines, i, _CURSOR_START_RE, DialectKind.CURSOR)


def match_checkpoint(lines: List[str], i: int) -> Optional[DialectMatch]:
    m = _CHECKPOINT_RE.match(lines[i].strip())
    if not m:
        return None
    return DialectMatch(
        kind=DialectKind.CHECKPOINT,
        consumed=1,
        attrs={
            "id": unescape_attr(m.group(1)),
            "time": unescape_attr(m.group(2)),
            "note": unescape_attr(m.group(3)),
            "fixes": m.group(4),
            "questions": m.group(5),
            "highlights": m.group(6),
            "sections": m.group(7),
        },
        raw=[lines[i]],
    )


def match_banner(lines: List[str], i: int, marker: str = "MD Feedback") -> Optional[DialectMatch]:
    if lines[i].strip() != "<!--" or i + 1 >= len(lines) or marker not in lines[i + 1]:
        return None
    end = _find_block_end(lines, i, lambda s: _BLOCK_END in s)
    if end < 0:
        logger.warning(f"Unterminated banner comment at line {i + 1}; keeping it as body text")
        return None
    return DialectMatch(kind=DialectKind.BANNER, consumed=end - i + 1, raw=lines[i:end + 1])


def match_wrapper(lines: List[str], i: int) -> Optional[DialectMatch]:
    if not _WRAPPER_RE.match(lines[i].strip()):
        return None
    return DialectMatch(kind=DialectKind.WRAPPER, consumed=1, raw=[lines[i]])


def match_dialect(
    lines: List[str],
    i: int,
    banner_marker: str = "MD Feedback",
) -> Optional[DialectMatch]:
    """Try every line-level dialect in priority order; first match wins."""
    if "<!--" not in lines[i]:
        return None
    for matcher in (
        match_memo_v3,
        match_memo_v4,
        match_memo_legacy,
        match_gate,
        match_cursor,
        match_checkpoint,
    ):
        result = matcher(lines, i)
        if result is not None:
            return result
    result = match_banner(lines, i, banner_marker)
    if result is not None:
        return result
    return match_wrapper(lines, i)
