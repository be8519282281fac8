"""ID and timestamp generation for the collaborator layer (never used by split/merge)."""

import uuid
from datetime import datetime, timezone

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int, width: int) -> str:
    chars = []
    for _ in range(width):
        n, r = divmod(n, 36)
        chars.append(_BASE36[r])
    return "".join(chars)


def new_checkpoint_id() -> str:
    """``ckpt_`` followed by 6 random base36 characters."""
    return f"ckpt_{_base36(uuid.uuid4().int, 6)}"


def new_memo_id() -> str:
    return f"memo_{uuid.uuid4().hex[:8]}"


def new_gate_id() -> str:
    return f"gate_{uuid.uuid4().hex[:8]}"


def utc_now() -> str:
    """Current UTC time as ISO 8601 with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
