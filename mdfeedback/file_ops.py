"""
File access for annotated markdown documents.

The core never touches storage; these helpers are used by the session and
tool layers. Writes go through a temporary file in the same directory and
``os.replace`` so readers never observe a half-written document.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from .config import FeedbackConfig, get_feedback_config
from .errors import DocumentIOError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_markdown_file(path: PathLike) -> str:
    """Read a markdown file as UTF-8 text."""
    path = Path(path)
    if not path.exists():
        raise DocumentIOError(path, "File not found")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentIOError(path, f"Cannot read file ({e})") from e


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``text`` atomically, keeping its permission bits."""
    tmp_path: Optional[Path] = None
    existing_mode: Optional[int] = None
    try:
        if path.exists():
            try:
                existing_mode = path.stat().st_mode & 0o777
            except OSError:
                existing_mode = None
        with tempfile.NamedTemporaryFile(
            "w", encoding=encoding, delete=False, dir=path.parent, newline="",
            prefix=f".{path.name}.", suffix=".tmp",
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        if existing_mode is not None:
            os.chmod(tmp_path, existing_mode)
        os.replace(tmp_path, path)
        tmp_path = None
        if hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(path.parent, os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
    finally:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove temporary file {tmp_path}: {e}")


def write_markdown_file(
    path: PathLike,
    text: str,
    config: Optional[FeedbackConfig] = None,
) -> None:
    """Write a markdown file, atomically unless ``write.atomic`` is disabled."""
    config = config or get_feedback_config()
    path = Path(path)
    try:
        if config.write.atomic:
            # Resolve symlinks so the link itself is kept and its target is replaced
            atomic_write_text(path.resolve(), text)
        else:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
    except OSError as e:
        raise DocumentIOError(path, f"Cannot write file ({e})") from e
    logger.debug(f"Wrote {len(text)} chars to {path}")
