"""
mdfbctl: command line for md-feedback annotated markdown.

Commands:
    status       Annotation counts, checkpoints and reviewed sections
    list         List memos
    structure    Full review document (JSON)
    gates        Evaluate gates against current memo statuses
    checkpoint   Append a checkpoint
    checkpoints  List checkpoints
    cursor       Show or move the plan cursor
    set-status   Change a memo's status
    handoff      Render a session handoff
    normalize    Rewrite the file in canonical comment syntax
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from mdfeedback.config import load_config, set_feedback_config
from mdfeedback.errors import FeedbackError
from mdfeedback.mcp import tools
from mdfeedback.models import MemoOwner, MemoStatus
from mdfeedback.session import FeedbackSession
from mdfeedback.version import __version__

logger = logging.getLogger(__name__)

# ANSI color helpers (auto-disabled for non-TTY)
_USE_COLOR = sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def _bold(text: str) -> str:
    return _c("1", text)


def _green(text: str) -> str:
    return _c("32", text)


def _yellow(text: str) -> str:
    return _c("33", text)


def _red(text: str) -> str:
    return _c("31", text)


def _cyan(text: str) -> str:
    return _c("36", text)


def _dim(text: str) -> str:
    return _c("2", text)


_STATUS_COLORS = {
    "open": _red,
    "answered": _cyan,
    "done": _green,
    "wontfix": _dim,
    "blocked": _red,
    "proceed": _yellow,
}


def _status_color(status: str) -> str:
    return _STATUS_COLORS.get(status, str)(status)


def _emit(result: Dict[str, Any], args: argparse.Namespace) -> Optional[int]:
    """Print errors (and JSON when requested); return an exit code when done."""
    if result.get("status") == "error":
        print(_red(f"Error: {result['error']}"), file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0
    return None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_status(args: argparse.Namespace) -> int:
    """Show annotation counts and review progress."""
    result = tools.get_review_status(args.doc)
    code = _emit(result, args)
    if code is not None:
        return code

    counts = result["annotations"]
    print(_bold(f"Review status: {args.doc}"))
    print(f"  Fixes:       {counts['fixes']}")
    print(f"  Questions:   {counts['questions']}")
    print(f"  Highlights:  {counts['highlights']}")
    print(f"  Checkpoints: {result['checkpointCount']}")
    if result["lastCheckpoint"]:
        print(f"  Last:        {_dim(result['lastCheckpoint'])}")
    sections = result["sectionsReviewed"]
    print(f"  Reviewed:    {', '.join(sections) if sections else _dim('(none)')}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List memos, optionally filtered by status."""
    result = tools.list_annotations(args.doc)
    code = _emit(result, args)
    if code is not None:
        return code

    memos = result["annotations"]
    if args.status:
        memos = [m for m in memos if m["status"] == args.status]
    if not memos:
        print(_dim("No annotations"))
        return 0
    for m in memos:
        print(f"{_bold(m['id'])}  {m['type']:<9} {_status_color(m['status']):<8} {_dim(m['owner'])}")
        if m["anchorText"]:
            print(f"    {_dim('@')} {m['anchorText'][:80]}")
        if m["text"]:
            print(f"    {m['text']}")
    print(_dim(f"{len(memos)} of {result['total']} annotations"))
    return 0


def cmd_structure(args: argparse.Namespace) -> int:
    """Print the full review document as JSON."""
    result = tools.get_document_structure(args.doc)
    if result.get("status") == "error":
        print(_red(f"Error: {result['error']}"), file=sys.stderr)
        return 1
    payload = result if args.json else result["document"]
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def cmd_gates(args: argparse.Namespace) -> int:
    """Evaluate gates without modifying the file."""
    result = tools.evaluate_gates(args.doc)
    code = _emit(result, args)
    if code is not None:
        return code

    if not result["gates"]:
        print(_dim("No gates"))
        return 0
    for g in result["gates"]:
        blockers = ",".join(g["blockedBy"]) or "-"
        print(f"{_bold(g['id'])}  {g['type']:<9} {_status_color(g['status']):<8} blockedBy={blockers}")
    print(_dim(result["summary"]))
    return 0


def cmd_checkpoint(args: argparse.Namespace) -> int:
    """Append a checkpoint to the document."""
    result = tools.create_checkpoint(args.doc, args.note)
    code = _emit(result, args)
    if code is not None:
        return code
    cp = result["checkpoint"]
    print(_green(f"Checkpoint {cp['id']} created"))
    print(f"  {cp['fixes']} fix, {cp['questions']} question, {cp['highlights']} highlight")
    return 0


def cmd_checkpoints(args: argparse.Namespace) -> int:
    """List checkpoints, oldest first."""
    result = tools.get_checkpoints(args.doc)
    code = _emit(result, args)
    if code is not None:
        return code
    if not result["checkpoints"]:
        print(_dim("No checkpoints"))
        return 0
    for cp in result["checkpoints"]:
        print(
            f"{_bold(cp['id'])}  {_dim(cp['timestamp'])}  "
            f"{cp['fixes']}/{cp['questions']}/{cp['highlights']}  {cp['note']}"
        )
    return 0


def cmd_cursor(args: argparse.Namespace) -> int:
    """Show the plan cursor, or move it when --task is given."""
    if args.task:
        result = tools.update_cursor(args.doc, args.task, args.step or "", args.next_action or "")
        code = _emit(result, args)
        if code is not None:
            return code
        print(_green(result["summary"]))
        return 0

    try:
        cursor = FeedbackSession(args.doc).snapshot().cursor
    except FeedbackError as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps({"cursor": cursor.to_dict() if cursor else None}, indent=2))
        return 0
    if cursor is None:
        print(_dim("No cursor"))
        return 0
    print(_bold(f"Task {cursor.task_id}") + f"  step {cursor.step}")
    print(f"  Next: {cursor.next_action}")
    print(f"  {_dim(cursor.updated_at)}")
    return 0


def cmd_set_status(args: argparse.Namespace) -> int:
    """Change a memo's status (and optionally its owner)."""
    result = tools.update_memo_status(args.doc, args.memo_id, args.status, args.owner or "")
    code = _emit(result, args)
    if code is not None:
        return code
    print(_green(result["summary"]))
    return 0


def cmd_handoff(args: argparse.Namespace) -> int:
    """Render a session handoff to stdout or a file."""
    result = tools.generate_handoff(args.doc, args.target)
    if result.get("status") == "error":
        print(_red(f"Error: {result['error']}"), file=sys.stderr)
        return 1
    if args.output:
        Path(args.output).write_text(result["handoff"] + "\n", encoding="utf-8")
        print(_green(f"Handoff written to {args.output}"))
    elif args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        print(result["handoff"])
    return 0


def cmd_normalize(args: argparse.Namespace) -> int:
    """Rewrite legacy and single-line comments in canonical syntax."""
    try:
        changed = FeedbackSession(args.doc).normalize()
    except FeedbackError as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        return 1
    print(_green(f"Normalized {args.doc}") if changed else _dim("Already canonical"))
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the mdfbctl argument parser."""
    parser = argparse.ArgumentParser(
        prog="mdfbctl",
        description="md-feedback: review memos, gates and checkpoints inside markdown",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--json", action="store_true", help="Print raw JSON results")
    parser.add_argument("--config", help="Path to mdfeedback.yaml")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("status", help="Annotation counts and review progress")
    p.add_argument("doc", help="Path to Markdown document")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("list", help="List memos")
    p.add_argument("doc", help="Path to Markdown document")
    p.add_argument("-s", "--status", choices=[s.value for s in MemoStatus], help="Filter by status")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("structure", help="Full review document as JSON")
    p.add_argument("doc", help="Path to Markdown document")
    p.set_defaults(func=cmd_structure)

    p = sub.add_parser("gates", help="Evaluate gates")
    p.add_argument("doc", help="Path to Markdown document")
    p.set_defaults(func=cmd_gates)

    p = sub.add_parser("checkpoint", help="Append a checkpoint")
    p.add_argument("doc", help="Path to Markdown document")
    p.add_argument("note", help="Checkpoint note")
    p.set_defaults(func=cmd_checkpoint)

    p = sub.add_parser("checkpoints", help="List checkpoints")
    p.add_argument("doc", help="Path to Markdown document")
    p.set_defaults(func=cmd_checkpoints)

    p = sub.add_parser("cursor", help="Show or move the plan cursor")
    p.add_argument("doc", help="Path to Markdown document")
    p.add_argument("--task", help="Task id (moves the cursor)")
    p.add_argument("--step", help="Step, e.g. 3/7 or 'Phase 2'")
    p.add_argument("--next", dest="next_action", help="Next action")
    p.set_defaults(func=cmd_cursor)

    p = sub.add_parser("set-status", help="Change a memo's status")
    p.add_argument("doc", help="Path to Markdown document")
    p.add_argument("memo_id", help="Memo id")
    p.add_argument("status", choices=[s.value for s in MemoStatus], help="New status")
    p.add_argument("--owner", choices=[o.value for o in MemoOwner], help="New owner")
    p.set_defaults(func=cmd_set_status)

    p = sub.add_parser("handoff", help="Render a session handoff")
    p.add_argument("doc", help="Path to Markdown document")
    p.add_argument("-t", "--target", default="standalone",
                   choices=["standalone", "claude-md", "cursor-rules"],
                   help="Output format (default: standalone)")
    p.add_argument("-o", "--output", help="Write to this file instead of stdout")
    p.set_defaults(func=cmd_handoff)

    p = sub.add_parser("normalize", help="Rewrite comments in canonical syntax")
    p.add_argument("doc", help="Path to Markdown document")
    p.set_defaults(func=cmd_normalize)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for mdfbctl."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(Path(args.config) if args.config else None)
    set_feedback_config(config)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=getattr(logging, config.logging.level, logging.WARNING))

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
