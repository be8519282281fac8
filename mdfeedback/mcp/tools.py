"""
MCP tools for md-feedback.

Ten tools for agents working on an annotated markdown file:
    list_annotations        All memos with status/owner/anchor
    get_document_structure  Full review document (memos, gates, cursor, sections, summary)
    update_memo_status      Change a memo's status (and owner), rewrite the file
    update_cursor           Move the plan cursor, rewrite the file
    evaluate_gates          Recompute gate statuses without writing
    create_checkpoint       Append a checkpoint line
    get_checkpoints         List checkpoints
    get_review_status       Counts, checkpoints and reviewed sections
    generate_handoff        Render a session handoff
    pickup_handoff          Parse an existing handoff

Every function returns a JSON-serializable dict with ``status`` and
``summary`` keys and never raises, so they can be registered with a
FastMCP server via ``mcp.tool()`` or called directly as library functions.
"""

import logging
from typing import Any, Dict

from mdfeedback.checkpoint import (
    count_annotations,
    extract_checkpoints,
    sections_with_annotations,
)
from mdfeedback.file_ops import read_markdown_file
from mdfeedback.gates import evaluate_all_gates, gate_summary
from mdfeedback.handoff import (
    HANDOFF_TARGETS,
    build_handoff_document,
    format_handoff_markdown,
    parse_handoff_file,
)
from mdfeedback.review import build_review_document
from mdfeedback.session import FeedbackSession
from mdfeedback.splitter import split_document

logger = logging.getLogger(__name__)


def _wrap_error(error: Exception, tool_name: str) -> Dict[str, Any]:
    """Standardized error response."""
    return {
        "status": "error",
        "error": str(error),
        "tool": tool_name,
        "summary": f"{tool_name} failed: {str(error)[:150]}",
    }


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------

def list_annotations(file: str) -> Dict[str, Any]:
    """
    List every memo annotation in a markdown file.

    Parameters
    ----------
    file : str
        Path to the annotated markdown file.

    Returns
    -------
    dict
        {"status": "ok", "annotations": [memo dicts], "total": int, "summary": str}
    """
    try:
        parts = split_document(read_markdown_file(file))
        annotations = [m.to_dict() for m in parts.memos]
        open_count = sum(1 for m in parts.memos if m.is_open)
        return {
            "status": "ok",
            "annotations": annotations,
            "total": len(annotations),
            "summary": f"{len(annotations)} annotations ({open_count} open) in {file}",
        }
    except Exception as e:
        return _wrap_error(e, "list_annotations")


def get_document_structure(file: str) -> Dict[str, Any]:
    """
    Return the full review document: body, memos, checkpoints, re-evaluated
    gates, cursor, section coverage and summary counts.
    """
    try:
        doc = build_review_document(read_markdown_file(file), file)
        s = doc["summary"]
        return {
            "status": "ok",
            "document": doc,
            "summary": (
                f"{s['total']} memos ({s['open']} open, {s['done']} resolved), "
                f"{len(doc['gates'])} gates ({s['blocked']} blocked)"
            ),
        }
    except Exception as e:
        return _wrap_error(e, "get_document_structure")


def evaluate_gates(file: str) -> Dict[str, Any]:
    """Evaluate all gates against current memo statuses. The file is not modified."""
    try:
        parts = split_document(read_markdown_file(file))
        gates = evaluate_all_gates(parts.gates, parts.memos)
        counts = gate_summary(gates)
        return {
            "status": "ok",
            "gates": [g.to_dict() for g in gates],
            "gate_summary": {"total": len(gates), **counts},
            "summary": (
                f"{len(gates)} gates: {counts['blocked']} blocked, "
                f"{counts['proceed']} proceed, {counts['done']} done"
            ),
        }
    except Exception as e:
        return _wrap_error(e, "evaluate_gates")


def get_checkpoints(file: str) -> Dict[str, Any]:
    """List all checkpoints in an annotated markdown file."""
    try:
        checkpoints = extract_checkpoints(read_markdown_file(file))
        return {
            "status": "ok",
            "checkpoints": [c.to_dict() for c in checkpoints],
            "summary": f"{len(checkpoints)} checkpoints in {file}",
        }
    except Exception as e:
        return _wrap_error(e, "get_checkpoints")


def get_review_status(file: str) -> Dict[str, Any]:
    """Annotation counts, checkpoint count, last checkpoint time and reviewed sections."""
    try:
        text = read_markdown_file(file)
        counts = count_annotations(text)
        checkpoints = extract_checkpoints(text)
        sections = sections_with_annotations(text)
        return {
            "status": "ok",
            "file": file,
            "annotations": counts.to_dict(),
            "checkpointCount": len(checkpoints),
            "lastCheckpoint": checkpoints[-1].timestamp if checkpoints else None,
            "sectionsReviewed": sections,
            "summary": (
                f"{counts.fixes} fix, {counts.questions} question, "
                f"{counts.highlights} highlight; {len(sections)} sections reviewed"
            ),
        }
    except Exception as e:
        return _wrap_error(e, "get_review_status")


def generate_handoff(file: str, target: str = "standalone") -> Dict[str, Any]:
    """
    Render a session handoff from an annotated markdown file.

    Parameters
    ----------
    file : str
        Path to the annotated markdown file.
    target : str, default "standalone"
        One of "standalone", "claude-md", "cursor-rules".
    """
    try:
        if target not in HANDOFF_TARGETS:
            raise ValueError(f"Unknown target {target!r}; expected one of {', '.join(HANDOFF_TARGETS)}")
        doc = build_handoff_document(read_markdown_file(file), file)
        return {
            "status": "ok",
            "target": target,
            "handoff": format_handoff_markdown(doc, target),
            "summary": (
                f"Handoff for {file}: {len(doc.decisions)} decisions, "
                f"{len(doc.open_questions)} open questions, {len(doc.next_steps)} next steps"
            ),
        }
    except Exception as e:
        return _wrap_error(e, "generate_handoff")


def pickup_handoff(file: str) -> Dict[str, Any]:
    """Parse an existing handoff document to resume a review session."""
    try:
        doc = parse_handoff_file(read_markdown_file(file))
        if doc is None:
            return {
                "status": "invalid",
                "summary": f"{file} is not a valid handoff document",
            }
        return {
            "status": "ok",
            "handoff": doc.to_dict(),
            "summary": f"Resumed handoff for {doc.meta.file}: {len(doc.next_steps)} next steps",
        }
    except Exception as e:
        return _wrap_error(e, "pickup_handoff")


# ---------------------------------------------------------------------------
# Writing tools
# ---------------------------------------------------------------------------

def update_memo_status(file: str, memo_id: str, status: str, owner: str = "") -> Dict[str, Any]:
    """
    Update a memo's status and write the change back to the file.

    Parameters
    ----------
    file : str
        Path to the annotated markdown file.
    memo_id : str
        Memo to update.
    status : str
        One of "open", "answered", "done", "wontfix".
    owner : str, optional
        New owner ("human", "agent", "tool"). Empty keeps the current owner.
    """
    try:
        memo, gates = FeedbackSession(file).update_memo_status(memo_id, status, owner or None)
        return {
            "status": "ok",
            "memo": memo.to_dict(),
            "gatesUpdated": len(gates),
            "summary": f"Memo {memo_id} -> {memo.status}; {len(gates)} gates re-evaluated",
        }
    except Exception as e:
        return _wrap_error(e, "update_memo_status")


def update_cursor(file: str, task_id: str, step: str, next_action: str) -> Dict[str, Any]:
    """Move the plan cursor (one per document) and write the file."""
    try:
        cursor = FeedbackSession(file).update_cursor(task_id, step, next_action)
        return {
            "status": "ok",
            "cursor": cursor.to_dict(),
            "summary": f"Cursor at {task_id} step {step}",
        }
    except Exception as e:
        return _wrap_error(e, "update_cursor")


def create_checkpoint(file: str, note: str) -> Dict[str, Any]:
    """Record current annotation counts and reviewed sections as a checkpoint."""
    try:
        checkpoint = FeedbackSession(file).create_checkpoint(note)
        return {
            "status": "ok",
            "checkpoint": checkpoint.to_dict(),
            "summary": (
                f"Checkpoint {checkpoint.id}: {checkpoint.fixes} fix, "
                f"{checkpoint.questions} question, {checkpoint.highlights} highlight"
            ),
        }
    except Exception as e:
        return _wrap_error(e, "create_checkpoint")


# ---------------------------------------------------------------------------
# Registration helper for FastMCP
# ---------------------------------------------------------------------------

FEEDBACK_TOOLS = (
    list_annotations,
    get_document_structure,
    update_memo_status,
    update_cursor,
    evaluate_gates,
    create_checkpoint,
    get_checkpoints,
    get_review_status,
    generate_handoff,
    pickup_handoff,
)


def register_feedback_tools(mcp_server) -> None:
    """
    Register all md-feedback tools with a FastMCP server instance.

    Usage:
        from mcp.server.fastmcp import FastMCP
        mcp = FastMCP("md-feedback")
        register_feedback_tools(mcp)
    """
    for fn in FEEDBACK_TOOLS:
        mcp_server.tool()(fn)
    logger.info(f"Registered {len(FEEDBACK_TOOLS)} md-feedback MCP tools")
