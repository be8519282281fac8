"""
md-feedback MCP tools for agent integration.

10 tools:
    list_annotations, get_document_structure, update_memo_status,
    update_cursor, evaluate_gates, create_checkpoint, get_checkpoints,
    get_review_status, generate_handoff, pickup_handoff
"""

from mdfeedback.mcp.tools import (
    FEEDBACK_TOOLS,
    create_checkpoint,
    evaluate_gates,
    generate_handoff,
    get_checkpoints,
    get_document_structure,
    get_review_status,
    list_annotations,
    pickup_handoff,
    register_feedback_tools,
    update_cursor,
    update_memo_status,
)
