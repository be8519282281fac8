"""
md-feedback: Review Feedback Stored Inside Markdown

Reviewer annotations (memos, gates, a plan cursor and checkpoints) live
in HTML comments inside the markdown file itself, so the document stays
readable and the annotation state travels with it.

Core (pure, no I/O):
    split:                      annotated text -> DocumentParts
    merge:                      DocumentParts -> annotated text (canonical syntax)
    evaluate_all_gates:         gate statuses derived from memo statuses
    count_annotations:          fix/question/highlight counts from raw text
    sections_with_annotations:  headings with at least one annotation
    all_sections:               every section heading
    create_checkpoint:          append a checkpoint line

Collaborator layer:
    session.FeedbackSession:    locked read -> split -> mutate -> merge -> write
    mcp.tools:                  agent tools returning JSON-serializable dicts
    cli.mdfbctl:                command line
"""

from mdfeedback.checkpoint import (
    all_sections,
    count_annotations,
    create_checkpoint,
    sections_with_annotations,
)
from mdfeedback.gates import evaluate_all_gates, evaluate_gate
from mdfeedback.merger import merge_document
from mdfeedback.models import (
    AnnotationCounts,
    Checkpoint,
    DocumentParts,
    Gate,
    Memo,
    PlanCursor,
)
from mdfeedback.splitter import split_document
from mdfeedback.version import __version__

split = split_document
merge = merge_document

__all__ = [
    "AnnotationCounts",
    "Checkpoint",
    "DocumentParts",
    "Gate",
    "Memo",
    "PlanCursor",
    "all_sections",
    "count_annotations",
    "create_checkpoint",
    "evaluate_all_gates",
    "evaluate_gate",
    "merge",
    "merge_document",
    "sections_with_annotations",
    "split",
    "split_document",
    "__version__",
]
