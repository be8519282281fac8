"""
Tests for md-feedback MCP tool registration and tool results.

Tools are called directly as library functions against temporary files;
a minimal mock server verifies registration without starting FastMCP.
"""

import json

import pytest

from mdfeedback.mcp import tools
from mdfeedback.mcp.server import build_parser


# ---------------------------------------------------------------------------
# Minimal MCP server mock
# ---------------------------------------------------------------------------

class MockMCPServer:
    """Minimal mock that captures registered tools."""

    def __init__(self):
        self._tools = {}

    def tool(self):
        def decorator(func):
            self._tools[func.__name__] = func
            return func
        return decorator

    @property
    def registered_names(self):
        return set(self._tools.keys())


@pytest.fixture
def registered_server():
    server = MockMCPServer()
    tools.register_feedback_tools(server)
    return server


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestToolRegistration:

    def test_all_ten_tools_registered(self, registered_server):
        assert registered_server.registered_names == {
            "list_annotations",
            "get_document_structure",
            "update_memo_status",
            "update_cursor",
            "evaluate_gates",
            "create_checkpoint",
            "get_checkpoints",
            "get_review_status",
            "generate_handoff",
            "pickup_handoff",
        }

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.verbose is False


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------

class TestReadTools:

    def test_list_annotations(self, md_file):
        result = tools.list_annotations(str(md_file))
        assert result["status"] == "ok"
        assert result["total"] == 3
        assert [a["id"] for a in result["annotations"]] == ["f1", "f2", "q1"]
        assert "3 open" in result["summary"]

    def test_results_are_json_serializable(self, md_file):
        for fn in (tools.list_annotations, tools.get_document_structure,
                   tools.evaluate_gates, tools.get_review_status):
            json.dumps(fn(str(md_file)))

    def test_get_document_structure(self, md_file):
        result = tools.get_document_structure(str(md_file))
        doc = result["document"]
        assert doc["sections"]["uncovered"] == ["Deploy"]
        assert doc["summary"]["blocked"] == 1

    def test_evaluate_gates_does_not_write(self, md_file):
        before = md_file.read_text(encoding="utf-8")
        result = tools.evaluate_gates(str(md_file))
        assert result["gate_summary"] == {"total": 1, "blocked": 1, "proceed": 0, "done": 0}
        assert md_file.read_text(encoding="utf-8") == before

    def test_get_review_status(self, md_file):
        result = tools.get_review_status(str(md_file))
        assert result["annotations"] == {"fixes": 2, "questions": 1, "highlights": 0}
        assert result["checkpointCount"] == 0
        assert result["lastCheckpoint"] is None
        assert result["sectionsReviewed"] == ["Auth"]

    def test_missing_file_is_error_dict(self, tmp_path):
        result = tools.list_annotations(str(tmp_path / "missing.md"))
        assert result["status"] == "error"
        assert result["tool"] == "list_annotations"
        assert "File not found" in result["error"]


# ---------------------------------------------------------------------------
# Writing tools
# ---------------------------------------------------------------------------

class TestWriteTools:

    def test_update_memo_status(self, md_file):
        result = tools.update_memo_status(str(md_file), "q1", "answered")
        assert result["status"] == "ok"
        assert result["memo"]["status"] == "answered"
        assert result["gatesUpdated"] == 1
        gates = tools.evaluate_gates(str(md_file))["gates"]
        assert gates[0]["status"] == "proceed"

    def test_update_memo_status_unknown_memo(self, md_file):
        result = tools.update_memo_status(str(md_file), "nope", "done")
        assert result["status"] == "error"
        assert "nope" in result["error"]

    def test_update_memo_status_invalid_status(self, md_file):
        result = tools.update_memo_status(str(md_file), "q1", "closed")
        assert result["status"] == "error"
        assert "closed" in result["error"]

    def test_update_cursor(self, md_file):
        result = tools.update_cursor(str(md_file), "auth", "1/3", "rotate keys")
        assert result["cursor"]["taskId"] == "auth"
        doc = tools.get_document_structure(str(md_file))["document"]
        assert doc["cursor"]["nextAction"] == "rotate keys"

    def test_create_and_get_checkpoints(self, md_file):
        created = tools.create_checkpoint(str(md_file), "first pass")
        assert created["checkpoint"]["fixes"] == 2
        listed = tools.get_checkpoints(str(md_file))
        assert listed["checkpoints"] == [created["checkpoint"]]
        status = tools.get_review_status(str(md_file))
        assert status["lastCheckpoint"] == created["checkpoint"]["timestamp"]


# ---------------------------------------------------------------------------
# Handoff tools
# ---------------------------------------------------------------------------

class TestHandoffTools:

    def test_generate_and_pickup(self, md_file, tmp_path):
        result = tools.generate_handoff(str(md_file))
        assert result["status"] == "ok"
        assert result["handoff"].startswith("# HANDOFF")

        handoff_path = tmp_path / "HANDOFF.md"
        handoff_path.write_text(result["handoff"], encoding="utf-8")
        picked = tools.pickup_handoff(str(handoff_path))
        assert picked["status"] == "ok"
        assert picked["handoff"]["meta"]["file"] == str(md_file)
        assert len(picked["handoff"]["decisions"]) == 2

    def test_unknown_target(self, md_file):
        result = tools.generate_handoff(str(md_file), target="vim")
        assert result["status"] == "error"

    def test_pickup_non_handoff(self, md_file):
        assert tools.pickup_handoff(str(md_file))["status"] == "invalid"
