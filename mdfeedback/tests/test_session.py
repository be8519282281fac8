"""Tests for FeedbackSession transactions and file helpers."""

import threading

import pytest

from mdfeedback import session as session_module
from mdfeedback.errors import DocumentIOError, InvalidValueError, MemoNotFoundError
from mdfeedback.file_ops import atomic_write_text, read_markdown_file, write_markdown_file
from mdfeedback.hashing import body_hash
from mdfeedback.session import FeedbackSession
from mdfeedback.splitter import split_document

FIXED_NOW = "2025-03-01T10:00:00.000Z"


@pytest.fixture
def session(md_file, fixed_clock):
    return FeedbackSession(md_file, clock=fixed_clock)


class TestFileOps:

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(DocumentIOError, match="File not found"):
            read_markdown_file(tmp_path / "missing.md")

    def test_atomic_write_replaces_content(self, tmp_path):
        path = tmp_path / "doc.md"
        path.write_text("old", encoding="utf-8")
        path.chmod(0o640)
        atomic_write_text(path, "new\n")
        assert path.read_text(encoding="utf-8") == "new\n"
        assert path.stat().st_mode & 0o777 == 0o640
        assert [p.name for p in tmp_path.iterdir()] == ["doc.md"]

    def test_write_through_symlink_keeps_link(self, tmp_path):
        target = tmp_path / "real.md"
        target.write_text("old", encoding="utf-8")
        link = tmp_path / "link.md"
        link.symlink_to(target)
        write_markdown_file(link, "new")
        assert link.is_symlink()
        assert target.read_text(encoding="utf-8") == "new"

    def test_write_into_missing_directory(self, tmp_path):
        with pytest.raises(DocumentIOError, match="Cannot write file"):
            write_markdown_file(tmp_path / "nope" / "doc.md", "x")


class TestMemoMutations:

    def test_update_status_reevaluates_gates(self, session, md_file):
        memo, gates = session.update_memo_status("q1", "answered")
        assert memo.status == "answered"
        assert memo.updated_at == FIXED_NOW
        assert [g.status for g in gates] == ["proceed"]

        parts = split_document(md_file.read_text(encoding="utf-8"))
        assert parts.find_memo("q1").status == "answered"
        assert parts.gates[0].status == "proceed"

    def test_all_resolved_makes_gate_done(self, session, md_file):
        for memo_id in ("f1", "f2", "q1"):
            _, gates = session.update_memo_status(memo_id, "done")
        assert gates[0].status == "done"
        assert 'status="done"' in md_file.read_text(encoding="utf-8")

    def test_update_owner(self, session):
        memo, _ = session.update_memo_status("f1", "done", owner="agent")
        assert memo.owner == "agent"
        assert session.snapshot().find_memo("f1").owner == "agent"

    def test_unknown_memo_leaves_file_alone(self, session, md_file):
        before = md_file.read_text(encoding="utf-8")
        with pytest.raises(MemoNotFoundError) as exc:
            session.update_memo_status("zzz", "done")
        assert exc.value.memo_id == "zzz"
        assert md_file.read_text(encoding="utf-8") == before

    def test_invalid_status(self, session, md_file):
        before = md_file.read_text(encoding="utf-8")
        with pytest.raises(InvalidValueError):
            session.update_memo_status("q1", "finished")
        with pytest.raises(ValueError):
            session.update_memo_status("q1", "done", owner="robot")
        assert md_file.read_text(encoding="utf-8") == before

    def test_add_memo(self, session):
        memo = session.add_memo("needs a diagram", line=4, color="yellow", memo_id="k1")
        assert memo.type == "highlight"
        assert memo.owner == "agent"
        assert memo.anchor_text == "Use JWT tokens."
        assert memo.anchor.startswith("L4|")
        assert memo.created_at == FIXED_NOW
        stored = session.snapshot().find_memo("k1")
        assert stored.text == "needs a diagram"

    def test_add_memo_clamps_line(self, session):
        memo = session.add_memo("end note", line=999, memo_id="k2")
        assert memo.anchor_text == "Ship it."

    def test_add_memo_invalid_color(self, session):
        with pytest.raises(InvalidValueError):
            session.add_memo("x", line=1, color="green")

    def test_remove_memo_unblocks_gate(self, session):
        removed = session.remove_memo("q1")
        assert removed.id == "q1"
        parts = session.snapshot()
        assert parts.find_memo("q1") is None
        assert parts.gates[0].blocked_by == []
        assert parts.gates[0].status == "proceed"


class TestGatesAndCursor:

    def test_add_gate(self, session):
        gate = session.add_gate("release", blocked_by=["f1"], gate_id="g2")
        assert gate.status == "blocked"
        assert [g.id for g in session.snapshot().gates] == ["g1", "g2"]

    def test_add_gate_invalid_type(self, session):
        with pytest.raises(InvalidValueError):
            session.add_gate("deploy")

    def test_evaluate_gates_does_not_write(self, session, md_file, monkeypatch):
        calls = []
        monkeypatch.setattr(session_module, "write_markdown_file", lambda *a, **k: calls.append(a))
        assert [g.status for g in session.evaluate_gates()] == ["blocked"]
        assert calls == []

    def test_update_cursor(self, session):
        cursor = session.update_cursor("auth", "2/5", "wire up refresh")
        parts = session.snapshot()
        assert parts.cursor == cursor
        assert cursor.updated_at == FIXED_NOW
        assert cursor.last_seen_hash == body_hash(parts.body)


class TestCheckpointAndNormalize:

    def test_create_checkpoint_appends_line(self, session, md_file):
        before = md_file.read_text(encoding="utf-8")
        cp = session.create_checkpoint("first pass")
        after = md_file.read_text(encoding="utf-8")
        assert after.startswith(before.rstrip())
        assert after.rstrip().endswith("-->")
        assert (cp.fixes, cp.questions, cp.highlights) == (2, 1, 0)
        assert cp.timestamp == FIXED_NOW
        assert session.snapshot().checkpoints == [cp]

    def test_normalize_migrates_once(self, session, md_file):
        assert session.normalize() is True
        text = md_file.read_text(encoding="utf-8")
        assert 'USER_MEMO id="' not in text
        assert session.normalize() is False

    def test_unchanged_document_not_written(self, session, monkeypatch):
        session.normalize()
        calls = []
        monkeypatch.setattr(session_module, "write_markdown_file", lambda *a, **k: calls.append(a))
        with session.transaction():
            pass
        assert calls == []


class TestConcurrency:

    def test_parallel_add_memo_keeps_every_memo(self, md_file, fixed_clock):
        errors = []

        def worker(n):
            try:
                FeedbackSession(md_file, clock=fixed_clock).add_memo(
                    f"note {n}", line=n + 1, memo_id=f"t{n}"
                )
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        ids = {m.id for m in FeedbackSession(md_file).snapshot().memos}
        assert {f"t{n}" for n in range(8)} <= ids
        assert {"f1", "f2", "q1"} <= ids
