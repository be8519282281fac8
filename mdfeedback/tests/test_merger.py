"""Tests for merge_document and the canonical serializers."""

from mdfeedback.hashing import hash_line
from mdfeedback.merger import (
    merge_document,
    serialize_checkpoint,
    serialize_cursor,
    serialize_gate,
    serialize_memo,
)
from mdfeedback.models import Checkpoint, DocumentParts, Gate, Memo, PlanCursor
from mdfeedback.splitter import split_document


def _merge_text(text: str) -> str:
    return merge_document(split_document(text))


class TestSerializers:

    def test_memo_block_layout(self):
        memo = Memo(id="m1", text="fix this", anchor_text="Some line", anchor="L2|abcd1234")
        lines = serialize_memo(memo).split("\n")
        assert lines[0] == "<!-- USER_MEMO"
        assert lines[1] == '  id="m1"'
        assert lines[2] == '  type="fix"'
        assert lines[-1] == "-->"
        assert len(lines) == 13

    def test_memo_text_escaped(self):
        memo = Memo(id="m1", text='a "quote"\nand --> close')
        block = serialize_memo(memo)
        assert '  text="a &quot;quote&quot;&#10;and --\u200b> close"' in block
        assert block.count("-->") == 1

    def test_gate_block(self):
        gate = Gate(id="g1", type="merge", blocked_by=["a", "b"])
        block = serialize_gate(gate)
        assert block.startswith("<!-- GATE\n")
        assert '  blockedBy="a,b"' in block

    def test_cursor_block(self):
        block = serialize_cursor(PlanCursor(task_id="t", step="2/5", next_action="go"))
        assert '  taskId="t"' in block
        assert '  nextAction="go"' in block

    def test_checkpoint_line(self):
        cp = Checkpoint(id="ckpt_abc123", timestamp="2025-03-01T10:00:00.000Z",
                        note="first pass", fixes=2, questions=1, highlights=0,
                        sections_reviewed=["Auth"])
        assert serialize_checkpoint(cp) == (
            '<!-- CHECKPOINT id="ckpt_abc123" time="2025-03-01T10:00:00.000Z" '
            'note="first pass" fixes=2 questions=1 highlights=0 sections="Auth" -->'
        )


class TestMergeDocument:

    def test_scenario(self, scenario_doc):
        merged = _merge_text(scenario_doc)
        assert merged.startswith("## A\nSome line\n<!-- USER_MEMO\n")
        assert '  id="m1"' in merged
        assert f'  anchor="L2|{hash_line("Some line")}"' in merged
        assert merged.endswith("-->\n")

    def test_never_writes_single_line_memo(self, auth_doc):
        merged = _merge_text(auth_doc)
        assert 'USER_MEMO id="' not in merged
        assert merged.count("<!-- USER_MEMO\n") == 3

    def test_memo_inserted_after_its_anchor(self, auth_doc):
        lines = _merge_text(auth_doc).split("\n")
        idx = lines.index("Store sessions in Redis.")
        assert lines[idx + 1] == "<!-- USER_MEMO"
        assert lines[idx + 2] == '  id="f2"'

    def test_single_trailing_newline(self, auth_doc):
        merged = _merge_text(auth_doc + "\n\n\n")
        assert merged.endswith("\n")
        assert not merged.endswith("\n\n")

    def test_section_order(self):
        parts = DocumentParts(
            frontmatter="---\ntitle: x\n---\n",
            body="Text",
            memos=[Memo(id="lost", anchor="L9|00000000", anchor_text="nowhere")],
            gates=[Gate(id="g1")],
            checkpoints=[Checkpoint(id="c1", timestamp="t")],
            cursor=PlanCursor(task_id="t1"),
        )
        merged = merge_document(parts)
        positions = [
            merged.index("title: x"),
            merged.index("Text"),
            merged.index('id="lost"'),
            merged.index("<!-- GATE"),
            merged.index("<!-- CHECKPOINT"),
            merged.index("<!-- PLAN_CURSOR"),
        ]
        assert positions == sorted(positions)
        assert merged.startswith("---\ntitle: x\n---\n\nText\n\n")

    def test_unresolved_memo_kept(self):
        parts = DocumentParts(body="Text", memos=[Memo(id="lost", anchor_text="gone")])
        merged = merge_document(parts)
        assert merged == "Text\n\n" + serialize_memo(parts.memos[0]) + "\n"

    def test_empty_bundle(self):
        assert merge_document(DocumentParts()) == "\n"

    def test_unknown_comment_preserved(self):
        text = "Intro\n<!-- TODO: keep me -->\nEnd\n"
        assert _merge_text(text) == text


class TestRoundTrip:
    """split(merge(split(x))) reproduces the bundle; merge is idempotent."""

    def test_bundle_preserved(self, gated_doc):
        first = split_document(gated_doc)
        second = split_document(merge_document(first))
        assert second.body == first.body
        assert [m.to_dict() for m in second.memos] == [m.to_dict() for m in first.memos]
        assert [g.to_dict() for g in second.gates] == [g.to_dict() for g in first.gates]

    def test_idempotent(self, gated_doc):
        once = _merge_text(gated_doc)
        assert _merge_text(once) == once

    def test_frontmatter_preserved(self):
        text = "---\ntitle: Plan\n---\n\n# Plan\nLine\n"
        assert _merge_text(text) == text

    def test_escaped_text_survives(self):
        parts = DocumentParts(
            body="Line",
            memos=[Memo(id="m", text='he said "no" --> then\nleft', anchor_text="Line")],
        )
        again = split_document(merge_document(parts))
        assert again.memos[0].text == 'he said "no" --> then\nleft'

    def test_cursor_and_checkpoint_survive(self):
        parts = DocumentParts(
            body="Line",
            checkpoints=[Checkpoint(id="c1", timestamp="t", note='a "b"',
                                    fixes=1, sections_reviewed=["A", "B"])],
            cursor=PlanCursor(task_id="t1", step="1/2", next_action="next"),
        )
        again = split_document(merge_document(parts))
        assert again.cursor == parts.cursor
        assert again.checkpoints == parts.checkpoints

    def test_checkpoint_with_quoted_section_survives(self):
        cp = Checkpoint(id="c1", timestamp="2025-03-01T10:00:00.000Z",
                        sections_reviewed=['Say "hi"', "R&D"])
        again = split_document(merge_document(DocumentParts(body="Line", checkpoints=[cp])))
        assert again.checkpoints == [cp]

    def test_literal_entities_in_text_survive(self):
        parts = DocumentParts(
            body="Line",
            memos=[Memo(id="m", text="write &quot; or &#10; literally", anchor_text="Line")],
            cursor=PlanCursor(task_id="t", next_action="keep &amp; as is"),
        )
        once = merge_document(parts)
        again = split_document(once)
        assert again.memos[0].text == "write &quot; or &#10; literally"
        assert again.cursor.next_action == "keep &amp; as is"
        assert merge_document(again) == once

    def test_unresolved_anchorless_memo_stays_put(self):
        parts = DocumentParts(body="Body line", memos=[Memo(id="m0", text="loose")])
        once = merge_document(parts)
        again = split_document(once)
        assert again.memos[0].anchor == ""
        assert again.memos[0].anchor_text == ""
        assert merge_document(again) == once

    def test_memo_before_body_is_idempotent(self):
        text = (
            '<!-- USER_MEMO\n  id="m0"\n  text="early"\n  anchorText=""\n  anchor=""\n-->\n'
            "Body line\n"
        )
        once = _merge_text(text)
        assert _merge_text(once) == once
