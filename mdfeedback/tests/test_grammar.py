"""Tests for line hashing and the comment grammar matchers."""

from mdfeedback.grammar import (
    DialectKind,
    escape_attr,
    match_banner,
    match_checkpoint,
    match_dialect,
    match_frontmatter,
    match_memo_legacy,
    match_memo_v3,
    match_memo_v4,
    match_wrapper,
    parse_attrs,
    unescape_attr,
)
from mdfeedback.hashing import body_hash, hash_line


class TestHashLine:
    """djb2 over UTF-16 code units, 8 lowercase hex chars."""

    def test_empty_string_is_seed(self):
        assert hash_line("") == "00001505"

    def test_single_ascii_char(self):
        # 5381 * 33 + 97
        assert hash_line("a") == "0002b606"

    def test_latin1_char_uses_code_unit(self):
        # 5381 * 33 + 0xe9
        assert hash_line("é") == "0002b68e"

    def test_astral_char_hashes_two_code_units(self):
        # surrogate pair 0xD83D 0xDE00: (5381 * 33 + 0xD83D) * 33 + 0xDE00
        assert hash_line("\U0001F600") == "00762822"

    def test_exact_text_no_trimming(self):
        assert hash_line("line") != hash_line("line ")

    def test_body_hash_matches_hash_line(self):
        assert body_hash("a\nb") == hash_line("a\nb")


class TestEscaping:

    def test_round_trip(self):
        value = 'say "hi"\nthen --> end'
        escaped = escape_attr(value)
        assert '"' not in escaped
        assert "\n" not in escaped
        assert "-->" not in escaped
        assert unescape_attr(escaped) == value

    def test_ampersand_escaped(self):
        assert escape_attr("a & b") == "a &amp; b"

    def test_literal_entity_text_round_trips(self):
        value = "write &quot; or &#10; or &amp; literally"
        escaped = escape_attr(value)
        assert "&amp;quot;" in escaped
        assert unescape_attr(escaped) == value

    def test_parse_attrs_last_occurrence_wins(self):
        attrs = parse_attrs(['  id="a" type="fix"', '  id="b"'])
        assert attrs == {"id": "b", "type": "fix"}

    def test_parse_attrs_unescapes(self):
        attrs = parse_attrs(['  text="a &quot;b&quot;&#10;c"'])
        assert attrs["text"] == 'a "b"\nc'


class TestFrontmatter:

    def test_captures_block_and_one_blank_line(self):
        text = "---\ntitle: x\n---\n\n\nBody"
        assert match_frontmatter(text) == "---\ntitle: x\n---\n\n"

    def test_without_blank_line(self):
        assert match_frontmatter("---\na: 1\n---\nBody") == "---\na: 1\n---\n"

    def test_absent(self):
        assert match_frontmatter("# Title\n---\nx\n---\n") == ""


class TestMemoDialects:

    def test_v3_full(self):
        lines = ['<!-- USER_MEMO id="m1" color="blue" status="done" : why? -->']
        m = match_memo_v3(lines, 0)
        assert m.kind == DialectKind.MEMO_V3
        assert m.consumed == 1
        assert m.attrs == {"id": "m1", "color": "blue", "status": "done"}
        assert m.text == "why?"

    def test_v3_restores_guarded_comment_close(self):
        lines = ['<!-- USER_MEMO id="m1" : a --\u200b> b -->']
        assert match_memo_v3(lines, 0).text == "a --> b"

    def test_v4_block(self):
        lines = ["<!-- USER_MEMO", '  id="m2"', '  text="hello"', "-->", "after"]
        m = match_memo_v4(lines, 0)
        assert m.consumed == 4
        assert m.attrs == {"id": "m2", "text": "hello"}

    def test_v4_unterminated_is_no_match(self):
        lines = ["<!-- USER_MEMO", '  id="m2"', "prose"]
        assert match_memo_v4(lines, 0) is None

    def test_legacy_block(self):
        lines = [
            '<!-- @memo id="L1" color="blue" date="2024-01-01" -->',
            "<!-- first -->",
            "second",
            "<!-- @/memo -->",
        ]
        m = match_memo_legacy(lines, 0)
        assert m.consumed == 4
        assert m.text == "first\nsecond"
        assert m.attrs["date"] == "2024-01-01"

    def test_legacy_unterminated_is_no_match(self):
        assert match_memo_legacy(['<!-- @memo id="L1" -->', "text"], 0) is None


class TestOtherDialects:

    def test_checkpoint_line(self):
        line = ('<!-- CHECKPOINT id="ckpt_1" time="2025-01-01T00:00:00Z" note="n &quot;q&quot;" '
                'fixes=2 questions=1 highlights=0 sections="Auth,API" -->')
        m = match_checkpoint([line], 0)
        assert m.attrs["note"] == 'n "q"'
        assert m.attrs["fixes"] == "2"
        assert m.attrs["sections"] == "Auth,API"

    def test_checkpoint_with_bad_count_is_no_match(self):
        line = ('<!-- CHECKPOINT id="c" time="t" note="" fixes=x questions=1 '
                'highlights=0 sections="" -->')
        assert match_checkpoint([line], 0) is None

    def test_banner_consumed_through_close(self):
        lines = ["<!--", "  MD Feedback: annotated review", "  more", "-->", "text"]
        m = match_banner(lines, 0)
        assert m.kind == DialectKind.BANNER
        assert m.consumed == 4

    def test_banner_needs_marker_on_next_line(self):
        assert match_banner(["<!--", "  something else", "-->"], 0) is None

    def test_wrapper_tags(self):
        for tag in (
            "<!-- USER_FEEDBACK_NOTES -->",
            "<!-- /USER_FEEDBACK_NOTES -->",
            "<!-- @feedback-notes -->",
            "<!-- @/feedback-notes -->",
        ):
            assert match_wrapper([tag], 0) is not None, tag

    def test_priority_order_gate_block(self):
        lines = ["<!-- GATE", '  id="g1" blockedBy="a,b"', "-->"]
        m = match_dialect(lines, 0)
        assert m.kind == DialectKind.GATE
        assert m.attrs["blockedBy"] == "a,b"

    def test_plain_line_no_match(self):
        assert match_dialect(["Just prose"], 0) is None

    def test_unknown_comment_no_match(self):
        assert match_dialect(["<!-- TODO: keep me -->"], 0) is None
