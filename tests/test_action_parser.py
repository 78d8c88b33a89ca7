"""Tests for the action protocol parser."""

import pytest

from autofix_bot.agents.action_parser import (
    ActionProtocolParser,
    parse_action_directive,
    parse_bare_paths,
    parse_explanation,
    parse_file_markers,
    parse_imperative_paths,
)
from autofix_bot.agents.exceptions import ParseEmpty


# ---------------------------------------------------------------------------
# Primary FILE grammar
# ---------------------------------------------------------------------------

class TestFileMarkers:
    def test_single_block_with_explanation(self):
        text = (
            "EXPLANATION:\nFixed the typo\n\n"
            "FILE: app.py\n```python\nprint('hi')\n```\n"
        )
        directive = parse_action_directive(text)
        assert directive.explanation == "Fixed the typo"
        assert len(directive.file_edits) == 1
        assert directive.file_edits[0].path == "app.py"
        assert directive.file_edits[0].content == "print('hi')"

    def test_multiple_blocks_keep_order(self):
        text = (
            "FILE: a.py\n```\nA = 1\n```\n"
            "FILE: lib/b.py\n```\nB = 2\n```\n"
        )
        directive = parse_action_directive(text)
        assert [edit.path for edit in directive.file_edits] == ["a.py", "lib/b.py"]

    def test_marker_is_case_insensitive_and_may_follow_text(self):
        text = "Here it is -> file: index.html\n```html\n<p>x</p>\n```"
        directive = parse_action_directive(text)
        assert directive.file_edits[0].path == "index.html"

    def test_blank_lines_between_marker_and_fence(self):
        text = "FILE: a.py\n\n\n```\nx = 1\n```"
        assert parse_action_directive(text).file_edits[0].content == "x = 1"

    def test_quotes_are_stripped_from_path(self):
        text = "FILE: \"src/main.js\"\n```js\nrun()\n```"
        assert parse_action_directive(text).file_edits[0].path == "src/main.js"

    def test_unterminated_fence_contributes_nothing(self):
        text = "FILE: a.py\n```\nx = 1\n"
        assert parse_action_directive(text).file_edits == ()

    def test_empty_content_is_skipped(self):
        text = "FILE: empty.py\n```\n\n```\nFILE: ok.py\n```\nok = True\n```"
        directive = parse_action_directive(text)
        assert [edit.path for edit in directive.file_edits] == ["ok.py"]

    def test_marker_without_fence_is_ignored(self):
        text = "FILE: a.py\nprint('no fence')"
        assert parse_file_markers(text.split("\n")) == []

    def test_duplicate_paths_are_kept_and_last_wins(self):
        text = "FILE: a.py\n```\nv1\n```\nFILE: a.py\n```\nv2\n```"
        directive = parse_action_directive(text)
        assert len(directive.file_edits) == 2
        assert directive.effective_files() == {"a.py": "v2"}

    def test_crlf_line_endings(self):
        text = "FILE: a.py\r\n```\r\nx = 1\r\n```\r\n"
        assert parse_action_directive(text).file_edits[0].content == "x = 1"


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------

class TestExplanation:
    def test_stops_at_first_file_marker(self):
        lines = "EXPLANATION: Renamed a variable\nand fixed imports\nFILE: a.py".split("\n")
        assert parse_explanation(lines) == "Renamed a variable\nand fixed imports"

    def test_missing_header_gives_empty_string(self):
        assert parse_explanation(["just text"]) == ""

    def test_explanation_without_files(self):
        directive = parse_action_directive("EXPLANATION:\nNothing to change")
        assert directive.explanation == "Nothing to change"
        assert not directive.has_edits


# ---------------------------------------------------------------------------
# Fallback grammars
# ---------------------------------------------------------------------------

class TestFallbacks:
    def test_bare_path_grammar(self):
        lines = "styles.css\n```css\nbody {}\n```".split("\n")
        assert parse_bare_paths(lines) == [("styles.css", "body {}")]

    def test_bare_path_wrapped_in_markdown(self):
        lines = "**src/app.js**:\n```\nx()\n```".split("\n")
        assert parse_bare_paths(lines) == [("src/app.js", "x()")]

    def test_bare_path_rejects_sentences(self):
        lines = "Update the main.py file\n```\nx\n```".split("\n")
        assert parse_bare_paths(lines) == []

    def test_imperative_grammar(self):
        lines = "Create a file called 'notes.md':\n```\n# Notes\n```".split("\n")
        assert parse_imperative_paths(lines) == [("notes.md", "# Notes")]

    def test_closer_on_its_own_line_adds_no_trailing_newline(self):
        lines = "FILE: a.py\n```\nx = 1\n```".split("\n")
        assert parse_file_markers(lines) == [("a.py", "x = 1")]

    def test_code_before_inline_closer_is_kept(self):
        lines = "FILE: a.py\n```\nx = 1\ny = 2```".split("\n")
        assert parse_file_markers(lines) == [("a.py", "x = 1\ny = 2")]

    def test_fallbacks_used_only_when_primary_finds_nothing(self):
        text = "FILE: a.py\n```\na = 1\n```\nb.py\n```\nb = 2\n```"
        directive = parse_action_directive(text)
        assert [edit.path for edit in directive.file_edits] == ["a.py"]

    def test_fallbacks_disabled(self):
        text = "styles.css\n```css\nbody {}\n```"
        assert parse_action_directive(text, allow_fallbacks=False).file_edits == ()
        assert parse_action_directive(text, allow_fallbacks=True).has_edits


# ---------------------------------------------------------------------------
# ActionProtocolParser
# ---------------------------------------------------------------------------

class TestActionProtocolParser:
    @pytest.mark.parametrize("text", ["", "no files here", "```\ncode only\n```"])
    def test_parse_never_raises(self, text):
        assert ActionProtocolParser().parse(text).file_edits == ()

    def test_parse_required_raises_parse_empty(self):
        with pytest.raises(ParseEmpty):
            ActionProtocolParser(allow_fallbacks=False).parse_required("I can't fix this.")

    def test_parse_required_returns_directive(self):
        directive = ActionProtocolParser(allow_fallbacks=False).parse_required(
            "FILE: a.py\n```\nx = 1\n```"
        )
        assert directive.has_edits

    def test_parse_is_deterministic(self):
        text = "EXPLANATION: e\nFILE: a.py\n```\nx\n```"
        parser = ActionProtocolParser()
        assert parser.parse(text) == parser.parse(text)
