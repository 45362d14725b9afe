"""Tests for classification rules and the thought stream filter."""

import threading

import pytest

from reviewwatch.channel import Channel
from reviewwatch.models import StreamEvent, ThoughtType
from reviewwatch.services import rules
from reviewwatch.services.thought_filter import ThoughtFilter


def _assistant(*texts: str) -> StreamEvent:
    return StreamEvent.model_validate(
        {"type": "assistant", "message": {"content": [{"type": "text", "text": t} for t in texts]}}
    )


def _collect(events, cancel: threading.Event | None = None) -> list:
    src: Channel[StreamEvent] = Channel()
    for e in events:
        src.put(e)
    src.close()
    return list(ThoughtFilter().filter(src, cancel))


class TestRules:
    @pytest.mark.parametrize(
        "line",
        [
            "func main() {",
            "import os",
            "from typing import List",
            "def handler(event):",
            "class Foo:",
            "return nil",
            "if err != nil {",
            "12→    x := 1",
            "package main",
            "type Config struct {",
            '{"a": 1}',
            "[1, 2, 3]",
        ],
    )
    def test_code_lines(self, line: str) -> None:
        assert rules.first_match(rules.CODE_RULES, line) is not None

    @pytest.mark.parametrize(
        "line",
        [
            "I am analyzing the auth module",
            "Iffy naming here, renaming it.",
            "Returning early avoids the nil check.",
            "The format of the output changed.",
        ],
    )
    def test_prose_lines(self, line: str) -> None:
        assert rules.first_match(rules.CODE_RULES, line) is None

    def test_rules_are_ordered(self) -> None:
        """First matching rule decides the label."""
        assert rules.first_match(rules.THOUGHT_RULES, "Reviewing this, I suggest a rename") == "progress"

    def test_matching_labels_and_capture(self) -> None:
        assert rules.matching_labels(rules.SATISFACTION_RULES, "LGTM, ready to merge") == ["LGTM", "ready to merge"]
        assert rules.first_capture(rules.FILE_REFERENCE_RULES, "see src/db.py:42 for details") == "src/db.py"
        assert rules.first_capture(rules.FILE_REFERENCE_RULES, "no file here") == ""

    def test_keywords_match_inside_words(self) -> None:
        """Keywords are plain substrings of the upper-cased text."""
        labels = rules.matching_labels(rules.ISSUE_KEYWORD_RULES, "THE ISSUES ARE IN DEBUG OUTPUT")
        assert labels == ["BUG", "ISSUE"]
        assert rules.matching_labels(rules.SATISFACTION_KEYWORD_RULES, "UNDONE") == ["DONE"]
        assert rules.matching_labels(rules.SATISFACTION_KEYWORD_RULES, "INCOMPLETE") == ["COMPLETE"]


class TestThoughtFilter:
    def test_code_line_dropped(self) -> None:
        assert ThoughtFilter().process_line("func main() {") is None

    def test_long_line_dropped(self) -> None:
        assert ThoughtFilter().process_line("word " * 120) is None

    def test_progress_line_kept(self) -> None:
        thought = ThoughtFilter().process_line("  I am analyzing the auth module  ")
        assert thought is not None
        assert thought.content == "I am analyzing the auth module"
        assert thought.type == ThoughtType.PROGRESS

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("We should extract a helper.", ThoughtType.SUGGESTION),
            ("The problem is a missing lock.", ThoughtType.ANALYSIS),
            ("Done with the first item.", ThoughtType.THINKING),
            ("Looking at the tests now.", ThoughtType.PROGRESS),
            ("Considering the retry path", ThoughtType.SUGGESTION),
            ("A suggestion: inline the constant.", ThoughtType.SUGGESTION),
            ("My recommendation is to keep it.", ThoughtType.SUGGESTION),
            ("This issue comes from the parser", ThoughtType.ANALYSIS),
        ],
    )
    def test_classify(self, line: str, expected: ThoughtType) -> None:
        assert ThoughtFilter().classify(line) == expected

    def test_current_file_is_sticky(self) -> None:
        f = ThoughtFilter()
        first = f.process_line("Now editing the handler in `api/server.py`")
        second = f.process_line("Adding the missing timeout.")
        third = f.process_line("Next up: **web/app.ts** needs a null check.")
        assert first is not None and first.file == "api/server.py"
        assert second is not None and second.file == "api/server.py"
        assert third is not None and third.file == "web/app.ts"

    def test_lines_split_across_events(self) -> None:
        thoughts = _collect(
            [
                _assistant("I am check", "ing the"),
                _assistant(" config.\nimport os\n"),
                StreamEvent(type="result", result="Partial last line"),
            ]
        )
        assert [t.content for t in thoughts] == ["I am checking the config.", "Partial last line"]
        assert thoughts[0].type == ThoughtType.PROGRESS

    def test_trailing_text_flushed_at_end_of_stream(self) -> None:
        thoughts = _collect([_assistant("no newline at the end")])
        assert [t.content for t in thoughts] == ["no newline at the end"]

    def test_errors_and_system_events_skipped(self) -> None:
        thoughts = _collect(
            [
                StreamEvent(type="system", subtype="init"),
                StreamEvent.failure("json_parse_error", "bad line"),
                _assistant("Fixed the race.\n"),
            ]
        )
        assert [t.content for t in thoughts] == ["Fixed the race."]

    def test_run_ending_errors_collected(self) -> None:
        """Crashes and timeouts are kept in ``errors``; parse errors are not."""
        src: Channel[StreamEvent] = Channel()
        src.put(StreamEvent.failure("json_parse_error", "bad line"))
        src.put(_assistant("Half way.\n"))
        src.put(StreamEvent.failure("agent_timeout", "agent timed out after 5s"))
        src.close()
        f = ThoughtFilter()
        assert [t.content for t in f.filter(src)] == ["Half way."]
        assert [(e.type, e.message) for e in f.errors] == [("agent_timeout", "agent timed out after 5s")]

    def test_thinking_blocks_included(self) -> None:
        event = StreamEvent.model_validate(
            {"type": "assistant", "message": {"content": [{"type": "thinking", "thinking": "Consider a cache.\n"}]}}
        )
        thoughts = _collect([event])
        assert thoughts[0].type == ThoughtType.SUGGESTION

    def test_filter_resets_state_between_runs(self) -> None:
        f = ThoughtFilter()
        f.process_line("Working in main.py")
        src: Channel[StreamEvent] = Channel()
        src.put(_assistant("Plain remark.\n"))
        src.close()
        assert [t.file for t in f.filter(src)] == [""]

    def test_custom_rules(self) -> None:
        f = ThoughtFilter(code_rules=[], thought_rules=[(rules.THOUGHT_RULES[0][0], "analysis")])
        thought = f.process_line("import os while reviewing")
        assert thought is not None
        assert thought.type == ThoughtType.ANALYSIS
