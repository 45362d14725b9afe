"""Tests for the satisfaction detector."""

import pytest

from reviewwatch.models import Comment, Thought
from reviewwatch.services.satisfaction import SatisfactionDetector, SatisfactionVerdict


def _thoughts(*lines: str) -> list[Thought]:
    return [Thought(content=line) for line in lines]


@pytest.fixture
def detector() -> SatisfactionDetector:
    return SatisfactionDetector()


class TestAnalyzeThoughts:
    def test_lgtm_and_approved_is_satisfied(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_thoughts(_thoughts("LGTM, approved.", "Everything is approved."))
        assert verdict.is_satisfied
        assert verdict.confidence > 0.6
        assert verdict.action_required == []
        assert "Found satisfaction pattern: LGTM" in verdict.reasons
        assert "Found satisfaction keyword: APPROVED" in verdict.reasons

    def test_remaining_bug_is_not_satisfied(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_thoughts(_thoughts("The handler still has a bug.", "FIXME: retry logic"))
        assert not verdict.is_satisfied
        assert "Found action pattern: still has" in verdict.action_required
        assert "Found issue keyword: FIXME" in verdict.action_required
        assert verdict.confidence == 0.0

    def test_no_signals_defaults_to_half(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_thoughts(_thoughts("Renamed the variable."))
        assert not verdict.is_satisfied
        assert verdict.confidence == 0.5

    def test_single_weak_signal_is_not_enough(self, detector: SatisfactionDetector) -> None:
        """One phrase match scores 1, below the minimum of 2."""
        verdict = detector.analyze_thoughts(_thoughts("The change looks good to me"))
        assert not verdict.is_satisfied

    def test_action_outweighs_satisfaction(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_thoughts(
            _thoughts("Looks good overall.", "But this needs to be fixed", "TODO remove debug", "ERROR in tests")
        )
        assert not verdict.is_satisfied

    def test_only_recent_thoughts_count(self) -> None:
        detector = SatisfactionDetector(recent=2)
        thoughts = _thoughts("FIXME", "BUG found", "ERROR", "LGTM", "SHIP IT")
        verdict = detector.analyze_thoughts(thoughts)
        assert verdict.is_satisfied
        assert verdict.action_required == []


class TestAnalyzeComments:
    def test_no_comments_is_satisfied(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_comments([])
        assert verdict.is_satisfied
        assert verdict.confidence == 1.0
        assert verdict.reasons == ["No reviewer comments remaining"]

    def test_partial_resolution(self, detector: SatisfactionDetector) -> None:
        comments = [
            Comment(id=1, body="a", path="x.py", line=3, is_resolved=True),
            Comment(id=2, body="b", path="y.py", line=9),
            Comment(id=3, body="c", is_resolved=True),
            Comment(id=4, body="d", is_resolved=True),
        ]
        verdict = detector.analyze_comments(comments)
        assert not verdict.is_satisfied
        assert verdict.confidence == 0.75
        assert verdict.action_required == ["Unresolved comment on y.py:9"]

    def test_all_resolved(self, detector: SatisfactionDetector) -> None:
        verdict = detector.analyze_comments([Comment(id=1, body="a", is_resolved=True)])
        assert verdict.is_satisfied
        assert verdict.confidence == 1.0


def test_combine_requires_both(detector: SatisfactionDetector) -> None:
    yes = SatisfactionVerdict(is_satisfied=True, confidence=1.0, reasons=["a"])
    no = SatisfactionVerdict(is_satisfied=False, confidence=0.5, action_required=["b"])
    combined = detector.combine(yes, no)
    assert not combined.is_satisfied
    assert combined.confidence == 0.75
    assert combined.reasons == ["a"]
    assert combined.action_required == ["b"]
    assert detector.combine(yes, yes).is_satisfied
