"""Decide whether a review needs no further work.

Two independent signals: what the agent said in its last thoughts, and
whether the reviewer's comments on the PR are all resolved. The combined
verdict is satisfied only when both are.
"""

from typing import List, Sequence

from pydantic import BaseModel, Field

from reviewwatch.models import Comment, Thought
from reviewwatch.services import rules

RECENT_THOUGHTS = 20
KEYWORD_WEIGHT = 2
MIN_SATISFACTION_SCORE = 2
MIN_CONFIDENCE = 0.6


class SatisfactionVerdict(BaseModel):
    is_satisfied: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: List[str] = Field(default_factory=list)
    action_required: List[str] = Field(default_factory=list)


class SatisfactionDetector:
    """Scores agent text and remote comment state."""

    def __init__(self, recent: int = RECENT_THOUGHTS) -> None:
        self.recent = recent

    def analyze_thoughts(self, thoughts: Sequence[Thought]) -> SatisfactionVerdict:
        """Score the last thoughts for satisfaction vs. remaining-work signals.

        Each matching phrase pattern counts once; upper-case keywords
        (SATISFIED, SHIP IT, ...) count double on the satisfaction side.
        """
        text = "\n".join(t.content for t in thoughts[-self.recent :])
        upper = text.upper()

        reasons: List[str] = []
        actions: List[str] = []
        satisfaction = 0
        action = 0

        for label in rules.matching_labels(rules.SATISFACTION_RULES, text):
            satisfaction += 1
            reasons.append(f"Found satisfaction pattern: {label}")
        for keyword in rules.matching_labels(rules.SATISFACTION_KEYWORD_RULES, upper):
            satisfaction += KEYWORD_WEIGHT
            reasons.append(f"Found satisfaction keyword: {keyword}")
        for label in rules.matching_labels(rules.ACTION_RULES, text):
            action += 1
            actions.append(f"Found action pattern: {label}")
        for keyword in rules.matching_labels(rules.ISSUE_KEYWORD_RULES, upper):
            action += 1
            actions.append(f"Found issue keyword: {keyword}")

        total = satisfaction + action
        confidence = satisfaction / total if total else 0.5
        return SatisfactionVerdict(
            is_satisfied=(
                satisfaction >= MIN_SATISFACTION_SCORE and satisfaction > action and confidence > MIN_CONFIDENCE
            ),
            confidence=confidence,
            reasons=reasons,
            action_required=actions,
        )

    def analyze_comments(self, comments: Sequence[Comment]) -> SatisfactionVerdict:
        """Satisfied when every reviewer comment is resolved."""
        if not comments:
            return SatisfactionVerdict(
                is_satisfied=True,
                confidence=1.0,
                reasons=["No reviewer comments remaining"],
            )
        unresolved = [c for c in comments if not c.is_resolved]
        resolved = len(comments) - len(unresolved)
        reasons = [f"{resolved}/{len(comments)} comments resolved"]
        return SatisfactionVerdict(
            is_satisfied=not unresolved,
            confidence=resolved / len(comments),
            reasons=reasons,
            action_required=[f"Unresolved comment on {c.location}" for c in unresolved],
        )

    @staticmethod
    def combine(first: SatisfactionVerdict, second: SatisfactionVerdict) -> SatisfactionVerdict:
        return SatisfactionVerdict(
            is_satisfied=first.is_satisfied and second.is_satisfied,
            confidence=(first.confidence + second.confidence) / 2,
            reasons=first.reasons + second.reasons,
            action_required=first.action_required + second.action_required,
        )
