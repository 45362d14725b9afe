"""Ordered (pattern, label) rule lists for classifying agent output.

Rules are data: the thought filter and the satisfaction detector walk these
lists in order, so tuning a heuristic means editing a list here.
"""

import re
from typing import List, Sequence, Tuple

from reviewwatch.models import ThoughtType

Rule = Tuple[re.Pattern, str]

MAX_PROSE_LINE = 500

CODE_RULES: List[Rule] = [
    (re.compile(r"^\s*(import|export|from)\s+"), "import"),
    (re.compile(r"^\s*(function|func|class|const|let|var|def|async|await)\s+\w+"), "definition"),
    (re.compile(r"^\s*(if|else|for|while|switch|case|return|try|catch)\b"), "control_flow"),
    (re.compile(r"^\s*\d+→"), "numbered_dump"),
    (re.compile(r"^\s*(package|module)\s+\w+"), "package"),
    (re.compile(r"^\s*(type|interface|struct|enum)\s+\w+"), "type"),
    (re.compile(r"^\s*[\{\[].*[\}\]]\s*$"), "json"),
]

# Substring matches, first match wins; unmatched lines are plain thinking
THOUGHT_RULES: List[Rule] = [
    (re.compile(r"(?i)analyzing|reviewing|checking|looking at|examining"), ThoughtType.PROGRESS.value),
    (re.compile(r"(?i)suggest|recommend|consider|should|could"), ThoughtType.SUGGESTION.value),
    (re.compile(r"(?i)this is|the issue|the problem|because|since"), ThoughtType.ANALYSIS.value),
]

FILE_REFERENCE_RULES: List[Rule] = [
    (re.compile(r"\b(?:in|at|file)\s+[\"`]?([a-zA-Z0-9_\-./]+\.[a-zA-Z]+)[\"`]?"), "mention"),
    (re.compile(r"([a-zA-Z0-9_\-./]+\.[a-zA-Z]+):\d+"), "path_line"),
    (re.compile(r"\*\*([a-zA-Z0-9_\-./]+\.[a-zA-Z]+)\*\*"), "bold"),
]

SATISFACTION_RULES: List[Rule] = [
    (re.compile(r"(?i)looks?\s+good"), "looks good"),
    (re.compile(r"(?i)LGTM"), "LGTM"),
    (re.compile(r"(?i)approved?"), "approved"),
    (re.compile(r"(?i)ready\s+to\s+merge"), "ready to merge"),
    (re.compile(r"(?i)no\s+(further\s+)?issues?"), "no further issues"),
    (re.compile(r"(?i)no\s+(more\s+)?comments?"), "no more comments"),
    (re.compile(r"(?i)all\s+addressed"), "all addressed"),
    (re.compile(r"(?i)nothing\s+(else\s+)?to\s+(add|review)"), "nothing to add"),
    (re.compile(r"(?i)changes?\s+look\s+good"), "changes look good"),
    (re.compile(r"(?i)✅.*addressed"), "addressed"),
    (re.compile(r"(?i)✅.*fixed"), "fixed"),
]

ACTION_RULES: List[Rule] = [
    (re.compile(r"(?i)needs?\s+(to\s+)?(be\s+)?(change|fix|update|address|review)"), "needs change"),
    (re.compile(r"(?i)should\s+(be\s+)?(change|fix|update|address)"), "should change"),
    (re.compile(r"(?i)must\s+(be\s+)?(change|fix|update|address)"), "must change"),
    (re.compile(r"(?i)requires?\s+(change|fix|update|attention)"), "requires change"),
    (re.compile(r"(?i)please\s+(change|fix|update|address|review)"), "please change"),
    (re.compile(r"(?i)still\s+(has|have|need)"), "still has"),
    (re.compile(r"(?i)not\s+(yet\s+)?(address|fix|resolved)"), "not resolved"),
    (re.compile(r"(?i)issue\s+remain"), "issue remains"),
    (re.compile(r"(?i)bug\s+(in|found|detected)"), "bug found"),
]

# Substrings of the upper-cased text: DEBUG counts as BUG, INCOMPLETE as COMPLETE
SATISFACTION_KEYWORDS = ["SATISFIED", "COMPLETE", "DONE", "APPROVED", "SHIP IT"]
ISSUE_KEYWORDS = ["TODO", "FIXME", "BUG", "ERROR", "FAIL", "ISSUE", "PROBLEM"]


def keyword_rules(keywords: Sequence[str]) -> List[Rule]:
    return [(re.compile(re.escape(k)), k) for k in keywords]


SATISFACTION_KEYWORD_RULES = keyword_rules(SATISFACTION_KEYWORDS)
ISSUE_KEYWORD_RULES = keyword_rules(ISSUE_KEYWORDS)


def first_match(rules: Sequence[Rule], text: str) -> str | None:
    """Label of the first rule whose pattern matches text."""
    for pattern, label in rules:
        if pattern.search(text):
            return label
    return None


def matching_labels(rules: Sequence[Rule], text: str) -> List[str]:
    """Labels of every rule that matches, in rule order."""
    return [label for pattern, label in rules if pattern.search(text)]


def first_capture(rules: Sequence[Rule], text: str) -> str:
    """Group 1 of the first rule that matches text, or empty string."""
    for pattern, _ in rules:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return ""
