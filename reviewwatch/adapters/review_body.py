"""Parse the automated reviewer's comment and review bodies.

The reviewer embeds an excerpt meant for AI agents in a fenced block under
"Prompt for AI Agents", flags nitpicks in the text, and folds nitpick and
outside-diff-range items into collapsible sections of the review body
instead of posting them inline. Items parsed from a review body have no
native ID and get synthetic negative IDs.
"""

import re
from typing import List

from reviewwatch.models import Comment

NITPICK_ID_BASE = 1000
OUTSIDE_DIFF_ID_BASE = 2000
REVIEW_ID_STRIDE = 10_000

_AI_PROMPT_PATTERNS = [
    re.compile(r"<summary>\s*🤖\s*Prompt for AI Agents\s*</summary>[\s\S]*?```[^\n]*\n?([\s\S]*?)```"),
    re.compile(r"🤖\s*Prompt for AI Agents[\s\S]*?```[^\n]*\n?([\s\S]*?)```"),
    re.compile(r"Prompt for AI Agents[\s\S]*?```[^\n]*\n?([\s\S]*?)```"),
]

_NIT_WORD = re.compile(r"\b(nit|nitpick)\b")

AUTO_GENERATED_MARKERS = (
    "auto-generated comment",
    "auto-generated reply",
    "summarized by CodeRabbit",
    "## Walkthrough",
    "## Summary",
    "✅ Test",
    "All tests passed",
)

_NITPICK_HEADER = re.compile(r"<summary>\s*🧹\s*Nitpick comments \((\d+)\)\s*</summary>")
_OUTSIDE_DIFF_HEADER = re.compile(r"⚠\ufe0f?\s*Outside diff range comments \((\d+)\)\s*(?:</summary>)?")
_ITEM = re.compile(r"`(\d+)(?:-(\d+))?`:\s*\*\*([^*]+)\*\*")
_FILE_SUMMARY = re.compile(r"<summary>([^<]+)</summary>")
_COUNT_SUFFIX = re.compile(r"\s*\(\d+\)")
_DETAILS_TAG = re.compile(r"<(/?)details>")
_WRAPPER_TAGS = re.compile(r"</?(?:details|blockquote)>|<summary>[^<]*</summary>")


def extract_ai_prompt(body: str) -> str:
    """Excerpt from the "Prompt for AI Agents" block, or empty string."""
    for pattern in _AI_PROMPT_PATTERNS:
        match = pattern.search(body)
        if match:
            return match.group(1).strip()
    return ""


def is_nit(body: str) -> bool:
    lower = body.lower()
    return "nit:" in lower or "nitpick" in lower or bool(_NIT_WORD.search(lower))


def is_auto_generated(body: str) -> bool:
    """Walkthroughs, summaries and status replies are not actionable."""
    return any(marker in body for marker in AUTO_GENERATED_MARKERS)


def _section(body: str, header: re.Pattern) -> str:
    """Content after header up to the </details> closing its section."""
    match = header.search(body)
    if not match:
        return ""
    depth = 1
    for tag in _DETAILS_TAG.finditer(body, match.end()):
        depth += -1 if tag.group(1) else 1
        if depth == 0:
            return body[match.end() : tag.start()]
    return body[match.end() :]


def _parse_items(content: str, id_base: int, review_index: int, **flags: bool) -> List[Comment]:
    items = list(_ITEM.finditer(content))
    comments = []
    for i, match in enumerate(items):
        end = items[i + 1].start() if i + 1 < len(items) else len(content)
        text = _WRAPPER_TAGS.sub("", content[match.end() : end]).strip()
        path = ""
        summaries = _FILE_SUMMARY.findall(content[: match.start()])
        if summaries:
            path = _COUNT_SUFFIX.sub("", summaries[-1]).strip()
        start_line = int(match.group(1))
        end_line = int(match.group(2)) if match.group(2) else start_line
        comments.append(
            Comment(
                id=-(id_base + review_index * REVIEW_ID_STRIDE + i),
                path=path,
                line=start_line,
                end_line=end_line,
                body=f"**{match.group(3).strip()}** {text}".strip(),
                ai_prompt=extract_ai_prompt(text),
                **flags,
            )
        )
    return comments


def parse_nitpicks(body: str, review_index: int = 0) -> List[Comment]:
    """Nitpick items folded into a review body."""
    content = _section(body, _NITPICK_HEADER)
    if not content:
        return []
    return _parse_items(content, NITPICK_ID_BASE, review_index, is_nit=True)


def parse_outside_diff(body: str, review_index: int = 0) -> List[Comment]:
    """Comments on lines outside the diff, folded into a review body."""
    content = _section(body, _OUTSIDE_DIFF_HEADER)
    if not content:
        return []
    return _parse_items(content, OUTSIDE_DIFF_ID_BASE, review_index, is_outside_diff=True)
