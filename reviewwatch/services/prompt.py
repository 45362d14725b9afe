"""Task prompt for the agent: reviewer comments and failed CI checks."""

from typing import Dict, List, Sequence

from reviewwatch.models import GENERAL, CIFailure, Comment, ReviewSession

_WORK_THROUGH = """\
Assess each comment to see if you agree with the comment. If you do, address the comment. If you do not, do not address the comment.
Each item is numbered.
Work through each item one by one. Keep track of your progress."""

INTRO_BOTH = (
    "Please address the following CI/test failures AND review comments "
    "using extensible code and industry best practices.\n" + _WORK_THROUGH
)
INTRO_FAILURES = "Please fix the following CI/test failures using extensible code and industry best practices."
INTRO_COMMENTS = (
    "Please address the following review comments using extensible code and industry best practices.\n"
    + _WORK_THROUGH
)

INSTRUCTIONS = """\
- Make minimal, safe edits aligned with project style.
- If a change requires design or product input, do NOT edit; instead, leave me a clear comment reply explaining the decision/tradeoffs.
- After making your changes, run the full suite of tests and linters and ensure they pass and there are no new errors or warnings.
- If you need more context on any one item you can use the github CLI tool (gh) to fetch more information from the pull request.
- Use the formatters and linters the project already uses; do not introduce new ones.

When you are happy with the changes, commit the changes and push them to the branch."""


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line for line in text.split("\n"))


def group_by_file(comments: Sequence[Comment]) -> Dict[str, List[Comment]]:
    """Comments keyed by path (GENERAL for none), in first-seen order."""
    grouped: Dict[str, List[Comment]] = {}
    for comment in comments:
        grouped.setdefault(comment.path or GENERAL, []).append(comment)
    return grouped


def format_comment_section(title: str, comments: Sequence[Comment]) -> str:
    lines = [f"--- {title} ---"]
    number = 1
    for path, file_comments in group_by_file(comments).items():
        lines.append(f"## {path}")
        for comment in file_comments:
            line_info = f"L{comment.line}" if comment.line > 0 else ""
            lines.append(f"- [ ] {number}. {line_info} ({comment.url})")
            lines.append(_indent(comment.effective_body, "   "))
            lines.append("")
            number += 1
    return "\n".join(lines)


def format_ci_failures(failures: Sequence[CIFailure]) -> str:
    lines = ["--- Failed CI Checks / Tests ---", ""]
    for failure in failures:
        lines.append(f"## {failure.check_name} ({failure.app_name})")
        lines.append(f"URL: {failure.log_url}")
        if failure.summary:
            lines.append(f"Summary: {failure.summary}")
        if failure.annotations:
            lines += ["", "Failure Details:"]
            for a in failure.annotations:
                lines.append(f"- {a.path}:{a.line_range}")
                if a.title:
                    lines.append(f"  Title: {a.title}")
                lines.append(f"  {a.message}")
                if a.raw_details:
                    lines.append(_indent(a.raw_details, "    "))
        elif failure.error_message:
            lines += ["", "Test Output:", "```", failure.error_message, "```"]
        lines.append("")
    return "\n".join(lines)


def build_review_prompt(session: ReviewSession) -> str:
    """Single prompt covering every comment and CI failure of the session."""
    inline = [c for c in session.comments if not c.is_nit and not c.is_outside_diff]
    outside = [c for c in session.comments if not c.is_nit and c.is_outside_diff]
    nits = [c for c in session.comments if c.is_nit]

    sections = []
    if inline:
        sections.append(format_comment_section("Inline Review Comments", inline))
    if outside:
        sections.append(format_comment_section("Outside Diff Range Comments", outside))
    if nits:
        sections.append(format_comment_section("Nitpick Comments", nits))
    if session.ci_failures:
        sections.append(format_ci_failures(session.ci_failures))

    if session.ci_failures and session.comments:
        intro = INTRO_BOTH
    elif session.ci_failures:
        intro = INTRO_FAILURES
    else:
        intro = INTRO_COMMENTS

    return f"{intro}\n\n{INSTRUCTIONS}\n\n" + "\n\n".join(sections)
