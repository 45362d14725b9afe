"""reviewwatch entry point.

Addresses the automated reviewer's comments and failed CI checks on a pull
request with an AI agent. One cycle by default; ``--watch`` keeps polling and
runs a new cycle whenever more work shows up. ``--debug`` only prints what a
cycle would do.
"""

import argparse
import logging
import sys
import threading
from pathlib import Path

from reviewwatch.adapters import GitHubAdapter, GitHubCIAdapter
from reviewwatch.agents import make_agent
from reviewwatch.config import AppConfig, ReviewConfig, load_config
from reviewwatch.errors import AgentUnavailableError, ReviewError
from reviewwatch.logging import THOUGHTS_LOGGER, ReviewWatchLogging
from reviewwatch.models import ReviewSession, ReviewStatus, Thought
from reviewwatch.services import ReviewService, Watcher, WatchEvent, WatchEventType
from reviewwatch.store import CommentStore

LOG = logging.getLogger("reviewwatch.main")
THOUGHTS_LOG = logging.getLogger(THOUGHTS_LOGGER)

DEBUG_BODY_CHARS = 100


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="reviewwatch",
        description="Address automated PR review comments and CI failures with an AI agent",
    )
    parser.add_argument("pr", nargs="?", type=int, help="PR number (detected from the current branch if omitted)")
    parser.add_argument("--pr", "-p", dest="pr_option", type=int, help="PR number")
    parser.add_argument("--watch", "-w", action="store_true", help="Keep watching and re-run on new work")
    parser.add_argument("--debug", action="store_true", help="Print what would be processed, then exit")
    parser.add_argument("--reset", action="store_true", help="Forget processed comments and start over")
    parser.add_argument(
        "--no-mark-addressed",
        action="store_true",
        help="Do not resolve review threads after the agent run",
    )
    parser.add_argument("--exclude-nits", action="store_true", help="Skip nitpick comments")
    parser.add_argument("--exclude-outdated", action="store_true", help="Skip comments on outdated code")
    parser.add_argument("--poll-interval", type=float, help="Watch mode poll interval in seconds")
    parser.add_argument("--cooldown", type=float, help="Watch mode pause after each review in seconds")
    parser.add_argument("--batch-wait", type=float, help="Watch mode delay before processing new work in seconds")
    parser.add_argument("--no-manual-confirm", action="store_true", help="Exit watch mode without asking")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    """Command-line flags win over config file and environment."""
    if args.reset:
        config.review.reset_state = True
    if args.no_mark_addressed:
        config.review.mark_addressed = False
    if args.exclude_nits:
        config.review.include_nits = False
    if args.exclude_outdated:
        config.review.include_outdated = False
    if args.poll_interval is not None:
        config.watch.poll_interval_seconds = args.poll_interval
    if args.cooldown is not None:
        config.watch.cooldown_seconds = args.cooldown
    if args.batch_wait is not None:
        config.watch.batch_wait_seconds = args.batch_wait
    if args.no_manual_confirm:
        config.watch.require_manual_confirm = False


def build_service(config: AppConfig) -> ReviewService:
    token = config.github_token_resolved
    if not token:
        LOG.warning("No GitHub token found (GITHUB_TOKEN, GITHUB_TOKEN_FILE or gh auth); API calls may fail")
    source = GitHubAdapter(
        token,
        api_url=config.github.api_url,
        repository=config.github.repository,
        reviewer_login=config.github.reviewer_login,
        timeout=config.github.timeout,
    )
    ci = GitHubCIAdapter(
        token,
        api_url=config.github.api_url,
        reviewer_login=config.github.reviewer_login,
        timeout=config.github.timeout,
    )
    return ReviewService(source, ci, make_agent(config.agent), CommentStore(config.state.path))


def log_thought(thought: Thought) -> None:
    where = f" [{thought.file}]" if thought.file else ""
    THOUGHTS_LOG.info("(%s)%s %s", thought.type.value, where, thought.content)


def print_debug(session: ReviewSession) -> None:
    print(f"\n=== DEBUG: PR #{session.pr_number} ===")
    print(f"Total comments found: {session.total_found_count}")
    print(f"Already addressed: {session.already_addressed}")
    print(f"New comments to process: {session.new_comments_count}")
    print(f"CI failures: {len(session.ci_failures)}")
    if session.ci_pending_count:
        print(f"CI pending: {session.ci_pending_count} ({', '.join(session.ci_pending_names)})")
    if not session.comments:
        print("\nNo comments to process - the reviewer should be satisfied!")
        return
    print("\nComments to process:")
    for i, c in enumerate(session.comments, 1):
        flags = [name for name, on in (("nit", c.is_nit), ("outdated", c.is_outdated)) if on]
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  {i}. ID={c.id} Path={c.path} Line={c.line}{suffix}")
        print(f"     Body: {c.body[:DEBUG_BODY_CHARS]}...")


def run_once(service: ReviewService, review_config: ReviewConfig, cancel: threading.Event) -> int:
    session, thoughts = service.run_review_cycle(review_config, cancel)
    LOG.info(
        "PR #%s: %d found, %d already addressed, %d new, %d CI failures",
        session.pr_number,
        session.total_found_count,
        session.already_addressed,
        session.new_comments_count,
        len(session.ci_failures),
    )
    if thoughts is None:
        LOG.info("PR #%s: nothing to address, the reviewer is satisfied", session.pr_number)
        return 0
    for thought in thoughts:
        log_thought(thought)
    session.wait_done()
    if session.status != ReviewStatus.COMPLETED:
        LOG.error("PR #%s: review did not complete (%s)", session.pr_number, session.error or session.status.value)
        return 1
    LOG.info("Review complete for PR #%s (%d thoughts)", session.pr_number, session.processed_count)
    return 0


def ask_confirmation(event: WatchEvent) -> bool:
    if event.verdict is not None:
        for reason in event.verdict.reasons:
            LOG.info("  %s", reason)
    try:
        answer = input(f"{event.message} [Y/n] ")
    except EOFError:
        return True
    return answer.strip().lower() in ("", "y", "yes")


def run_watch(service: ReviewService, config: AppConfig, pr_number: int, cancel: threading.Event) -> int:
    watcher = Watcher(service, config.watch_options())
    LOG.info(
        "Watching PR #%s (poll %.0fs, cooldown %.0fs, batch wait %.0fs)",
        pr_number,
        config.watch.poll_interval_seconds,
        config.watch.cooldown_seconds,
        config.watch.batch_wait_seconds,
    )
    for event in watcher.start(pr_number, cancel):
        if event.type == WatchEventType.ERROR:
            LOG.error("%s: %s", event.message, event.error)
            watcher.dismiss_error()
        elif event.type == WatchEventType.COOLDOWN:
            LOG.info("%s (%.0fs left)", event.message, watcher.get_cooldown_remaining())
        else:
            LOG.info("[%s] %s", event.type.value, event.message)

        if event.type == WatchEventType.PROCESSING and event.thoughts is not None:
            for thought in event.thoughts:
                log_thought(thought)
        elif event.type == WatchEventType.MANUAL_CONFIRM_REQUIRED:
            if ask_confirmation(event):
                watcher.confirm_satisfied()
                cancel.set()
            else:
                watcher.reject_satisfied()
        elif event.type == WatchEventType.SATISFIED:
            cancel.set()
    return 0


def run(args: argparse.Namespace, config: AppConfig, cancel: threading.Event) -> int:
    service = build_service(config)
    pr_number = args.pr_option or args.pr
    if not pr_number:
        pr_number = service.detect_current_pr()
        LOG.info("Detected PR #%s", pr_number)
    review_config = config.review_config(pr_number)

    if args.debug:
        print_debug(service.fetch_snapshot(review_config))
        return 0

    if not service.agent.is_available():
        raise AgentUnavailableError(config.agent.command)

    if args.watch:
        if config.review.reset_state:
            # Reset once up front; watch cycles never reset
            service.fetch_snapshot(review_config)
        return run_watch(service, config, pr_number, cancel)
    return run_once(service, review_config, cancel)


def main(argv: list[str] | None = None) -> int:
    """Entry point for reviewwatch."""
    args = parse_args(argv)
    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            LOG.warning("config.yaml not found, using config.example.yaml")

    config = load_config(config_path)
    apply_overrides(config, args)

    if args.check:
        print("Config OK:", config.github.repository or "(git remote)", config.agent.kind)
        return 0

    ReviewWatchLogging(config.logging).setup()
    cancel = threading.Event()
    try:
        return run(args, config, cancel)
    except KeyboardInterrupt:
        cancel.set()
        return 0
    except ReviewError as e:
        LOG.error("%s", e)
        return 1
    except Exception as e:
        LOG.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
