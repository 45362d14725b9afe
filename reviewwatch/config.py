"""Configuration loading from YAML and environment.

Secrets (tokens) are taken from environment variables, from files
(Docker secrets) or from the local ``gh`` CLI login. Never put real tokens
in config files committed to the repo.
"""

import subprocess
from pathlib import Path
from typing import Any, List

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


def _gh_auth_token() -> str | None:
    """Token of the local gh CLI login, if any."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            check=False,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    token = (result.stdout or "").strip()
    return token if result.returncode == 0 and token else None


# Injected by load_config so secret lookups can read env/file
_current_env: dict[str, str] = {}

DEFAULT_AGENT_ARGS = [
    "-p",
    "--dangerously-skip-permissions",
    "--output-format",
    "stream-json",
    "--verbose",
]


class GitHubConfig(BaseSettings):
    """GitHub API settings and the automated reviewer identity."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")
    repository: str = Field(default="", description="owner/repo; empty means detect from git remote")
    reviewer_login: str = Field(
        default="coderabbit",
        description="Substring of the automated reviewer login and check-run name",
    )
    timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds")


class AgentConfig(BaseSettings):
    """AI agent CLI settings (Claude Code headless, stream-json output)."""

    model_config = SettingsConfigDict(env_prefix="AGENT_", extra="ignore")

    kind: str = Field(default="claude_cli", description="claude_cli or stub")
    command: str = Field(default="claude", description="CLI binary name or path")
    args: List[str] = Field(default_factory=lambda: list(DEFAULT_AGENT_ARGS), description="CLI args before the prompt")
    timeout: int = Field(default=1800, ge=1, description="Timeout in seconds for one agent run")
    working_directory: str = Field(default=".", description="CWD for agent")


class ReviewSettings(BaseSettings):
    """Defaults for every review cycle."""

    model_config = SettingsConfigDict(env_prefix="REVIEW_", extra="ignore")

    include_nits: bool = Field(default=True, description="Address nitpick comments")
    include_outdated: bool = Field(default=True, description="Address comments on outdated diff hunks")
    reset_state: bool = Field(default=False, description="Forget processed comments before the first cycle")
    mark_addressed: bool = Field(default=True, description="Resolve review threads after the agent run")


class WatchSettings(BaseSettings):
    """Watch mode timing."""

    model_config = SettingsConfigDict(env_prefix="WATCH_", extra="ignore")

    poll_interval_seconds: float = Field(default=15, gt=0, description="Seconds between polls")
    cooldown_seconds: float = Field(default=180, ge=0, description="Pause after each agent run")
    batch_wait_seconds: float = Field(default=30, ge=0, description="Delay to let more comments arrive")
    require_manual_confirm: bool = Field(default=True, description="Ask before declaring the review satisfied")


class StateConfig(BaseSettings):
    """Where processed-comment state is kept."""

    model_config = SettingsConfigDict(env_prefix="STATE_", extra="ignore")

    directory: str = Field(
        default="~/.config/reviewwatch/state",
        description="One JSON document per conversation; delete to reprocess",
    )

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    thoughts_format: str = Field(default="%(asctime)s  %(message)s", description="Format of agent thought lines")
    quiet_http: bool = Field(default=True, description="Hold urllib3/requests logs at WARNING unless DEBUG")


class ReviewConfig(BaseModel):
    """Options for a single review cycle of one pull request."""

    pr_number: int = Field(..., ge=1)
    include_nits: bool = True
    include_outdated: bool = True
    reset_state: bool = False
    mark_addressed: bool = False


class WatchOptions(BaseModel):
    """Watch loop options (seconds)."""

    poll_interval: float = 15
    cooldown: float = 180
    batch_wait: float = 30
    require_manual_confirm: bool = True
    include_nits: bool = True
    include_outdated: bool = True
    mark_addressed: bool = False


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from config, env, Docker secret file or gh
        CLI."""
        t = self.github.token
        if t and t.strip() and not t.startswith("${"):
            return t.strip()
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE") or _gh_auth_token()

    def review_config(self, pr_number: int) -> ReviewConfig:
        """Per-cycle config for a PR from the review defaults."""
        return ReviewConfig(
            pr_number=pr_number,
            include_nits=self.review.include_nits,
            include_outdated=self.review.include_outdated,
            reset_state=self.review.reset_state,
            mark_addressed=self.review.mark_addressed,
        )

    def watch_options(self) -> WatchOptions:
        return WatchOptions(
            poll_interval=self.watch.poll_interval_seconds,
            cooldown=self.watch.cooldown_seconds,
            batch_wait=self.watch.batch_wait_seconds,
            require_manual_confirm=self.watch.require_manual_confirm,
            include_nits=self.review.include_nits,
            include_outdated=self.review.include_outdated,
            mark_addressed=self.review.mark_addressed,
        )


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        # Simple $VAR
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: GITHUB_TOKEN or GITHUB_TOKEN_FILE, else ``gh auth token``.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text()) or {}
    raw = _substitute_env(raw)

    # Env overrides for nested values (e.g. GITHUB_REPOSITORY)
    github_raw = raw.get("github") or {}
    if _current_env.get("GITHUB_REPOSITORY"):
        github_raw = {**github_raw, "repository": _current_env.get("GITHUB_REPOSITORY")}

    return AppConfig(
        github=GitHubConfig(**github_raw),
        agent=AgentConfig(**(raw.get("agent") or {})),
        review=ReviewSettings(**(raw.get("review") or {})),
        watch=WatchSettings(**(raw.get("watch") or {})),
        state=StateConfig(**(raw.get("state") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
