"""Remote collaborators: conversation source and CI provider (GitHub)."""

from reviewwatch.adapters.base import CIProvider, ConversationSource
from reviewwatch.adapters.github import GitHubAdapter
from reviewwatch.adapters.github_ci import GitHubCIAdapter

__all__ = ["CIProvider", "ConversationSource", "GitHubAdapter", "GitHubCIAdapter"]
