"""AI agent runners."""

from reviewwatch.agents.base import AgentRunner
from reviewwatch.agents.claude_cli_agent import ClaudeCLIAgent, make_agent
from reviewwatch.agents.stub_agent import StubAgent

__all__ = ["AgentRunner", "ClaudeCLIAgent", "StubAgent", "make_agent"]
