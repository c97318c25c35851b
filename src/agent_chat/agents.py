"""Agent registry and the per-session agent selection state."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging

LOGGER = logging.getLogger(__name__)

AUTO_AGENT = "auto"


@dataclass(frozen=True)
class AgentInfo:
    key: str
    label: str
    emoji: str
    color: str
    tooltip: str


AGENTS: dict[str, AgentInfo] = {
    "reasoning": AgentInfo(
        "reasoning", "Reasoning", "🧠", "#0891b2", "Strategic analysis & logical reasoning"
    ),
    "creative": AgentInfo(
        "creative", "Creative", "🎨", "#ff6b35", "Creative brainstorming & copywriting"
    ),
    "research": AgentInfo(
        "research", "Research", "🔬", "#06b6d4", "Current events & market analysis"
    ),
    "data": AgentInfo(
        "data", "Data", "📊", "#a0a0a0", "Statistical analysis & visualization"
    ),
    AUTO_AGENT: AgentInfo(
        AUTO_AGENT, "Auto", "🤖", "#2563eb", "Intelligent agent selection"
    ),
}


def get_agent_info(agent_key: str | None) -> AgentInfo:
    """Return display metadata, falling back to the automatic agent."""
    return AGENTS.get(agent_key or AUTO_AGENT, AGENTS[AUTO_AGENT])


@dataclass(frozen=True)
class AgentState:
    selected: str = AUTO_AGENT
    is_loading: bool = False
    show_tooltip: str | None = None


class AgentSelection:
    """Hold the selected agent plus loading and tooltip flags."""

    def __init__(self, initial_agent: str = AUTO_AGENT) -> None:
        if initial_agent not in AGENTS:
            raise ValueError(f"Unknown agent {initial_agent!r}.")
        self.state = AgentState(selected=initial_agent)

    @property
    def selected(self) -> str:
        return self.state.selected

    @property
    def is_manual_override(self) -> bool:
        return self.state.selected != AUTO_AGENT

    def select_agent(self, agent_key: str) -> None:
        if agent_key not in AGENTS:
            LOGGER.warning("Ignoring unknown agent %r", agent_key)
            return
        LOGGER.info(
            "agent.changed",
            extra={
                "event": "agent.changed",
                "from_agent": self.state.selected,
                "to_agent": agent_key,
            },
        )
        self.state = replace(self.state, selected=agent_key)

    def cycle_agent(self) -> str:
        """Select the next agent in registry order and return its key."""
        keys = list(AGENTS)
        next_key = keys[(keys.index(self.state.selected) + 1) % len(keys)]
        self.select_agent(next_key)
        return next_key

    def set_loading(self, loading: bool) -> None:
        self.state = replace(self.state, is_loading=loading)

    def set_tooltip(self, tooltip: str | None) -> None:
        self.state = replace(self.state, show_tooltip=tooltip)
