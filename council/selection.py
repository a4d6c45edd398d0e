"""Pre-debate roster selection: the coordinator picks which agents fit the question."""

import asyncio
import logging

from council.models import Agent, RosterSelection
from council.parsing import ModelOutputParseError, extract_json_block
from council.providers.base import AIProvider

logger = logging.getLogger(__name__)

DEFAULT_SELECTION_TIMEOUT_SEC = 120
COMPLEXITY_LEVELS = ("trivial", "low", "medium", "high", "critical")
MIN_AGENTS = 3           # below this consensus means little, unless trivial
MIN_TRIVIAL_AGENTS = 2
MAX_INSTANCES = 3        # copies of one agent in a single debate

_SELECTION_TASK = """## Your Task:
1. Rate the question's complexity: trivial, low, medium, high or critical
2. Pick the agents whose expertise matters for THIS question
3. For critical questions you may ask for parallel instances of one agent as "name:N"

Return your analysis as JSON:
```json
{
  "complexity": "medium",
  "selected_agents": ["architect", "tester:2"],
  "reasoning": "why these agents"
}
```"""


def build_selection_prompt(question: str, roster: list[Agent] | tuple[Agent, ...]) -> str:
    agents = "\n".join(f"- {a.name}: {a.role}" for a in roster)
    return (
        "You are the debate coordinator. Choose which agents should debate this question.\n\n"
        f"## Question to Analyze:\n{question}\n\n"
        f"## Available Agents:\n{agents}\n\n"
        f"{_SELECTION_TASK}"
    )


def parse_agent_spec(spec: str) -> tuple[str, int]:
    """'tester:2' -> ('tester', 2). Bad or missing counts mean one instance."""
    name, _, count_raw = spec.strip().partition(":")
    try:
        count = int(count_raw) if count_raw else 1
    except ValueError:
        count = 1
    return name.strip(), max(1, min(count, MAX_INSTANCES))


def expand_selection(specs: list[str], roster: list[Agent] | tuple[Agent, ...], complexity: str) -> tuple[Agent, ...]:
    """Resolve specs against the roster and top up to the minimum panel size.

    Extra instances share the agent's provider and role and are named
    ``<agent>#<n>``. Top-up agents come from the roster in roster order.
    """
    by_name = {a.name: a for a in roster}
    chosen: list[Agent] = []
    used: set[str] = set()

    for spec in specs:
        name, count = parse_agent_spec(str(spec))
        agent = by_name.get(name)
        if agent is None or name in used:
            continue
        used.add(name)
        chosen.append(agent)
        chosen.extend(
            Agent(name=f"{name}#{i}", role=agent.role, provider=agent.provider)
            for i in range(2, count + 1)
        )

    minimum = MIN_TRIVIAL_AGENTS if complexity == "trivial" else MIN_AGENTS
    for agent in roster:
        if len(chosen) >= minimum:
            break
        if agent.name not in used:
            used.add(agent.name)
            chosen.append(agent)
    return tuple(chosen)


def parse_selection(text: str, roster: list[Agent] | tuple[Agent, ...]) -> RosterSelection:
    """Turn the coordinator's JSON into a roster.

    Raises:
        ModelOutputParseError: No JSON, or no known agent named.
    """
    data = extract_json_block(text)
    specs = data.get("selected_agents")
    if isinstance(specs, str):
        specs = [specs]
    if not isinstance(specs, list):
        raise ModelOutputParseError("Missing selected_agents")

    known = {a.name for a in roster}
    if not any(parse_agent_spec(str(s))[0] in known for s in specs):
        raise ModelOutputParseError(f"Coordinator selected no known agent: {specs}")

    complexity = str(data.get("complexity", "medium")).lower()
    if complexity not in COMPLEXITY_LEVELS:
        complexity = "medium"

    return RosterSelection(
        agents=expand_selection(specs, roster, complexity),
        complexity=complexity,
        reasoning=str(data.get("reasoning", "")),
        source="coordinator",
    )


class RosterSelector:
    """Narrows the roster per question. Any failure keeps every agent."""

    def __init__(
        self,
        coordinator: AIProvider | None = None,
        timeout_sec: float = DEFAULT_SELECTION_TIMEOUT_SEC,
    ) -> None:
        self._coordinator = coordinator
        self._timeout_sec = timeout_sec

    async def select(
        self,
        question: str,
        roster: list[Agent] | tuple[Agent, ...],
        time_budget_sec: float | None = None,
    ) -> RosterSelection:
        everyone = RosterSelection(agents=tuple(roster), complexity="unknown", reasoning="", source="all")
        if self._coordinator is None:
            return everyone

        timeout = self._timeout_sec if time_budget_sec is None else min(self._timeout_sec, time_budget_sec)
        if timeout <= 0:
            logger.warning("Debate deadline passed, skipping roster selection")
            return everyone

        try:
            reply = await asyncio.wait_for(
                self._coordinator.generate(build_selection_prompt(question, roster), round_number=0),
                timeout=timeout,
            )
            selection = parse_selection(reply.content, roster)
        except Exception as exc:
            logger.warning("Roster selection failed, using all agents: %r", exc)
            return everyone

        logger.info(
            "Selected %d/%d agents (%s): %s",
            len(selection.agents), len(roster), selection.complexity,
            ", ".join(a.name for a in selection.agents),
        )
        return selection
