"""Debate orchestration: parallel agent rounds driven to consensus, stall or budget."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from config.config_loader import PromptsConfig
from council.consensus import ConsensusAnalyzer, format_responses
from council.memory import DebateMemory
from council.models import (
    Agent,
    ConsensusResult,
    DebateOutcome,
    DebateResult,
    DebateState,
    Iteration,
    ModelResponse,
    Question,
)
from council.providers.base import ProviderError
from council.ranking import ResponseRanker
from council.selection import RosterSelector
from council.synthesis import synthesize

logger = logging.getLogger(__name__)

_MIN_RESPONSES = 2
# Quality gate: warn when fewer than this many agents respond in round 1
_MIN_QUALITY_RESPONSES = 3
_STUCK_WINDOW = 3
_STUCK_BAND = 5.0
_NO_PRIOR_RESPONSE = "You have not responded yet"

RoundCallback = Callable[[Iteration, ConsensusResult], None]


class DebateError(Exception):
    """Base class for errors that end a debate."""


class DebateViabilityError(DebateError):
    """Too few agents answered round 1 to hold a debate."""


@dataclass
class DebateSettings:
    max_iterations: int = 5              # recorded rounds, round 1 included
    consensus_threshold: float = 90
    agent_timeout_sec: float = 3600
    debate_timeout_sec: float | None = 7200  # None: no overall deadline


def build_initial_prompt(agent: Agent, question: str, template: str) -> str:
    return template.format(role=agent.role, agent=agent.name, question=question)


def build_iteration_prompt(
    agent: Agent,
    question: str,
    current_responses: dict[str, str],
    state: DebateState,
    template: str,
) -> str:
    """Prompt for one agent in a critique round. Pure; no I/O.

    The agent sees every other agent's current answer but never its own in
    that list, so it can't reinforce itself.
    """
    others = {name: text for name, text in current_responses.items() if name != agent.name}
    if state.consensus_trend:
        status = "Previous consensus scores: " + ", ".join(f"{s:g}" for s in state.consensus_trend)
    else:
        status = "This is the first iteration"

    return template.format(
        agent=agent.name,
        role=agent.role,
        round=state.current_round + 1,
        question=question,
        own_response=current_responses.get(agent.name, _NO_PRIOR_RESPONSE),
        other_responses=format_responses(others, separator="\n\n") or "No other positions yet",
        consensus_status=status,
    )


def is_debate_stuck(consensus_trend: Sequence[float]) -> bool:
    """True when the last three scores sit inside a 5-point band."""
    if len(consensus_trend) < _STUCK_WINDOW:
        return False
    recent = consensus_trend[-_STUCK_WINDOW:]
    return max(recent) - min(recent) < _STUCK_BAND


def _remaining(deadline: float | None) -> float | None:
    """Seconds left before the debate deadline (never negative), None without one."""
    if deadline is None:
        return None
    return max(0.0, deadline - asyncio.get_running_loop().time())


async def _call_agent(
    agent: Agent,
    prompt: str,
    round_number: int,
    timeout_sec: float,
) -> ModelResponse | ProviderError:
    """Call a single agent once. Never raises; failures come back as ProviderError."""
    try:
        return await asyncio.wait_for(agent.provider.generate(prompt, round_number), timeout=timeout_sec)
    except TimeoutError:
        err = ProviderError(agent.name, f"Request timed out after {timeout_sec}s")
        logger.warning("Agent %s timed out in round %d", agent.name, round_number)
        return err
    except ProviderError as exc:
        logger.warning("Agent %s failed in round %d: %s", agent.name, round_number, exc)
        return exc
    except Exception as exc:
        logger.warning("Agent %s unexpected failure in round %d: %s", agent.name, round_number, exc)
        return ProviderError(agent.name, f"Unexpected error: {exc}")


async def _fan_out(
    prompts: dict[str, tuple[Agent, str]],
    round_number: int,
    timeout_sec: float,
    deadline: float | None,
) -> tuple[dict[str, str], bool]:
    """Run every agent call of a round concurrently and wait for all of them.

    Returns (responses keyed by agent name, deadline_hit). Calls still running
    when the debate deadline passes are cancelled.
    """
    if not prompts:
        return {}, False

    tasks = {
        name: asyncio.create_task(_call_agent(agent, prompt, round_number, timeout_sec))
        for name, (agent, prompt) in prompts.items()
    }
    _, pending = await asyncio.wait(tasks.values(), timeout=_remaining(deadline))

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    responses: dict[str, str] = {}
    for name, task in tasks.items():
        if task.cancelled():
            continue
        result = task.result()
        if isinstance(result, ModelResponse):
            responses[name] = result.content
        # ProviderError already logged in _call_agent
    return responses, bool(pending)


async def _run_iterative_rounds(
    question: Question,
    agents: Sequence[Agent],
    responses: dict[str, str],
    memory: DebateMemory,
    analyzer: ConsensusAnalyzer,
    prompts: PromptsConfig,
    settings: DebateSettings,
    deadline: float | None,
    on_round_complete: RoundCallback | None,
) -> tuple[dict[str, str], DebateOutcome]:
    current = dict(responses)

    while memory.current_round < settings.max_iterations:
        state = memory.get_debate_state()
        if _remaining(deadline) == 0:
            logger.warning("Debate deadline reached after round %d", state.current_round)
            return current, DebateOutcome.DEADLINE

        round_number = state.current_round + 1
        logger.info(
            "Starting round %d/%d (previous consensus %s)",
            round_number, settings.max_iterations, f"{state.consensus_trend[-1]:g}",
        )

        round_prompts = {
            agent.name: (agent, build_iteration_prompt(agent, question.text, current, state, prompts.iteration))
            for agent in agents
        }
        fresh, deadline_hit = await _fan_out(round_prompts, round_number, settings.agent_timeout_sec, deadline)
        if deadline_hit:
            logger.warning(
                "Debate deadline reached during round %d, synthesizing from round %d",
                round_number, state.current_round,
            )
            return current, DebateOutcome.DEADLINE

        updated: dict[str, str] = {}
        for agent in agents:
            if agent.name in fresh:
                updated[agent.name] = fresh[agent.name]
                memory.update_model_position(agent.name, fresh[agent.name], "Iteration update")
            elif agent.name in current:
                logger.info("Agent %s keeps its round %d response", agent.name, state.current_round)
                updated[agent.name] = current[agent.name]

        consensus = await analyzer.evaluate_consensus(
            question.text, updated, state, time_budget_sec=_remaining(deadline),
        )
        iteration = memory.add_iteration(updated, consensus.consensus_score, consensus.key_disagreements)
        current = updated

        logger.info(
            "Round %d consensus: %.1f (%s, %s)",
            round_number, consensus.consensus_score,
            consensus.consensus_level.value, consensus.convergence_trend.value,
        )
        if on_round_complete:
            on_round_complete(iteration, consensus)

        if consensus.consensus_score >= settings.consensus_threshold:
            logger.info("Consensus threshold %g reached in round %d", settings.consensus_threshold, round_number)
            return current, DebateOutcome.CONVERGED

        if is_debate_stuck(memory.consensus_trend):
            logger.warning("Debate appears stuck after round %d, moving to synthesis", round_number)
            return current, DebateOutcome.STUCK

    logger.warning(
        "Max iterations reached (%d) without full consensus, final %s",
        settings.max_iterations, f"{memory.consensus_trend[-1]:g}",
    )
    return current, DebateOutcome.EXHAUSTED


async def run_debate(
    question: Question,
    agents: Sequence[Agent],
    analyzer: ConsensusAnalyzer,
    ranker: ResponseRanker,
    prompts: PromptsConfig,
    settings: DebateSettings | None = None,
    memory: DebateMemory | None = None,
    on_round_complete: RoundCallback | None = None,
    selector: RosterSelector | None = None,
) -> DebateResult:
    """Run a full debate: roster selection, proposals, critique rounds, synthesis.

    Args:
        question: The question being debated.
        agents: Candidate roster for this debate.
        analyzer: Scores agreement after each round.
        ranker: Picks the base answer at synthesis time.
        prompts: Agent prompt templates from config.
        settings: Round budget, threshold and timeouts.
        memory: History to record into; a fresh one per debate by default.
        on_round_complete: Called after each recorded round.
        selector: If given, narrows ``agents`` to the ones suited to the
            question before round 1. Without one every agent debates.

    Returns:
        DebateResult. Early consensus, convergence, stalls, an exhausted
        budget and the debate deadline all end here successfully.

    Raises:
        DebateViabilityError: Fewer than 2 agents answered round 1.
    """
    settings = settings or DebateSettings()
    memory = memory if memory is not None else DebateMemory()
    debate_start = time.monotonic()
    deadline = (
        asyncio.get_running_loop().time() + settings.debate_timeout_sec
        if settings.debate_timeout_sec is not None
        else None
    )

    selection = None
    if selector is not None:
        selection = await selector.select(question.text, agents, time_budget_sec=_remaining(deadline))
        agents = selection.agents

    logger.info(
        "Starting debate with %d agents (max %d rounds, threshold %g)",
        len(agents), settings.max_iterations, settings.consensus_threshold,
    )

    initial_prompts = {
        agent.name: (agent, build_initial_prompt(agent, question.text, prompts.initial))
        for agent in agents
    }
    responses, deadline_hit = await _fan_out(initial_prompts, 1, settings.agent_timeout_sec, deadline)

    if len(responses) < _MIN_RESPONSES:
        raise DebateViabilityError(
            f"Not enough models responded for debate: {len(responses)}/{len(agents)}"
        )

    if len(agents) >= _MIN_QUALITY_RESPONSES and len(responses) < _MIN_QUALITY_RESPONSES:
        logger.warning(
            "WARNING: Only %d/%d agents responded in round 1. Debate quality is degraded.",
            len(responses), len(agents),
        )

    for name, text in responses.items():
        memory.update_model_position(name, text, "Initial proposal")

    consensus = await analyzer.evaluate_consensus(
        question.text, responses, time_budget_sec=_remaining(deadline),
    )
    iteration = memory.add_iteration(responses, consensus.consensus_score, consensus.key_disagreements)
    logger.info(
        "Initial consensus: %.1f from %d/%d agents",
        consensus.consensus_score, len(responses), len(agents),
    )
    if on_round_complete:
        on_round_complete(iteration, consensus)

    if consensus.consensus_score >= settings.consensus_threshold:
        logger.info("High initial consensus, skipping critique rounds")
        final_responses, outcome = responses, DebateOutcome.EARLY_CONSENSUS
    elif deadline_hit:
        logger.warning("Debate deadline reached during round 1")
        final_responses, outcome = responses, DebateOutcome.DEADLINE
    else:
        final_responses, outcome = await _run_iterative_rounds(
            question, agents, responses, memory, analyzer, prompts, settings, deadline, on_round_complete,
        )

    result = await synthesize(
        question=question,
        final_responses=final_responses,
        debate_state=memory.get_debate_state(),
        ranker=ranker,
        outcome=outcome,
        debate_start_time=debate_start,
        time_budget_sec=_remaining(deadline),
    )
    result.selection = selection
    return result
