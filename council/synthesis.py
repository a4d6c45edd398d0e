"""Final synthesis: rank the last round, assemble the answer, return DebateResult."""

import logging
import time

from council.models import DebateOutcome, DebateResult, DebateState, Question, RankingResult
from council.ranking import ResponseRanker

logger = logging.getLogger(__name__)

_OUTCOME_LABELS = {
    DebateOutcome.EARLY_CONSENSUS: "consensus reached in the first round",
    DebateOutcome.CONVERGED: "consensus reached",
    DebateOutcome.STUCK: "stopped early, scores stopped moving",
    DebateOutcome.EXHAUSTED: "iteration budget spent without full consensus",
    DebateOutcome.DEADLINE: "debate deadline reached",
}


def format_trend(trend: tuple[float, ...] | list[float]) -> str:
    return " → ".join(f"{s:g}%" for s in trend)


def build_solution(
    question: Question,
    final_responses: dict[str, str],
    debate_state: DebateState,
    ranking: RankingResult,
    outcome: DebateOutcome,
) -> str:
    """Render the final answer as markdown."""
    trend = debate_state.consensus_trend
    lines: list[str] = [
        "# Iterative Consensus Solution",
        "",
        f"**Question:** {question.text}",
        "",
        "**Debate Statistics:**",
        f"- Total iterations: {debate_state.current_round}",
        f"- Final consensus: {trend[-1]:g}%",
        f"- Outcome: {_OUTCOME_LABELS[outcome]}",
        f"- Models participated: {', '.join(final_responses)}",
        "",
    ]
    if len(trend) > 1:
        lines += [f"**Consensus Evolution:** {format_trend(trend)}", ""]

    lines += [
        f"## Core Solution (Base: {ranking.best_agent})",
        "",
        final_responses[ranking.best_agent],
        "",
    ]

    last = debate_state.latest
    if last is not None and last.disagreements:
        lines += ["## Remaining Points of Discussion", ""]
        lines += [f"- {d}" for d in last.disagreements]
        lines.append("")

    if ranking.suggestions:
        lines += ["## Synthesis Recommendations", ""]
        lines += [f"- {s}" for s in ranking.suggestions]
        lines.append("")

    return "\n".join(lines)


async def synthesize(
    question: Question,
    final_responses: dict[str, str],
    debate_state: DebateState,
    ranker: ResponseRanker,
    outcome: DebateOutcome,
    debate_start_time: float,
    time_budget_sec: float | None = None,
) -> DebateResult:
    """Pick the base answer and package the whole debate.

    Args:
        question: The original question.
        final_responses: Responses of the last recorded round.
        debate_state: Snapshot of the debate memory.
        ranker: Chooses the best response.
        outcome: Why the round loop stopped.
        debate_start_time: monotonic time when the debate started (for duration).
        time_budget_sec: What is left of the debate deadline for the evaluator.
    """
    logger.info("Running synthesis over %d responses", len(final_responses))
    ranking = await ranker.rank(question.text, final_responses, time_budget_sec=time_budget_sec)
    logger.info("Base answer: %s (%s ranking)", ranking.best_agent, ranking.source)

    return DebateResult(
        question=question,
        solution=build_solution(question, final_responses, debate_state, ranking, outcome),
        iterations=debate_state.current_round,
        final_consensus=debate_state.consensus_trend[-1],
        debate_history=debate_state,
        outcome=outcome,
        final_responses=dict(final_responses),
        ranking=ranking,
        total_duration_sec=time.monotonic() - debate_start_time,
    )
