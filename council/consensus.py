"""Consensus scoring: an LLM coordinator as judge, keyword overlap as fallback."""

import asyncio
import logging
import math
import re
from typing import Protocol

from council.models import (
    ConsensusLevel,
    ConsensusResult,
    ConvergenceTrend,
    DebateState,
    level_for_score,
)
from council.parsing import ModelOutputParseError, extract_json_block
from council.providers.base import AIProvider

logger = logging.getLogger(__name__)

DEFAULT_COORDINATOR_TIMEOUT_SEC = 180
HEURISTIC_DISAGREEMENT = "Unable to determine specific disagreements"

# Heuristic tuning
_MIN_WORD_LEN = 4          # words longer than 3 characters
_COMMON_WORD_SHARE = 0.7   # present in at least 70% of responses
_TREND_BAND = 5.0          # score moves inside this band count as "stable"

_CONSENSUS_TASK = """## Your Task:
1. Identify if there is fundamental agreement on the core answer
2. List any significant disagreements or contradictions
3. Calculate a consensus score (0-100) where:
   - 90-100: Strong consensus, ready for synthesis
   - 70-89: Moderate consensus, minor disagreements
   - 50-69: Weak consensus, significant disagreements
   - 0-49: No consensus, fundamental disagreements

4. For factual questions (like "What is Lithuania's capital?"), if all models agree on the fact, score should be 95+

Return your evaluation as JSON:
```json
{
  "consensus_score": 85,
  "consensus_level": "moderate",
  "core_agreement": "All models agree that...",
  "key_disagreements": [
    "Model A says X while Model B says Y"
  ],
  "continue_debate": true,
  "synthesis_ready": false,
  "reasoning": "Explanation of consensus evaluation",
  "convergence_trend": "improving|stable|diverging"
}
```"""


def format_responses(responses: dict[str, str], separator: str = "\n\n---\n\n") -> str:
    """Label each response with its agent name."""
    return separator.join(f"### {name}:\n{text}" for name, text in responses.items())


def build_consensus_prompt(
    question: str,
    responses: dict[str, str],
    debate_history: DebateState | None = None,
) -> str:
    """Assemble the coordinator's judging prompt. Pure; no I/O."""
    history_context = ""
    if debate_history is not None:
        trend = ", ".join(f"{s:g}" for s in debate_history.consensus_trend)
        history_context = (
            "\n## Debate History:\n"
            f"This is iteration {debate_history.current_round + 1}. "
            f"Previous consensus scores: {trend or 'none yet'}\n"
        )

    return (
        "You are the debate coordinator. Evaluate the consensus level between these model responses.\n\n"
        f"## Original Question:\n{question}\n"
        f"{history_context}\n"
        f"## Model Responses:\n{format_responses(responses)}\n\n"
        f"{_CONSENSUS_TASK}"
    )


def trend_from_history(debate_history: DebateState | None, score: float) -> ConvergenceTrend:
    """Compare a new score against the last recorded one."""
    if debate_history is None or not debate_history.consensus_trend:
        return ConvergenceTrend.STABLE
    delta = score - debate_history.consensus_trend[-1]
    if delta >= _TREND_BAND:
        return ConvergenceTrend.IMPROVING
    if delta <= -_TREND_BAND:
        return ConvergenceTrend.DIVERGING
    return ConvergenceTrend.STABLE


def keyword_overlap_score(responses: dict[str, str]) -> float:
    """Share of distinct long words that most responses have in common, 0-100."""
    texts = list(responses.values())
    if not texts:
        return 0.0

    word_sets = [
        {w for w in re.split(r"\s+", text.lower()) if len(w) >= _MIN_WORD_LEN}
        for text in texts
    ]
    document_freq: dict[str, int] = {}
    for words in word_sets:
        for word in words:
            document_freq[word] = document_freq.get(word, 0) + 1

    if not document_freq:
        return 0.0

    needed = len(texts) * _COMMON_WORD_SHARE
    common = sum(1 for count in document_freq.values() if count >= needed)
    return round(min(100.0, 100.0 * common / len(document_freq)), 2)


def _flag(data: dict, key: str, default: bool) -> bool:
    """JSON booleans only; strings like "false" fall back to the score-derived default."""
    value = data.get(key)
    return value if isinstance(value, bool) else default


class ConsensusScorer(Protocol):
    async def score(
        self,
        question: str,
        responses: dict[str, str],
        debate_history: DebateState | None = None,
    ) -> ConsensusResult: ...


class KeywordOverlapScorer:
    """Deterministic fallback. Measures how much, never why."""

    async def score(
        self,
        question: str,
        responses: dict[str, str],
        debate_history: DebateState | None = None,
    ) -> ConsensusResult:
        value = keyword_overlap_score(responses)
        return ConsensusResult(
            consensus_score=value,
            consensus_level=ConsensusLevel.MODERATE if value > 70 else ConsensusLevel.WEAK,
            core_agreement="",
            key_disagreements=(HEURISTIC_DISAGREEMENT,),
            continue_debate=value < 90,
            synthesis_ready=value > 80,
            convergence_trend=trend_from_history(debate_history, value),
            reasoning="Fallback consensus evaluation based on keyword overlap",
            source="heuristic",
        )


class CoordinatorScorer:
    """Asks a coordinator model to judge agreement and reply with JSON."""

    def __init__(
        self,
        coordinator: AIProvider,
        timeout_sec: float = DEFAULT_COORDINATOR_TIMEOUT_SEC,
        consensus_threshold: float = 90,
    ) -> None:
        self._coordinator = coordinator
        self._timeout_sec = timeout_sec
        self._threshold = consensus_threshold

    async def score(
        self,
        question: str,
        responses: dict[str, str],
        debate_history: DebateState | None = None,
    ) -> ConsensusResult:
        prompt = build_consensus_prompt(question, responses, debate_history)
        round_number = debate_history.current_round + 1 if debate_history else 1
        reply = await asyncio.wait_for(
            self._coordinator.generate(prompt, round_number),
            timeout=self._timeout_sec,
        )
        return self.parse_result(reply.content, debate_history)

    def parse_result(self, text: str, debate_history: DebateState | None = None) -> ConsensusResult:
        """Validate the coordinator's JSON verdict.

        Raises:
            ModelOutputParseError: No JSON, or no numeric consensus_score.
        """
        data = extract_json_block(text)
        try:
            value = float(data["consensus_score"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ModelOutputParseError(f"Missing or invalid consensus_score: {exc}") from exc
        if not math.isfinite(value):
            raise ModelOutputParseError(f"Non-finite consensus_score: {value}")
        value = max(0.0, min(100.0, value))

        try:
            level = ConsensusLevel(str(data.get("consensus_level", "")).lower())
        except ValueError:
            level = level_for_score(value)

        try:
            trend = ConvergenceTrend(str(data.get("convergence_trend", "")).lower())
        except ValueError:
            trend = trend_from_history(debate_history, value)

        disagreements = data.get("key_disagreements") or []
        if isinstance(disagreements, str):
            disagreements = [disagreements]

        return ConsensusResult(
            consensus_score=value,
            consensus_level=level,
            core_agreement=str(data.get("core_agreement", "")),
            key_disagreements=tuple(str(d) for d in disagreements),
            continue_debate=_flag(data, "continue_debate", value < self._threshold),
            synthesis_ready=_flag(data, "synthesis_ready", value >= self._threshold),
            convergence_trend=trend,
            reasoning=str(data.get("reasoning", "")),
            source="coordinator",
        )


class ConsensusAnalyzer:
    """Scores a round's agreement. Always returns a result, never raises.

    Uses the coordinator when one is configured; any coordinator failure
    (timeout, provider error, unparsable reply) drops to keyword overlap.
    """

    def __init__(
        self,
        coordinator: AIProvider | None = None,
        coordinator_timeout_sec: float = DEFAULT_COORDINATOR_TIMEOUT_SEC,
        consensus_threshold: float = 90,
    ) -> None:
        self._primary: ConsensusScorer | None = (
            CoordinatorScorer(coordinator, coordinator_timeout_sec, consensus_threshold)
            if coordinator is not None
            else None
        )
        self._fallback: ConsensusScorer = KeywordOverlapScorer()

    async def evaluate_consensus(
        self,
        question: str,
        responses: dict[str, str],
        debate_history: DebateState | None = None,
        time_budget_sec: float | None = None,
    ) -> ConsensusResult:
        """Score one round.

        ``time_budget_sec`` caps the coordinator call on top of its own
        timeout; the orchestrator passes what is left of the debate deadline.
        A spent budget goes straight to keyword overlap.
        """
        if self._primary is not None:
            if time_budget_sec is not None and time_budget_sec <= 0:
                logger.warning("Debate deadline passed, skipping coordinator")
            else:
                try:
                    return await asyncio.wait_for(
                        self._primary.score(question, responses, debate_history),
                        timeout=time_budget_sec,
                    )
                except TimeoutError:
                    logger.error("Coordinator did not answer in time, using keyword overlap")
                except Exception as exc:
                    logger.error("Consensus evaluation failed, using keyword overlap: %s", exc)

        result = await self._fallback.score(question, responses, debate_history)
        logger.info("Heuristic consensus score: %.1f", result.consensus_score)
        return result
