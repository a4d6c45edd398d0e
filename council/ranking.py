"""Rank final-round responses to pick the base answer for synthesis."""

import asyncio
import logging
import re

from council.consensus import format_responses
from council.models import RankingResult
from council.parsing import ModelOutputParseError, extract_json_block
from council.providers.base import AIProvider

logger = logging.getLogger(__name__)

DEFAULT_EVALUATOR_TIMEOUT_SEC = 300
FALLBACK_SUGGESTION = "Combine all responses due to fallback mode"

_REASONING_WORDS = re.compile(r"\b(because|therefore|thus|however)\b", re.IGNORECASE)

_RANKING_TASK = """## Your Task:
1. Decide what an ideal answer to THIS question must get right
2. Score each response from 0-100 on correctness, completeness, practicality and clarity
3. Pick the single best response
4. Suggest how the best parts of the other responses could be merged into it

Return your evaluation as JSON:
```json
{
  "evaluations": [
    {"model": "agent_name", "score": 85, "reasoning": "why"}
  ],
  "best_response": {"model": "agent_name", "score": 95, "why": "explanation"},
  "synthesis_suggestions": ["suggestion"]
}
```"""


def build_ranking_prompt(question: str, responses: dict[str, str]) -> str:
    return (
        "You are an expert technical evaluator. Determine which response best answers the question.\n\n"
        f"## Original Question:\n{question}\n\n"
        f"## Responses to Evaluate:\n{format_responses(responses)}\n\n"
        f"{_RANKING_TASK}"
    )


def structural_score(response: str) -> float:
    """Cheap quality proxy: code, structure, explanation and sensible length."""
    if not response:
        return 0.0

    score = 50.0
    if "```" in response:
        score += 15
    if re.search(r"^#+\s", response, re.MULTILINE):
        score += 10
    if re.search(r"^\s*[-*]\s", response, re.MULTILINE):
        score += 5
    if _REASONING_WORDS.search(response):
        score += 10
    if 500 < len(response) < 5000:
        score += 10
    return min(score, 100.0)


def fallback_ranking(responses: dict[str, str]) -> RankingResult:
    scores = {name: structural_score(text) for name, text in responses.items()}
    # max() keeps the first of equal scores, so ties go to roster order
    best = max(scores, key=lambda name: scores[name])
    return RankingResult(
        best_agent=best,
        scores_by_agent=scores,
        suggestions=(FALLBACK_SUGGESTION,),
        source="heuristic",
    )


def parse_ranking(text: str, responses: dict[str, str]) -> RankingResult:
    """Turn the evaluator's JSON into a RankingResult over known agents.

    Raises:
        ModelOutputParseError: No JSON, or nothing that names a responding agent.
    """
    data = extract_json_block(text)

    scores: dict[str, float] = {}
    for item in data.get("evaluations") or []:
        if not isinstance(item, dict):
            continue
        name = item.get("model")
        if name in responses:
            try:
                scores[name] = float(item.get("score", 0))
            except (TypeError, ValueError):
                continue

    best_raw = data.get("best_response")
    best = best_raw.get("model") if isinstance(best_raw, dict) else best_raw
    if not isinstance(best, str) or best not in responses:
        if not scores:
            raise ModelOutputParseError("Evaluator named no responding agent")
        best = max(scores, key=lambda name: scores[name])

    suggestions = data.get("synthesis_suggestions") or []
    if isinstance(suggestions, str):
        suggestions = [suggestions]

    return RankingResult(
        best_agent=best,
        scores_by_agent=scores,
        suggestions=tuple(str(s) for s in suggestions),
        source="evaluator",
    )


class ResponseRanker:
    """Picks the best response. Always names an agent, even when degraded."""

    def __init__(
        self,
        evaluator: AIProvider | None = None,
        timeout_sec: float = DEFAULT_EVALUATOR_TIMEOUT_SEC,
    ) -> None:
        self._evaluator = evaluator
        self._timeout_sec = timeout_sec

    async def rank(
        self,
        question: str,
        responses: dict[str, str],
        time_budget_sec: float | None = None,
    ) -> RankingResult:
        if not responses:
            raise ValueError("Cannot rank an empty response set")

        timeout = self._timeout_sec if time_budget_sec is None else min(self._timeout_sec, time_budget_sec)
        if self._evaluator is not None and timeout <= 0:
            logger.warning("Debate deadline passed, skipping evaluator")
        elif self._evaluator is not None:
            try:
                reply = await asyncio.wait_for(
                    self._evaluator.generate(build_ranking_prompt(question, responses), round_number=0),
                    timeout=timeout,
                )
                return parse_ranking(reply.content, responses)
            except Exception as exc:
                logger.warning("Response ranking failed, using structural fallback: %r", exc)

        return fallback_ranking(responses)
