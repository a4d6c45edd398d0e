"""Append-only record of a single debate: rounds, scores and agent positions."""

import logging
import time
from types import MappingProxyType

from council.models import DebateState, Iteration, ModelPosition

logger = logging.getLogger(__name__)


class DebateMemory:
    """Authoritative history of one debate.

    Owned by the orchestrator of a single debate; never shared between
    debates. The consensus trend is read off the recorded iterations, so there
    is exactly one place a score is stored.
    """

    def __init__(self) -> None:
        self._iterations: list[Iteration] = []
        self._positions: dict[str, list[ModelPosition]] = {}

    @property
    def current_round(self) -> int:
        return len(self._iterations)

    @property
    def consensus_trend(self) -> tuple[float, ...]:
        return tuple(it.consensus_score for it in self._iterations)

    def add_iteration(
        self,
        responses: dict[str, str],
        consensus_score: float,
        disagreements: list[str] | tuple[str, ...],
    ) -> Iteration:
        """Record one completed round and advance the round counter."""
        scores = [*self.consensus_trend, consensus_score]
        convergence = scores[-1] - scores[-2] if len(scores) >= 2 else 0.0

        iteration = Iteration(
            round=self.current_round,
            timestamp=time.time(),
            responses=MappingProxyType(dict(responses)),
            consensus_score=consensus_score,
            disagreements=tuple(disagreements),
            convergence=convergence,
        )
        self._iterations.append(iteration)
        logger.debug(
            "Recorded round %d: score=%.1f convergence=%+.1f",
            iteration.round, consensus_score, convergence,
        )
        return iteration

    def update_model_position(self, agent: str, position: str, reasoning: str) -> None:
        """Append an agent's position, tagged with the round being built."""
        self._positions.setdefault(agent, []).append(
            ModelPosition(
                iteration=self.current_round,
                position=position,
                reasoning=reasoning,
                timestamp=time.time(),
            )
        )

    def get_debate_state(self) -> DebateState:
        return DebateState(
            current_round=self.current_round,
            history=tuple(self._iterations),
            positions=MappingProxyType({name: tuple(items) for name, items in self._positions.items()}),
            consensus_trend=self.consensus_trend,
        )
