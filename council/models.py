"""Dataclasses and enums for the iterative consensus debate. No I/O."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from council.providers.base import AIProvider


class ConsensusLevel(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NONE = "none"


class ConvergenceTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DIVERGING = "diverging"


class DebateOutcome(str, Enum):
    EARLY_CONSENSUS = "early_consensus"  # threshold met in round 1
    CONVERGED = "converged"              # threshold met in a later round
    STUCK = "stuck"                      # last 3 scores inside a 5-point band
    EXHAUSTED = "exhausted"              # max_iterations spent
    DEADLINE = "deadline"                # overall debate timeout hit


def level_for_score(score: float) -> ConsensusLevel:
    """Map a 0-100 consensus score onto its level band."""
    if score >= 90:
        return ConsensusLevel.STRONG
    if score >= 70:
        return ConsensusLevel.MODERATE
    if score >= 50:
        return ConsensusLevel.WEAK
    return ConsensusLevel.NONE


@dataclass(frozen=True)
class Question:
    text: str
    source: str = "cli"  # "cli" or file path


@dataclass(frozen=True)
class Agent:
    name: str          # stable alias used as the response key
    role: str          # expertise label, e.g. "Architecture"
    provider: AIProvider = field(compare=False, repr=False)


@dataclass
class ModelResponse:
    provider: str
    model: str
    round_number: int
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class Iteration:
    round: int
    timestamp: float
    responses: Mapping[str, str]  # read-only once recorded
    consensus_score: float
    disagreements: tuple[str, ...]
    convergence: float  # score delta vs. previous round, positive = improving


@dataclass(frozen=True)
class ModelPosition:
    iteration: int
    position: str
    reasoning: str
    timestamp: float


@dataclass(frozen=True)
class DebateState:
    current_round: int
    history: tuple[Iteration, ...]
    positions: Mapping[str, tuple[ModelPosition, ...]]
    consensus_trend: tuple[float, ...]

    @property
    def latest(self) -> Iteration | None:
        return self.history[-1] if self.history else None


@dataclass(frozen=True)
class ConsensusResult:
    consensus_score: float
    consensus_level: ConsensusLevel
    core_agreement: str
    key_disagreements: tuple[str, ...]
    continue_debate: bool
    synthesis_ready: bool
    convergence_trend: ConvergenceTrend = ConvergenceTrend.STABLE
    reasoning: str = ""
    source: str = "coordinator"  # "coordinator" or "heuristic"


@dataclass(frozen=True)
class RankingResult:
    best_agent: str
    scores_by_agent: dict[str, float]
    suggestions: tuple[str, ...] = ()
    source: str = "evaluator"  # "evaluator" or "heuristic"


@dataclass(frozen=True)
class RosterSelection:
    agents: tuple[Agent, ...]
    complexity: str        # trivial..critical, or "unknown" when not analyzed
    reasoning: str
    source: str = "coordinator"  # "coordinator" or "all"


@dataclass
class DebateResult:
    question: Question
    solution: str
    iterations: int
    final_consensus: float
    debate_history: DebateState
    outcome: DebateOutcome
    final_responses: dict[str, str] = field(default_factory=dict)
    ranking: RankingResult | None = None
    total_duration_sec: float = 0.0
    selection: RosterSelection | None = None
