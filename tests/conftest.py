"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AgentConfig, AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from council.memory import DebateMemory
from council.models import (
    Agent,
    ConsensusResult,
    ConvergenceTrend,
    DebateOutcome,
    DebateResult,
    ModelResponse,
    Question,
    RankingResult,
    level_for_score,
)
from council.providers.base import AIProvider


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        initial="Answer as the {role} expert: {question}",
        iteration=(
            "You are {agent} ({role}), iteration {round}.\n"
            "Q: {question}\nYou said:\n{own_response}\n"
            "Others said:\n{other_responses}\n{consensus_status}"
        ),
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=DefaultsConfig(
            max_iterations=3,
            output_dir=tmp_path / "output",
            coordinator="claude",
            evaluator="claude",
            agents=["architect", "tester"],
        ),
        models={"claude": model_cfg},
        agents={
            "architect": AgentConfig(name="architect", model="claude", role="Architecture"),
            "tester": AgentConfig(name="tester", model="claude", role="Testing"),
        },
        prompts=sample_prompts_config,
        available_providers={"claude"},
    )


@pytest.fixture
def sample_question() -> Question:
    return Question(text="Should a 3-person startup use microservices or a monolith?", source="cli")


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                round_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        return self._response_content, 10

    async def generate(self, prompt: str, round_number: int) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, "mock-model", round_number, self._response_content, 0.1, 10)


def scripted_agent(name: str, replies: list, role: str = "Generalist") -> Agent:
    """Agent answering replies[round - 1]; the last reply repeats.

    A reply that is an exception instance is raised instead of returned.
    """
    provider = MockProvider(name)

    async def answer(prompt: str, round_number: int) -> ModelResponse:
        reply = replies[min(round_number, len(replies)) - 1]
        if isinstance(reply, BaseException):
            raise reply
        return ModelResponse(name, "mock-model", round_number, reply, 0.1, 10)

    provider.generate = AsyncMock(side_effect=answer)
    return Agent(name=name, role=role, provider=provider)


def make_consensus(score: float, disagreements: tuple[str, ...] = ("A wants X, B wants Y",)) -> ConsensusResult:
    return ConsensusResult(
        consensus_score=score,
        consensus_level=level_for_score(score),
        core_agreement="Shared core",
        key_disagreements=disagreements,
        continue_debate=score < 90,
        synthesis_ready=score >= 90,
        convergence_trend=ConvergenceTrend.STABLE,
    )


class StubAnalyzer:
    """Analyzer double that returns a fixed score per evaluated round."""

    def __init__(self, scores: list[float]) -> None:
        self.scores = list(scores)
        self.calls: list[tuple[dict[str, str], object]] = []

    async def evaluate_consensus(self, question, responses, debate_history=None, time_budget_sec=None) -> ConsensusResult:
        self.calls.append((dict(responses), debate_history))
        return make_consensus(self.scores[len(self.calls) - 1])


@pytest.fixture
def sample_debate_result(sample_question: Question) -> DebateResult:
    memory = DebateMemory()
    memory.add_iteration({"architect": "Monolith first.", "tester": "Microservices."}, 60, ["Service split"])
    memory.add_iteration({"architect": "Monolith first.", "tester": "Monolith, split later."}, 92, [])
    state = memory.get_debate_state()
    return DebateResult(
        question=sample_question,
        solution="# Iterative Consensus Solution\n\nStart with a monolith.",
        iterations=state.current_round,
        final_consensus=92,
        debate_history=state,
        outcome=DebateOutcome.CONVERGED,
        final_responses=dict(state.history[-1].responses),
        ranking=RankingResult("architect", {"architect": 90, "tester": 80}, ("Mention modular boundaries",)),
        total_duration_sec=12.5,
    )
