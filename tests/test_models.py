"""Tests for council/models.py dataclasses."""

import dataclasses

import pytest

from council.models import (
    Agent,
    ConsensusLevel,
    DebateOutcome,
    ModelResponse,
    Question,
    level_for_score,
)
from tests.conftest import MockProvider, make_consensus


@pytest.mark.parametrize(
    ("score", "level"),
    [
        (100, ConsensusLevel.STRONG),
        (90, ConsensusLevel.STRONG),
        (89.9, ConsensusLevel.MODERATE),
        (70, ConsensusLevel.MODERATE),
        (69, ConsensusLevel.WEAK),
        (50, ConsensusLevel.WEAK),
        (49.5, ConsensusLevel.NONE),
        (0, ConsensusLevel.NONE),
    ],
)
def test_level_for_score(score, level):
    assert level_for_score(score) == level


def test_question_is_immutable():
    q = Question(text="Should we use YAML?")
    assert q.source == "cli"
    with pytest.raises(dataclasses.FrozenInstanceError):
        q.text = "other"  # type: ignore[misc]


def test_agent_equality_ignores_provider():
    assert Agent("k1", "Architecture", MockProvider("x")) == Agent("k1", "Architecture", MockProvider("y"))


def test_model_response_optional_token_count():
    r = ModelResponse("gemini", "gemini-2.5-pro", 2, "Some answer.", 0.9, None)
    assert r.token_count is None


def test_consensus_result_is_frozen():
    result = make_consensus(80)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.consensus_score = 10  # type: ignore[misc]


def test_enum_values_serialise_as_strings():
    assert DebateOutcome.EARLY_CONSENSUS.value == "early_consensus"
    assert ConsensusLevel("moderate") is ConsensusLevel.MODERATE
