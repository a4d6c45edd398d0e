"""Tests for council/memory.py."""

import dataclasses

import pytest

from council.memory import DebateMemory


def test_new_memory_is_empty():
    state = DebateMemory().get_debate_state()
    assert state.current_round == 0
    assert state.history == ()
    assert state.consensus_trend == ()
    assert state.positions == {}
    assert state.latest is None


def test_add_iteration_numbers_rounds_from_zero():
    memory = DebateMemory()
    for score in (60, 78, 91):
        memory.add_iteration({"a": "x", "b": "y"}, score, [])

    state = memory.get_debate_state()
    assert state.current_round == 3
    assert [it.round for it in state.history] == [0, 1, 2]
    assert state.consensus_trend == (60, 78, 91)
    assert len(state.history) == state.current_round


def test_convergence_is_delta_to_previous_round():
    memory = DebateMemory()
    first = memory.add_iteration({"a": "x"}, 60, [])
    second = memory.add_iteration({"a": "x"}, 78, [])
    third = memory.add_iteration({"a": "x"}, 70, [])
    assert first.convergence == 0
    assert second.convergence == 18
    assert third.convergence == -8


def test_add_iteration_copies_inputs():
    memory = DebateMemory()
    responses = {"a": "original"}
    disagreements = ["X vs Y"]
    memory.add_iteration(responses, 50, disagreements)

    responses["a"] = "changed"
    disagreements.append("late addition")

    stored = memory.get_debate_state().history[0]
    assert stored.responses == {"a": "original"}
    assert stored.disagreements == ("X vs Y",)


def test_iterations_are_immutable():
    memory = DebateMemory()
    iteration = memory.add_iteration({"a": "x"}, 50, [])
    with pytest.raises(dataclasses.FrozenInstanceError):
        iteration.consensus_score = 99  # type: ignore[misc]


def test_snapshot_reflects_every_append():
    memory = DebateMemory()
    before = memory.get_debate_state()
    memory.add_iteration({"a": "x"}, 40, ["gap"])
    after = memory.get_debate_state()

    assert before.current_round == 0
    assert after.current_round == 1
    assert after.latest.disagreements == ("gap",)


def test_positions_tagged_with_round_being_built():
    memory = DebateMemory()
    memory.update_model_position("a", "monolith", "Initial proposal")
    memory.add_iteration({"a": "monolith"}, 50, [])
    memory.update_model_position("a", "modular monolith", "Iteration update")

    positions = memory.get_debate_state().positions["a"]
    assert [(p.iteration, p.position) for p in positions] == [(0, "monolith"), (1, "modular monolith")]


def test_positions_snapshot_is_read_only():
    memory = DebateMemory()
    memory.update_model_position("a", "first", "r")
    state = memory.get_debate_state()
    with pytest.raises(TypeError):
        state.positions["b"] = ()  # type: ignore[index]
    assert "b" not in memory.get_debate_state().positions


def test_recorded_responses_cannot_be_rewritten_through_a_snapshot():
    memory = DebateMemory()
    returned = memory.add_iteration({"a": "x"}, 50, [])
    snapshot = memory.get_debate_state()

    with pytest.raises(TypeError):
        snapshot.history[0].responses["a"] = "rewritten"  # type: ignore[index]
    with pytest.raises(TypeError):
        returned.responses["b"] = "added"  # type: ignore[index]

    assert dict(memory.get_debate_state().history[0].responses) == {"a": "x"}


def test_memories_are_independent():
    one, two = DebateMemory(), DebateMemory()
    one.add_iteration({"a": "x"}, 50, [])
    assert two.get_debate_state().current_round == 0
