"""Tests for state vocabularies and rollups."""

from __future__ import annotations

import pytest

from herotree.tree.state import (
    ADDON_STATE_RANKING,
    PROCESS_STATE_RANKING,
    AddonState,
    ProcessState,
    addon_display_state,
    addon_rollup,
    best_state,
    process_rollup,
    staged_rollup,
    state_color,
)


class TestBestState:
    """Test the generic ranking rollup."""

    def test_lowest_index_wins(self) -> None:
        ranking = ("a", "b", "c")
        assert best_state(["c", "b"], ranking) == "b"
        assert best_state(["c", "a", "b"], ranking) == "a"

    def test_empty_returns_last(self) -> None:
        assert best_state([], ("a", "b", "c")) == "c"

    def test_accepts_generators(self) -> None:
        assert best_state((s for s in ["b", "c"]), ("a", "b", "c")) == "b"

    def test_empty_ranking_rejected(self) -> None:
        with pytest.raises(ValueError):
            best_state(["a"], ())

    def test_unranked_state_rejected(self) -> None:
        with pytest.raises(ValueError, match="not in the ranking"):
            best_state(["x"], ("a", "b"))


class TestProcessRollup:
    """Test application state aggregation."""

    def test_crashed_dominates_up(self) -> None:
        assert process_rollup([ProcessState.CRASHED, ProcessState.UP]) is ProcessState.CRASHED

    def test_no_processes_is_down(self) -> None:
        assert process_rollup([]) is ProcessState.DOWN

    def test_all_up(self) -> None:
        assert process_rollup([ProcessState.UP, ProcessState.UP]) is ProcessState.UP

    def test_starting_over_idle_and_up(self) -> None:
        states = [ProcessState.UP, ProcessState.IDLE, ProcessState.STARTING]
        assert process_rollup(states) is ProcessState.STARTING

    def test_down_is_last(self) -> None:
        assert PROCESS_STATE_RANKING[-1] is ProcessState.DOWN
        assert process_rollup([ProcessState.DOWN, ProcessState.UP]) is ProcessState.UP


class TestAddonStates:
    """Test add-on ranking and translation."""

    def test_empty_is_deprovisioned(self) -> None:
        assert addon_rollup([]) is AddonState.DEPROVISIONED
        assert ADDON_STATE_RANKING[-1] is AddonState.DEPROVISIONED

    def test_provisioning_dominates(self) -> None:
        states = [AddonState.PROVISIONED, AddonState.PROVISIONING]
        assert addon_rollup(states) is AddonState.PROVISIONING

    def test_translation(self) -> None:
        assert addon_display_state(AddonState.PROVISIONING) is ProcessState.STARTING
        assert addon_display_state(AddonState.PROVISIONED) is ProcessState.UP
        assert addon_display_state(AddonState.DEPROVISIONED) is ProcessState.DOWN


class TestParse:
    """Test parsing of remote state strings."""

    def test_known_values(self) -> None:
        assert ProcessState.parse("crashed") is ProcessState.CRASHED
        assert AddonState.parse("provisioning") is AddonState.PROVISIONING

    def test_unknown_process_state_is_down(self, caplog: pytest.LogCaptureFixture) -> None:
        assert ProcessState.parse("exploded") is ProcessState.DOWN
        assert "exploded" in caplog.text

    def test_unknown_addon_state_is_deprovisioned(self) -> None:
        assert AddonState.parse("weird") is AddonState.DEPROVISIONED

    def test_str(self) -> None:
        assert str(ProcessState.UP) == "up"


class TestStagedRollup:
    """Test pipeline aggregation across stages."""

    def test_all_stages_count(self) -> None:
        stages = {
            "staging": [ProcessState.CRASHED],
            "production": [ProcessState.UP],
        }
        assert staged_rollup(stages) is ProcessState.CRASHED

    def test_authoritative_stage_wins(self) -> None:
        stages = {
            "staging": [ProcessState.CRASHED],
            "production": [ProcessState.UP],
        }
        assert staged_rollup(stages, "production") is ProcessState.UP

    def test_empty_authoritative_stage_falls_back(self) -> None:
        stages = {"staging": [ProcessState.IDLE], "production": []}
        assert staged_rollup(stages, "production") is ProcessState.IDLE

    def test_no_stages_is_down(self) -> None:
        assert staged_rollup({}) is ProcessState.DOWN


def test_state_color() -> None:
    assert state_color(ProcessState.CRASHED) == "herotree.processState.crashed"
