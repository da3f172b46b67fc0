"""State vocabularies and rollup rules for the resource tree.

Rankings are listed in dominance order: the first state present wins a
rollup, and the last state is the fail-safe answer for an empty subtree.
An app with one crashed dyno shows as crashed; an app with no dynos shows as
down, never as up.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import TypeVar

from herotree.logging import get_logger

log = get_logger("tree.state")

S = TypeVar("S")
K = TypeVar("K")


class ProcessState(Enum):
    """State of a dyno."""

    UP = "up"
    STARTING = "starting"
    IDLE = "idle"
    CRASHED = "crashed"
    DOWN = "down"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> ProcessState:
        """Parse a remote state string; unknown values read as DOWN."""
        try:
            return cls(value)
        except ValueError:
            log.warning("Unknown dyno state %r, treating as down", value)
            return cls.DOWN


class AddonState(Enum):
    """State of an add-on."""

    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    DEPROVISIONED = "deprovisioned"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> AddonState:
        """Parse a remote state string; unknown values read as DEPROVISIONED."""
        try:
            return cls(value)
        except ValueError:
            log.warning("Unknown add-on state %r, treating as deprovisioned", value)
            return cls.DEPROVISIONED


PROCESS_STATE_RANKING: tuple[ProcessState, ...] = (
    ProcessState.CRASHED,
    ProcessState.STARTING,
    ProcessState.IDLE,
    ProcessState.UP,
    ProcessState.DOWN,
)

ADDON_STATE_RANKING: tuple[AddonState, ...] = (
    AddonState.PROVISIONING,
    AddonState.PROVISIONED,
    AddonState.DEPROVISIONED,
)

# Colour slot in the process ranking used to display an add-on state
ADDON_TO_PROCESS_STATE: dict[AddonState, ProcessState] = {
    AddonState.PROVISIONING: ProcessState.STARTING,
    AddonState.PROVISIONED: ProcessState.UP,
    AddonState.DEPROVISIONED: ProcessState.DOWN,
}


def best_state(states: Iterable[S], ranking: Sequence[S]) -> S:
    """Return the state of ``states`` with the lowest index in ``ranking``.

    Args:
        states: Zero or more states, each of which must appear in ``ranking``.
        ranking: Total order, dominant state first, fail-safe sentinel last.

    Returns:
        The dominant state present, or ``ranking[-1]`` when ``states`` is empty.

    Raises:
        ValueError: If ``ranking`` is empty or a state is not ranked.
    """
    if not ranking:
        raise ValueError("ranking must not be empty")

    positions = {state: index for index, state in enumerate(ranking)}
    best = len(ranking) - 1
    for state in states:
        index = positions.get(state)
        if index is None:
            raise ValueError(f"state {state!r} is not in the ranking")
        if index < best:
            best = index
            if best == 0:
                break
    return ranking[best]


def process_rollup(states: Iterable[ProcessState]) -> ProcessState:
    """Aggregate dyno states (an application's state)."""
    return best_state(states, PROCESS_STATE_RANKING)


def addon_rollup(states: Iterable[AddonState]) -> AddonState:
    """Aggregate add-on states."""
    return best_state(states, ADDON_STATE_RANKING)


def addon_display_state(state: AddonState) -> ProcessState:
    """Translate an add-on state into the process ranking for display."""
    return ADDON_TO_PROCESS_STATE[state]


def staged_rollup(
    stages: Mapping[K, Sequence[ProcessState]],
    authoritative: K | None = None,
) -> ProcessState:
    """Aggregate per-stage application states (a pipeline's state).

    If ``authoritative`` names a stage that has applications, that stage's
    rollup is the answer; otherwise every application in every stage counts.
    """
    if authoritative is not None and stages.get(authoritative):
        return process_rollup(stages[authoritative])
    return process_rollup(state for states in stages.values() for state in states)


def state_color(state: ProcessState) -> str:
    """Theme colour id used to tint icons for a process state."""
    return f"herotree.processState.{state.value}"
