from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

import numpy as np

STATE_COUNT = 21
ACTION_COUNT = 3
GOAL_THRESHOLD = 15
INVALID_STATE = -1
REWARD_PER_STATE = 10.0


class Action(IntEnum):
    """Discrete actions accepted by ``StateMachine``."""

    LOW = 0
    HIGH = 1
    STAY = 2


class InvalidAction(ValueError):
    """Raised when an action index falls outside the action space."""


class InvalidTransition(RuntimeError):
    """Raised when the transition table marks the requested move as unreachable."""


# Linha = estado, colunas = ações 0, 1 e 2.
_NEXT_STATES = (
    (1, 2, 0),
    (3, 4, 1),
    (4, 5, 2),
    (6, 7, 3),
    (7, 8, 4),
    (8, 9, 5),
    (10, 11, 6),
    (11, 12, 7),
    (12, 13, 8),
    (13, 14, 9),
    (15, 16, 10),
    (16, 17, 11),
    (17, 18, 12),
    (18, 19, 13),
    (19, 20, 14),
    (0, 0, 15),
    (-1, -1, 16),
    (-1, -1, 17),
    (-1, -1, 18),
    (-1, -1, 19),
    (-1, -1, 20),
)


def is_goal_state(state: int) -> bool:
    """Return ``True`` for terminal states (15 and above)."""

    return state >= GOAL_THRESHOLD


def reward_for(state: int) -> float:
    """Reward realised when the environment sits on ``state``."""

    if not is_goal_state(state):
        return 0.0
    return REWARD_PER_STATE * state


def validate_transitions(table: Mapping[Tuple[int, int], int]) -> None:
    """Check that ``table`` is a complete and consistent transition mapping.

    Raises:
        ValueError: If a key is missing, a target is out of range, a transient
            state has no valid outgoing action or a goal state lacks its
            ``STAY`` self-loop.
    """

    for state in range(STATE_COUNT):
        valid_moves = 0
        for action in Action:
            key = (state, int(action))
            if key not in table:
                raise ValueError(f"Transição ausente para estado={state}, ação={int(action)}")
            target = table[key]
            if target == INVALID_STATE:
                continue
            if not 0 <= target < STATE_COUNT:
                raise ValueError(f"Destino inválido {target} para estado={state}, ação={int(action)}")
            valid_moves += 1

        if not is_goal_state(state) and valid_moves == 0:
            raise ValueError(f"Estado transitório {state} não possui ação válida")
        if is_goal_state(state) and table[(state, int(Action.STAY))] != state:
            raise ValueError(f"Estado objetivo {state} precisa de self-loop na ação STAY")

    extra = set(table) - {(s, int(a)) for s in range(STATE_COUNT) for a in Action}
    if extra:
        raise ValueError(f"Chaves desconhecidas na tabela de transições: {sorted(extra)}")


def _build_transitions() -> Mapping[Tuple[int, int], int]:
    table: Dict[Tuple[int, int], int] = {}
    for state, row in enumerate(_NEXT_STATES):
        for action, target in enumerate(row):
            table[(state, action)] = target
    validate_transitions(table)
    return MappingProxyType(table)


TRANSITIONS: Mapping[Tuple[int, int], int] = _build_transitions()


class StateMachine:
    """Deterministic 21-state process with absorbing, rewarded goal states.

    States ``0..14`` are transient and ``15..20`` are goals. Actions ``LOW`` and
    ``HIGH`` move forward, ``STAY`` keeps the current state. From goal states
    other than 15 only ``STAY`` is defined; the driver is expected to stop
    acting as soon as :meth:`is_goal` reports ``True``.
    """

    def __init__(self, transitions: Mapping[Tuple[int, int], int] = TRANSITIONS) -> None:
        if transitions is not TRANSITIONS:
            validate_transitions(transitions)
        self.transitions = transitions
        self._state = 0

    def reset(self) -> int:
        """Move back to the initial state and return it."""

        self._state = 0
        return self._state

    def current_state(self) -> int:
        return self._state

    def is_goal(self) -> bool:
        return is_goal_state(self._state)

    def reward(self) -> float:
        return reward_for(self._state)

    def apply(self, action: Action | int) -> int:
        """Follow the transition table from the current state.

        Args:
            action: ``Action`` member or its integer value.

        Returns:
            The new current state.

        Raises:
            InvalidAction: If ``action`` is not an integer or falls outside
                ``[0, ACTION_COUNT)``.
            InvalidTransition: If the move is unreachable from the current
                state. The current state is left unchanged.
        """

        if isinstance(action, bool) or not isinstance(action, (int, np.integer)):
            raise InvalidAction(f"Ação precisa ser um inteiro: {action!r}")
        index = int(action)
        if not 0 <= index < ACTION_COUNT:
            raise InvalidAction(f"Ação desconhecida: {action}")

        target = self.transitions[(self._state, index)]
        if target == INVALID_STATE:
            raise InvalidTransition(
                f"Ação {Action(index).name} não é permitida no estado {self._state}; "
                "o episódio deveria ter terminado no estado objetivo."
            )
        self._state = target
        return self._state

    def step(self, action: Action | int) -> Tuple[int, float, bool]:
        """Apply ``action`` and return ``(next_state, reward, done)``."""

        next_state = self.apply(action)
        return next_state, self.reward(), self.is_goal()
