from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Type

import numpy as np

from .env import ACTION_COUNT, STATE_COUNT


class InvalidTrajectory(ValueError):
    """Raised when an update needs a transition but the trajectory has none."""


@dataclass(frozen=True)
class AgentConfig:
    """Hyperparameters that control the Q-learning update."""

    action_count: int = ACTION_COUNT
    state_count: int = STATE_COUNT
    learning_rate: float = 0.1
    discount: float = 0.1
    initial_value: float = 0.0

    def __post_init__(self) -> None:
        if self.action_count < 1 or self.state_count < 1:
            raise ValueError("action_count e state_count precisam ser positivos")
        if not 0.0 <= self.learning_rate <= 1.0:
            raise ValueError(f"learning_rate fora de [0, 1]: {self.learning_rate}")
        if not 0.0 <= self.discount <= 1.0:
            raise ValueError(f"discount fora de [0, 1]: {self.discount}")


class Step(NamedTuple):
    """One trajectory entry: the state reached and the action that led there."""

    state: int
    action: int


@dataclass
class Trajectory:
    """Ordered ``(state, action)`` pairs visited during one episode.

    The first entry pairs the initial state with a placeholder action, so a
    trajectory holding ``n`` entries describes ``n - 1`` transitions.
    """

    steps: List[Step] = field(default_factory=list)

    @classmethod
    def start(cls, state: int, placeholder_action: int = 0) -> "Trajectory":
        return cls([Step(state, placeholder_action)])

    def append(self, state: int, action: int) -> None:
        self.steps.append(Step(int(state), int(action)))

    def states(self) -> List[int]:
        return [step.state for step in self.steps]

    def actions(self) -> List[int]:
        return [step.action for step in self.steps]

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> Step:
        return self.steps[index]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)


class UpdateRule(ABC):
    """Strategy that folds an observed reward into the Q-table.

    ``per_step`` tells the driver when to call the rule: after every
    transition (``True``) or once, when the episode reaches a goal (``False``).
    """

    name = "base"
    per_step = True

    def __call__(self, q_table: np.ndarray, trajectory: Trajectory, reward: float, config: AgentConfig) -> None:
        if len(trajectory) < 2:
            raise InvalidTrajectory(
                f"A atualização precisa de pelo menos 2 entradas na trajetória (recebeu {len(trajectory)})."
            )
        self.apply(q_table, trajectory, reward, config)

    @abstractmethod
    def apply(self, q_table: np.ndarray, trajectory: Trajectory, reward: float, config: AgentConfig) -> None:
        raise NotImplementedError


class StepwiseUpdate(UpdateRule):
    """One-step bootstrapped Q-learning on the latest transition.

    ``Q[s, a] <- (1 - alpha) * Q[s, a] + alpha * (r + gamma * max Q[s'])``
    """

    name = "stepwise"
    per_step = True

    def apply(self, q_table: np.ndarray, trajectory: Trajectory, reward: float, config: AgentConfig) -> None:
        before_state = trajectory[-2].state
        action = trajectory[-1].action
        after_state = trajectory[-1].state

        alpha = config.learning_rate
        target = reward + config.discount * float(np.max(q_table[after_state]))
        q_table[before_state, action] = (1 - alpha) * q_table[before_state, action] + alpha * target


class DecayedEpisodeUpdate(UpdateRule):
    """Monte-Carlo style update that walks the whole episode backwards.

    Each transition, newest first, is blended towards ``reward * rate`` with
    ``rate`` starting at 1 and multiplied by ``discount`` after every entry.
    There is no bootstrapping from the current estimates. Entry 0 only
    contributes its state; its placeholder action is never read.
    """

    name = "decayed"
    per_step = False

    def apply(self, q_table: np.ndarray, trajectory: Trajectory, reward: float, config: AgentConfig) -> None:
        alpha = config.learning_rate
        rate = 1.0
        for i in range(len(trajectory) - 1, 0, -1):
            before_state = trajectory[i - 1].state
            action = trajectory[i].action
            q_table[before_state, action] = (1 - alpha) * q_table[before_state, action] + alpha * reward * rate
            rate *= config.discount


UPDATE_RULES: Dict[str, Type[UpdateRule]] = {
    StepwiseUpdate.name: StepwiseUpdate,
    DecayedEpisodeUpdate.name: DecayedEpisodeUpdate,
}


def build_update_rule(name: str) -> UpdateRule:
    """Instantiate an update rule by its registered name."""

    try:
        return UPDATE_RULES[name]()
    except KeyError:
        raise ValueError(f"Regra de atualização desconhecida: {name} (opções: {', '.join(UPDATE_RULES)})") from None


class QLearner:
    """Table-based Q-learning agent with epsilon-greedy exploration."""

    def __init__(self, config: Optional[AgentConfig] = None, update_rule: Optional[UpdateRule] = None) -> None:
        """Initialise the agent with a Q-table filled with ``config.initial_value``."""

        self.config = config or AgentConfig()
        self.update_rule = update_rule or StepwiseUpdate()
        self.q_table = np.full(
            (self.config.state_count, self.config.action_count),
            self.config.initial_value,
            dtype=np.float64,
        )

    @property
    def action_count(self) -> int:
        return self.config.action_count

    @property
    def state_count(self) -> int:
        return self.config.state_count

    def select_action(self, state: int, rng: np.random.Generator, epsilon: float) -> int:
        """Choose an action index following an epsilon-greedy strategy.

        Ties between maximal actions are broken by shuffling the candidates
        with ``rng`` and taking the first one.
        """

        if rng.random() < epsilon:
            return int(rng.integers(0, self.action_count))

        q_values = self.q_table[state]
        candidates = np.flatnonzero(q_values == q_values.max())
        rng.shuffle(candidates)
        return int(candidates[0])

    def update(self, trajectory: Trajectory, reward: float) -> None:
        """Apply the configured update rule in place.

        Raises:
            InvalidTrajectory: If ``trajectory`` holds fewer than two entries.
        """

        self.update_rule(self.q_table, trajectory, reward, self.config)

    def max_value(self, state: int) -> float:
        return float(np.max(self.q_table[state]))

    def greedy_action(self, state: int) -> int:
        """Lowest-index maximal action, used for inspection only."""

        return int(np.argmax(self.q_table[state]))

    def copy_table(self) -> np.ndarray:
        return self.q_table.copy()
