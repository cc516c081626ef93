from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .agent import QLearner, Trajectory
from .env import Action, StateMachine


@dataclass
class TrainingConfig:
    """Runtime options used during the training loop."""

    episodes: int = 100
    epsilon: float = 0.2
    max_steps: Optional[int] = None
    render_episodes: int = 0
    render_every: Optional[int] = None

    def __post_init__(self) -> None:
        if self.episodes < 0:
            raise ValueError(f"episodes precisa ser >= 0: {self.episodes}")
        if not 0.0 <= self.epsilon <= 1.0:
            raise ValueError(f"epsilon fora de [0, 1]: {self.epsilon}")
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError(f"max_steps precisa ser >= 1: {self.max_steps}")


@dataclass
class EpisodeResult:
    """Summary of a finished episode."""

    index: int
    steps: int
    total_reward: float
    reward_rate: float
    final_state: int
    reached_goal: bool
    trajectory: Trajectory


class Trainer:
    """Coordinate the interaction loop between environment and agent."""

    def __init__(
        self,
        environment: StateMachine,
        agent: QLearner,
        config: TrainingConfig,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.env = environment
        self.agent = agent
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.action_count = 0
        self.sum_of_rewards = 0.0

    def train(self, rng: np.random.Generator) -> List[EpisodeResult]:
        """Run the configured number of episodes with a shared random source.

        ``reward_rate`` on each result is the running average reward per
        action across every episode of this trainer so far.
        """

        results: List[EpisodeResult] = []
        for episode in range(self.config.episodes):
            results.append(self.run_episode(episode, rng))
        return results

    def run_episode(self, episode: int, rng: np.random.Generator) -> EpisodeResult:
        """Play one episode from the initial state until a goal is reached."""

        state = self.env.reset()
        trajectory = Trajectory.start(state)
        rule = self.agent.update_rule

        render = self._should_render_episode(episode)
        if render:
            self._render_header(episode)

        steps = 0
        total_reward = 0.0
        reward = 0.0
        while not self.env.is_goal():
            if self.config.max_steps and steps >= self.config.max_steps:
                if render:
                    self.logger.info("-> Episódio interrompido pelo limite de passos configurado.")
                break

            action = self.agent.select_action(state, rng, self.config.epsilon)
            next_state, reward, _ = self.env.step(action)
            trajectory.append(next_state, action)
            if rule.per_step:
                self.agent.update(trajectory, reward)

            steps += 1
            total_reward += reward
            self.action_count += 1
            self.sum_of_rewards += reward

            if render:
                self._render_step(steps, state, Action(action), next_state, reward)
            state = next_state

        if not rule.per_step and self.env.is_goal():
            self.agent.update(trajectory, reward)

        result = EpisodeResult(
            index=episode + 1,
            steps=steps,
            total_reward=total_reward,
            reward_rate=self.sum_of_rewards / self.action_count if self.action_count else 0.0,
            final_state=state,
            reached_goal=self.env.is_goal(),
            trajectory=trajectory,
        )
        if render:
            self._render_episode_summary(result)
        return result

    def _should_render_episode(self, episode_index: int) -> bool:
        """Decide whether logs for a given episode should be printed."""

        if episode_index < self.config.render_episodes:
            return True
        if self.config.render_every and (episode_index + 1) % self.config.render_every == 0:
            return True
        return False

    def _render_header(self, episode_index: int) -> None:
        self.logger.info("")
        self.logger.info("===== Episódio %03d =====", episode_index + 1)
        self.logger.info("%-6s %-8s %-6s %-8s %-12s", "Passo", "Estado", "Ação", "Próximo", "Recompensa")

    def _render_step(self, step: int, state: int, action: Action, next_state: int, reward: float) -> None:
        self.logger.info("%-6d %-8d %-6s %-8d %-12.2f", step, state, action.name, next_state, reward)

    def _render_episode_summary(self, result: EpisodeResult) -> None:
        self.logger.info(
            "Resumo -> passos=%d | recompensa=%.2f | estado final=%d | recompensa/ação=%.4f",
            result.steps,
            result.total_reward,
            result.final_state,
            result.reward_rate,
        )
