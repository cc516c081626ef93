from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
from tqdm import tqdm

from .agent import AgentConfig, QLearner, build_update_rule
from .env import StateMachine
from .trainer import EpisodeResult, Trainer, TrainingConfig


@dataclass
class ExperimentConfig:
    """Options for a batch of independent learning trials."""

    trials: int = 100
    seed_base: int = 1000
    update_rule: str = "stepwise"
    agent: AgentConfig = field(default_factory=AgentConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)

    def __post_init__(self) -> None:
        if self.trials < 0:
            raise ValueError(f"trials precisa ser >= 0: {self.trials}")
        build_update_rule(self.update_rule)

    def seed_for(self, trial_index: int) -> int:
        return self.seed_base + trial_index


@dataclass
class TrialResult:
    """Outcome of one trial: per-episode results and the learned table."""

    index: int
    seed: int
    episodes: List[EpisodeResult]
    q_table: np.ndarray

    @property
    def reward_rates(self) -> List[float]:
        return [episode.reward_rate for episode in self.episodes]


@dataclass
class ExperimentResult:
    """Reward rates (rows = episodes, columns = trials) plus every trial."""

    rates: pd.DataFrame
    trials: List[TrialResult]


def run_trial(
    trial_index: int,
    config: ExperimentConfig,
    logger: Optional[logging.Logger] = None,
) -> TrialResult:
    """Train a fresh agent against a fresh environment.

    All state lives inside this call, so trials can run in any order or in
    separate processes and still produce the same numbers.
    """

    seed = config.seed_for(trial_index)
    rng = np.random.default_rng(seed)
    agent = QLearner(config.agent, build_update_rule(config.update_rule))
    trainer = Trainer(StateMachine(), agent, config.training, logger=logger)
    episodes = trainer.train(rng)
    return TrialResult(index=trial_index, seed=seed, episodes=episodes, q_table=agent.copy_table())


def run_experiment(
    config: ExperimentConfig,
    logger: Optional[logging.Logger] = None,
    progress: bool = True,
) -> ExperimentResult:
    """Run ``config.trials`` trials and collect their reward-rate curves."""

    logger = logger or logging.getLogger(__name__)
    logger.debug(
        "Iniciando %d trials x %d episódios (regra=%s, alpha=%.3f, gamma=%.3f, epsilon=%.3f)",
        config.trials,
        config.training.episodes,
        config.update_rule,
        config.agent.learning_rate,
        config.agent.discount,
        config.training.epsilon,
    )

    trials: List[TrialResult] = []
    for trial_index in tqdm(range(config.trials), desc="Trials", disable=not progress):
        trials.append(run_trial(trial_index, config, logger=logger))

    rates = pd.DataFrame(
        {trial.index: trial.reward_rates for trial in trials},
        index=pd.RangeIndex(config.training.episodes, name="episode"),
    )
    rates.columns.name = "trial"
    return ExperimentResult(rates=rates, trials=trials)
