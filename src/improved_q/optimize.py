from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import optuna

from .agent import UPDATE_RULES, AgentConfig
from .config import save_active_config
from .experiment import ExperimentConfig, run_experiment
from .trainer import TrainingConfig


def make_config(params: Dict[str, Any], trials: int, episodes: int, seed_base: int, update_rule: str) -> ExperimentConfig:
    return ExperimentConfig(
        trials=trials,
        seed_base=seed_base,
        update_rule=update_rule,
        agent=AgentConfig(learning_rate=params["learning_rate"], discount=params["discount"]),
        training=TrainingConfig(episodes=episodes, epsilon=params["epsilon"]),
    )


def objective(
    trial: optuna.Trial,
    trials: int = 10,
    episodes: int = 100,
    seed_base: int = 1000,
    update_rule: str = "stepwise",
) -> float:
    """Mean reward per action after the last episode, averaged over ``trials`` runs."""

    params = {
        "learning_rate": trial.suggest_float("learning_rate", 0.01, 1.0),
        "discount": trial.suggest_float("discount", 0.0, 1.0),
        "epsilon": trial.suggest_float("epsilon", 0.01, 0.5),
    }
    trial.set_user_attr("params_cfg", {**params, "update_rule": update_rule})
    cfg = make_config(params, trials, episodes, seed_base, update_rule)
    result = run_experiment(cfg, progress=False)
    if result.rates.empty:
        return 0.0

    final_rates = result.rates.iloc[-1]
    trial.set_user_attr("final_rate_std", float(final_rates.std(ddof=0)))
    return float(final_rates.mean())


def main() -> None:
    parser = argparse.ArgumentParser(description="Optuna optimizer para alpha, gamma e epsilon do Q-learning")
    parser.add_argument("--trials", type=int, default=50, help="Quantidade de trials do Optuna")
    parser.add_argument("--runs", type=int, default=10, help="Trials de aprendizado avaliados por trial do Optuna")
    parser.add_argument("--episodes", type=int, default=100)
    parser.add_argument("--seed-base", type=int, default=1000)
    parser.add_argument("--update-rule", choices=sorted(UPDATE_RULES), default="stepwise")
    parser.add_argument("--sampler-seed", type=int, default=42)
    parser.add_argument("--outdir", default="reports")
    parser.add_argument("--no-activate", action="store_true", help="Não promove o melhor resultado para config ativa")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    optuna.logging.set_verbosity(optuna.logging.WARNING)

    study = optuna.create_study(direction="maximize", sampler=optuna.samplers.TPESampler(seed=args.sampler_seed))
    study.optimize(
        lambda trial: objective(trial, args.runs, args.episodes, args.seed_base, args.update_rule),
        n_trials=args.trials,
    )

    best = study.best_trial
    best_cfg = best.user_attrs["params_cfg"]
    logging.info("Melhor score: %.4f", best.value)
    logging.info("Melhor configuração:\n%s", json.dumps(best_cfg, indent=2))

    rec = {
        "best_value": float(best.value),
        "best_params": best_cfg,
        "final_rate_std": best.user_attrs.get("final_rate_std"),
        "runs": args.runs,
        "episodes": args.episodes,
        "seed_base": args.seed_base,
        "defaults": asdict(AgentConfig()),
    }

    out_dir = Path(args.outdir) / "improved_q_optuna"
    out_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = out_dir / f"study_{args.update_rule}_{ts}.json"
    path.write_text(json.dumps(rec, ensure_ascii=False, indent=2), encoding="utf-8")
    logging.info("Estudo salvo em %s", path)

    if not args.no_activate:
        active_path = save_active_config(rec, reports_dir=args.outdir)
        logging.info("Config ativa atualizada em %s", active_path)


if __name__ == "__main__":
    main()
