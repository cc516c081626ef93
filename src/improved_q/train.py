from __future__ import annotations

import argparse
import logging
from typing import Optional

from .agent import UPDATE_RULES, AgentConfig
from .config import load_active_config
from .experiment import ExperimentConfig, run_experiment
from .report import format_q_table, format_rate_table, plot_learning_curve, save_rates_csv, summarize_rates
from .trainer import TrainingConfig


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line flags into a structured namespace."""

    parser = argparse.ArgumentParser(
        description="Executa trials independentes de Q-learning tabular na máquina de estados de 21 estados.",
    )
    parser.add_argument("--trials", type=int, default=100, help="Quantidade de trials independentes")
    parser.add_argument("--episodes", type=int, default=100, help="Episódios por trial")
    parser.add_argument("--learning-rate", type=float, default=0.1, help="Taxa de aprendizado (alpha)")
    parser.add_argument("--discount", type=float, default=0.1, help="Fator de desconto (gamma)")
    parser.add_argument("--epsilon", type=float, default=0.2, help="Probabilidade de explorar ações")
    parser.add_argument("--initial-value", type=float, default=0.0, help="Valor inicial da tabela Q")
    parser.add_argument("--seed-base", type=int, default=1000, help="Semente do trial i = seed_base + i")
    parser.add_argument(
        "--update-rule",
        choices=sorted(UPDATE_RULES),
        default="stepwise",
        help="stepwise: Q-learning a cada passo; decayed: atualização decaída no fim do episódio",
    )
    parser.add_argument("--max-steps", type=int, default=None, help="Limite opcional de passos por episódio")
    parser.add_argument("--render-episodes", type=int, default=0, help="Quantos episódios logar passo a passo")
    parser.add_argument(
        "--render-every",
        type=int,
        default=None,
        help="Após os episódios iniciais, loga um episódio a cada N iterações",
    )
    parser.add_argument("--show-q", action="store_true", help="Imprime a tabela Q final do último trial")
    parser.add_argument("--summary", action="store_true", help="Imprime média/desvio por episódio em vez da tabela bruta")
    parser.add_argument("--use-active", action="store_true", help="Usa os hiperparâmetros salvos pelo optimize")
    parser.add_argument("--save", action="store_true", help="Salva CSV e gráfico da curva de aprendizado")
    parser.add_argument("--outdir", default="reports", help="Diretório para salvar os relatórios")
    parser.add_argument("--no-progress", action="store_true", help="Desativa a barra de progresso")
    parser.add_argument("--log-level", default="INFO", help="Nível de log (DEBUG, INFO, WARNING...)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    """Set up console logging with a friendly format."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


def build_config(args: argparse.Namespace) -> ExperimentConfig:
    """Translate CLI flags (and optionally the active config) into an ``ExperimentConfig``."""

    learning_rate, discount, epsilon, update_rule = args.learning_rate, args.discount, args.epsilon, args.update_rule
    if args.use_active:
        active = load_active_config(args.outdir)
        if active is None:
            logging.warning("Nenhuma config ativa em %s; usando os valores da linha de comando.", args.outdir)
        else:
            logging.info("Usando config ativa: %s", active.to_dict())
            learning_rate, discount, epsilon, update_rule = (
                active.learning_rate,
                active.discount,
                active.epsilon,
                active.update_rule,
            )

    return ExperimentConfig(
        trials=args.trials,
        seed_base=args.seed_base,
        update_rule=update_rule,
        agent=AgentConfig(
            learning_rate=learning_rate,
            discount=discount,
            initial_value=args.initial_value,
        ),
        training=TrainingConfig(
            episodes=args.episodes,
            epsilon=epsilon,
            max_steps=args.max_steps,
            render_episodes=args.render_episodes,
            render_every=args.render_every,
        ),
    )


def main(args: Optional[argparse.Namespace] = None) -> None:
    """Entry-point used by ``python -m`` execution."""

    args = args or parse_args()
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        logging.error("Erro de configuração: %s", exc)
        return

    logging.info(
        "Iniciando %d trials x %d episódios (regra=%s)...",
        config.trials,
        config.training.episodes,
        config.update_rule,
    )
    result = run_experiment(config, logger=logging.getLogger("trainer"), progress=not args.no_progress)

    if not result.trials or result.rates.empty:
        logging.warning("Nenhum episódio executado. Verifique os parâmetros.")
        return

    if args.summary:
        print(summarize_rates(result.rates).to_string())
    else:
        print(format_rate_table(result.rates))

    if args.show_q:
        last = result.trials[-1]
        print()
        print(f"Tabela Q do trial {last.index} (semente {last.seed}):")
        print(format_q_table(last.q_table))

    final_rates = result.rates.iloc[-1]
    logging.info("")
    logging.info("===== Estatísticas finais =====")
    logging.info(
        "Recompensa/ação no último episódio: média=%.4f | min=%.4f | max=%.4f",
        final_rates.mean(),
        final_rates.min(),
        final_rates.max(),
    )

    if args.save:
        csv_path = save_rates_csv(result.rates, args.outdir)
        chart_path = plot_learning_curve(result.rates, args.outdir)
        logging.info("Relatórios salvos em %s e %s", csv_path, chart_path)


if __name__ == "__main__":
    main()
