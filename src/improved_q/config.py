from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

ACTIVE_CONFIG_NAME = "improved_q.json"


@dataclass
class ActiveConfig:
    """Hyperparameters promoted by the optimizer for later training runs."""

    learning_rate: float
    discount: float
    epsilon: float
    update_rule: str = "stepwise"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_best_params(data: Dict[str, Any]) -> ActiveConfig:
    # Aceita tanto o registro completo com best_params quanto os parâmetros diretos
    p = data["best_params"] if "best_params" in data else data
    return ActiveConfig(
        learning_rate=float(p["learning_rate"]),
        discount=float(p["discount"]),
        epsilon=float(p["epsilon"]),
        update_rule=str(p.get("update_rule", "stepwise")),
    )


def active_config_path(reports_dir: str = "reports") -> Path:
    return Path(reports_dir) / "active" / ACTIVE_CONFIG_NAME


def load_active_config(reports_dir: str = "reports") -> Optional[ActiveConfig]:
    """Read the active configuration, or ``None`` when there is none yet.

    Raises:
        ValueError: If the file exists but is not a valid configuration.
    """

    path = active_config_path(reports_dir)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return _parse_best_params(data)
    except (KeyError, TypeError, json.JSONDecodeError) as exc:
        raise ValueError(f"Config ativa inválida em {path}: {exc}") from exc


def save_active_config(rec: Dict[str, Any], reports_dir: str = "reports") -> Path:
    """Persist ``rec`` (must contain the hyperparameters) as the active config."""

    try:
        _parse_best_params(rec)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"hiperparâmetros ausentes no registro de configuração: {exc}") from exc
    path = active_config_path(reports_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(rec, ensure_ascii=False, indent=2), encoding="utf-8")
    return path
