"""
Config loader: YAML file -> frozen dataclass tree.

The alert webhook URL may be supplied through the FIFO_ALERT_WEBHOOK_URL
environment variable, which wins over the file value.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

import yaml


@dataclass(frozen=True)
class StoreConfig:
    trade_store_path: str = "data/trades.db"


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class ReconstructionConfig:
    max_workers: int = 1
    strict: bool = False
    default_commission_per_unit: Decimal = Decimal(0)


@dataclass(frozen=True)
class AppConfig:
    instruments_path: str | None
    store: StoreConfig
    journal: JournalConfig
    alerting: AlertingConfig = AlertingConfig()
    reconstruction: ReconstructionConfig = ReconstructionConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    ``instruments_path`` may be omitted; the bundled instrument table is used then.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    store_raw = raw.get("store", {})
    store_cfg = StoreConfig(
        trade_store_path=store_raw.get("trade_store_path", "data/trades.db"),
    )

    j_raw = raw.get("journal", {})
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=os.environ.get("FIFO_ALERT_WEBHOOK_URL") or str(a_raw.get("webhook_url", "")),
    )

    r_raw = raw.get("reconstruction", {})
    max_workers = int(r_raw.get("max_workers", 1))
    if max_workers < 1:
        raise ValueError(f"reconstruction.max_workers must be >= 1, got {max_workers}")
    try:
        default_commission = Decimal(str(r_raw.get("default_commission_per_unit", 0)))
    except InvalidOperation:
        raise ValueError(
            f"reconstruction.default_commission_per_unit is not a number: {r_raw.get('default_commission_per_unit')!r}"
        ) from None
    if default_commission < 0:
        raise ValueError(f"reconstruction.default_commission_per_unit must be >= 0, got {default_commission}")
    r_cfg = ReconstructionConfig(
        max_workers=max_workers,
        strict=bool(r_raw.get("strict", False)),
        default_commission_per_unit=default_commission,
    )

    instruments_path = raw.get("instruments_path")
    return AppConfig(
        instruments_path=str(instruments_path) if instruments_path else None,
        store=store_cfg,
        journal=j_cfg,
        alerting=a_cfg,
        reconstruction=r_cfg,
    )
