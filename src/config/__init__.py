"""
Configuration loaders.

App config:   reads config.yaml, resolves the webhook env var.
Instruments:  reads instruments.default.json (or override), validates against JSON Schema.
"""

from config.instruments import (
    InstrumentConfigError,
    load_instruments,
)
from config.loader import (
    AlertingConfig,
    AppConfig,
    JournalConfig,
    ReconstructionConfig,
    StoreConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "JournalConfig",
    "ReconstructionConfig",
    "StoreConfig",
    "load_config",
    # Instrument reference data (JSON + schema)
    "InstrumentConfigError",
    "load_instruments",
]
