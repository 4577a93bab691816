"""
Instrument reference data loader: JSON file -> InstrumentRegistry, validated against JSON Schema.

Default values:  docs/config/instruments.default.json
Schema:          docs/config/instruments.schema.json

An override file (same shape) may be layered on top: entries are merged by
``symbol_prefix`` (override keys win), new prefixes are added. The merged
document is validated before any spec is built.

Usage:
    from config.instruments import load_instruments
    registry = load_instruments()                          # bundled table
    registry = load_instruments(overrides="my_desk.json")  # plus overrides
    registry.lookup("MESZ5").tick_value  # -> Decimal("1.25")
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

import jsonschema

from fifo_core.contracts import InstrumentSpec
from fifo_core.instruments import InstrumentRegistry

logger = logging.getLogger("fifo.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml; fall back to CWD."""
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_INSTRUMENTS_PATH = _PROJECT_ROOT / "docs" / "config" / "instruments.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "instruments.schema.json"


class InstrumentConfigError(Exception):
    """Raised when instrument data loading or validation fails."""


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise InstrumentConfigError(f"Instrument file not found: {path}")
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise InstrumentConfigError(f"Instrument file is not valid JSON: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise InstrumentConfigError(f"Instrument file must hold a JSON object: {path}")
    return data


def _merge_by_prefix(base: list[dict[str, Any]], overrides: list[dict[str, Any]]) -> list[dict[str, Any]]:
    merged: dict[str, dict[str, Any]] = {}
    for entry in base:
        merged[str(entry.get("symbol_prefix", "")).upper()] = dict(entry)
    for entry in overrides:
        key = str(entry.get("symbol_prefix", "")).upper()
        merged[key] = {**merged.get(key, {}), **entry}
    return list(merged.values())


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    if not schema_path.exists():
        raise InstrumentConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise InstrumentConfigError(f"Instrument config validation failed: {exc.message}") from exc


def _dec(value: Any) -> Decimal | None:
    if value is None:
        return None
    # str() first so 0.1 stays 0.1 rather than its binary expansion.
    return Decimal(str(value))


def _build_spec(entry: dict[str, Any]) -> InstrumentSpec:
    try:
        return InstrumentSpec(
            symbol_prefix=entry["symbol_prefix"].upper(),
            multiplier=_dec(entry.get("multiplier")),
            tick_size=_dec(entry.get("tick_size")),
            tick_value=_dec(entry.get("tick_value")),
            description=entry.get("description", ""),
        )
    except ValueError as exc:
        raise InstrumentConfigError(str(exc)) from exc


def load_instruments(
    path: str | Path | None = None,
    schema_path: str | Path | None = None,
    overrides: str | Path | None = None,
) -> InstrumentRegistry:
    """Load and validate instrument reference data.

    Parameters
    ----------
    path:
        Instrument JSON file. Defaults to ``docs/config/instruments.default.json``.
    schema_path:
        JSON Schema file. Defaults to ``docs/config/instruments.schema.json``.
    overrides:
        Optional second file merged on top by ``symbol_prefix``.

    Raises
    ------
    InstrumentConfigError
        If a file is missing, unparseable, fails schema validation, or an entry
        carries neither a multiplier nor a tick pair.
    """
    cfg_path = Path(path) if path else DEFAULT_INSTRUMENTS_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    data = _read_json(cfg_path)
    if overrides is not None:
        extra = _read_json(Path(overrides))
        data = {
            **data,
            "instruments": _merge_by_prefix(data.get("instruments", []), extra.get("instruments", [])),
        }
        logger.info("Merged instrument overrides from %s", Path(overrides).name)

    _validate_schema(data, sch_path)

    specs = [_build_spec(entry) for entry in data["instruments"]]
    logger.debug("Loaded %d instruments from %s", len(specs), cfg_path)
    return InstrumentRegistry(specs)
