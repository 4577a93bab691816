"""
Instrument Registry: raw symbol -> InstrumentSpec by longest root prefix.

Read-only during matching. Unknown symbols resolve to a multiplier=1 default
spec flagged with ``is_default`` so callers can surface a warning.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from fifo_core.contracts import InstrumentSpec

logger = logging.getLogger("fifo.instruments")

# Futures month code followed by a 1-2 digit year, e.g. Z5, H25.
_CONTRACT_SUFFIX = re.compile(r"^(?P<root>[A-Z0-9]+?)[FGHJKMNQUVXZ]\d{1,2}$")
_MONTH_CODE = re.compile(r"^[FGHJKMNQUVXZ]\d{1,2}$")


def root_symbol(symbol: str) -> str:
    """Strip a contract-month/expiry suffix: ``ESZ5`` -> ``ES``.

    Symbols without a recognizable suffix (equities, spot FX) come back unchanged.
    """
    sym = symbol.strip().upper()
    m = _CONTRACT_SUFFIX.match(sym)
    if m:
        return m.group("root")
    return sym


class InstrumentRegistry:
    """Longest-prefix lookup over a fixed set of InstrumentSpecs."""

    def __init__(self, specs: Iterable[InstrumentSpec] = ()) -> None:
        by_prefix: dict[str, InstrumentSpec] = {}
        for spec in specs:
            key = spec.symbol_prefix.upper()
            if key in by_prefix:
                logger.debug("Instrument %s registered twice; last definition wins", key)
            by_prefix[key] = spec
        self._by_prefix = by_prefix
        # Longest first so "MES" is tried before "ES".
        self._prefixes = sorted(by_prefix, key=lambda p: (-len(p), p))

    def __len__(self) -> int:
        return len(self._by_prefix)

    def __contains__(self, prefix: str) -> bool:
        return prefix.upper() in self._by_prefix

    def __iter__(self):
        return iter(self._by_prefix[p] for p in sorted(self._by_prefix))

    def find(self, symbol: str) -> InstrumentSpec | None:
        """Registered spec for the root of *symbol*, or None.

        The root must match a prefix exactly, or be the longest prefix followed by
        nothing but a contract-month code. ``ESTC`` does not resolve to ``ES``.
        """
        sym = symbol.strip().upper()
        spec = self._by_prefix.get(root_symbol(sym))
        if spec is not None:
            return spec
        for prefix in self._prefixes:
            if sym.startswith(prefix) and _MONTH_CODE.match(sym[len(prefix):]):
                return self._by_prefix[prefix]
        return None

    def lookup(self, symbol: str) -> InstrumentSpec:
        """Resolve *symbol*; falls back to ``InstrumentSpec.default`` (multiplier 1)."""
        spec = self.find(symbol)
        if spec is not None:
            return spec
        return InstrumentSpec.default(root_symbol(symbol))

    @classmethod
    def coerce(cls, instruments: InstrumentRegistry | Iterable[InstrumentSpec] | None) -> InstrumentRegistry:
        if isinstance(instruments, InstrumentRegistry):
            return instruments
        return cls(instruments or ())
