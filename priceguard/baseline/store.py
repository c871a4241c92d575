"""Reference price memory keyed by supplier and item name.

The first observed price for a (supplier, item) pair becomes its baseline
and every later price is judged against it. Automatic seeding never
overwrites an entry; only an explicit override moves a baseline.

Keys are matched as exact strings. "Widget" and "widget " are different
items.
"""

import math
from collections.abc import Mapping

from priceguard.ledger.models import BaselineEntry

BaselineMap = dict[str, dict[str, float]]


def check_price(price: float) -> float:
    """Return price as float if it can serve as a baseline.

    Raises:
        ValueError: If price is not a positive finite number
    """
    if not math.isfinite(price) or price <= 0:
        raise ValueError(f"Baseline price must be a positive number, got {price!r}")
    return float(price)


class BaselineStore:
    """Mapping of supplier name -> item name -> reference unit price."""

    def __init__(self, baselines: Mapping[str, Mapping[str, float]] | None = None) -> None:
        """Initialize store, optionally from an existing mapping.

        Args:
            baselines: Nested mapping to copy entries from
        """
        self._baselines: BaselineMap = {}
        if baselines:
            for supplier, items in baselines.items():
                self._baselines[supplier] = {name: float(price) for name, price in items.items()}

    @classmethod
    def from_mapping(cls, baselines: Mapping[str, Mapping[str, float]]) -> "BaselineStore":
        """Build a store from a nested mapping such as a loaded snapshot."""
        return cls(baselines)

    def get(self, supplier: str, item: str) -> float | None:
        """Look up the baseline for a pair. Absence is a valid answer."""
        return self._baselines.get(supplier, {}).get(item)

    def contains(self, supplier: str, item: str) -> bool:
        return item in self._baselines.get(supplier, {})

    def seed_if_absent(self, supplier: str, item: str, price: float) -> bool:
        """Record ``price`` as the baseline unless the pair already has one.

        The observed price is taken as printed. Unlike ``override`` there is
        no sign check, so a negative unit price on a credit note seeds a
        negative baseline.

        Returns:
            True if a new entry was written
        """
        items = self._baselines.setdefault(supplier, {})
        if item in items:
            return False
        items[item] = float(price)
        return True

    def override(self, supplier: str, item: str, price: float) -> None:
        """Unconditionally replace the baseline for a pair.

        Raises:
            ValueError: If price is not a positive finite number
        """
        self._baselines.setdefault(supplier, {})[item] = check_price(price)

    def snapshot(self) -> BaselineMap:
        """Return a deep copy safe to serialize or hand out."""
        return {supplier: dict(items) for supplier, items in self._baselines.items()}

    def copy(self) -> "BaselineStore":
        return BaselineStore(self._baselines)

    def entries(self) -> list[BaselineEntry]:
        """List every baseline sorted by supplier, then item."""
        return [
            BaselineEntry(supplier_name=supplier, item_name=name, unit_price=price)
            for supplier in sorted(self._baselines)
            for name, price in sorted(self._baselines[supplier].items())
        ]

    def __len__(self) -> int:
        return sum(len(items) for items in self._baselines.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaselineStore):
            return NotImplemented
        return self._baselines == other._baselines
