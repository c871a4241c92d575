"""Unit tests for BaselineStore."""

import math

import pytest

from priceguard.baseline.store import BaselineStore, check_price


@pytest.fixture
def store() -> BaselineStore:
    """Create store with one supplier."""
    return BaselineStore({"Acme": {"Widget": 10.0, "Gadget": 4.5}})


class TestBaselineLookup:
    """Test baseline lookups."""

    def test_get_existing(self, store: BaselineStore) -> None:
        """Should return the stored price."""
        assert store.get("Acme", "Widget") == 10.0

    def test_get_absent_item(self, store: BaselineStore) -> None:
        """Absent item should return None, not raise."""
        assert store.get("Acme", "Sprocket") is None

    def test_get_absent_supplier(self, store: BaselineStore) -> None:
        """Absent supplier should return None."""
        assert store.get("Globex", "Widget") is None

    def test_keys_are_exact_strings(self, store: BaselineStore) -> None:
        """Case and whitespace variants are different items."""
        assert store.get("Acme", "widget") is None
        assert store.get("Acme", "Widget ") is None
        assert store.get("acme", "Widget") is None

    def test_contains(self, store: BaselineStore) -> None:
        """Should report presence of a pair."""
        assert store.contains("Acme", "Gadget") is True
        assert store.contains("Acme", "Sprocket") is False
        assert store.contains("Globex", "Gadget") is False


class TestBaselineSeeding:
    """Test first-sight seeding."""

    def test_seed_new_pair(self) -> None:
        """Should write the first observed price."""
        store = BaselineStore()

        assert store.seed_if_absent("Acme", "Widget", 10.0) is True
        assert store.get("Acme", "Widget") == 10.0

    def test_seed_never_overwrites(self, store: BaselineStore) -> None:
        """Should leave an existing baseline untouched."""
        assert store.seed_if_absent("Acme", "Widget", 12.0) is False
        assert store.get("Acme", "Widget") == 10.0

    def test_seed_same_item_other_supplier(self, store: BaselineStore) -> None:
        """Same item name at another supplier gets its own baseline."""
        assert store.seed_if_absent("Globex", "Widget", 7.0) is True
        assert store.get("Globex", "Widget") == 7.0
        assert store.get("Acme", "Widget") == 10.0

    def test_seed_keeps_negative_price(self) -> None:
        """Seeding records a credit note price as printed, sign included."""
        store = BaselineStore()

        assert store.seed_if_absent("Acme", "Refund", -5.0) is True
        assert store.get("Acme", "Refund") == -5.0
        with pytest.raises(ValueError):
            store.override("Acme", "Refund", -5.0)


class TestBaselineOverride:
    """Test manual overrides."""

    def test_override_replaces(self, store: BaselineStore) -> None:
        """Override should replace an existing baseline."""
        store.override("Acme", "Widget", 12.0)
        assert store.get("Acme", "Widget") == 12.0

    def test_override_creates(self) -> None:
        """At store level an override is an unconditional write."""
        store = BaselineStore()
        store.override("Acme", "Widget", 3.0)
        assert store.get("Acme", "Widget") == 3.0

    @pytest.mark.parametrize("price", [0, -1.0, math.inf, math.nan])
    def test_override_rejects_invalid_price(self, store: BaselineStore, price: float) -> None:
        """Non-positive and non-finite prices are rejected."""
        with pytest.raises(ValueError):
            store.override("Acme", "Widget", price)
        assert store.get("Acme", "Widget") == 10.0


class TestBaselineCopies:
    """Test snapshot and copy independence."""

    def test_snapshot_is_deep_copy(self, store: BaselineStore) -> None:
        """Mutating a snapshot must not affect the store."""
        snapshot = store.snapshot()
        snapshot["Acme"]["Widget"] = 99.0
        snapshot["Globex"] = {"Widget": 1.0}

        assert store.get("Acme", "Widget") == 10.0
        assert store.get("Globex", "Widget") is None

    def test_copy_is_independent(self, store: BaselineStore) -> None:
        """Changes to a copy must not leak into the original."""
        copy = store.copy()
        copy.override("Acme", "Widget", 11.0)
        copy.seed_if_absent("Acme", "Sprocket", 2.0)

        assert store.get("Acme", "Widget") == 10.0
        assert store.contains("Acme", "Sprocket") is False
        assert copy != store

    def test_constructor_copies_mapping(self) -> None:
        """Store must not alias the mapping it was built from."""
        source = {"Acme": {"Widget": 10.0}}
        store = BaselineStore.from_mapping(source)
        source["Acme"]["Widget"] = 1.0

        assert store.get("Acme", "Widget") == 10.0

    def test_entries_sorted(self, store: BaselineStore) -> None:
        """Entries should be sorted by supplier then item."""
        store.seed_if_absent("Aardvark Ltd", "Zinc", 1.0)

        entries = store.entries()

        assert [(e.supplier_name, e.item_name) for e in entries] == [
            ("Aardvark Ltd", "Zinc"),
            ("Acme", "Gadget"),
            ("Acme", "Widget"),
        ]
        assert len(store) == 3


def test_check_price_returns_float() -> None:
    """Test integer prices are accepted and returned as float."""
    assert check_price(5) == 5.0
    assert isinstance(check_price(5), float)
