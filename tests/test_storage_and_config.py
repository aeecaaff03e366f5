"""Tests for bounded storage and configuration."""

import threading

import pytest

from repair_agent.config import DEFAULT_CONFIG, RepairConfig, merge_config
from repair_agent.models import AnalyzeOptions
from repair_agent.tools import BoundedStore


class TestBoundedStore:
    """Tests for BoundedStore."""

    def test_evicts_least_recently_used(self):
        """Given a full store, writing should evict the entry read least recently."""
        # Given
        store = BoundedStore(2)
        store.set("a", 1)
        store.set("b", 2)
        store.get("a")

        # When
        store.set("c", 3)

        # Then
        assert "b" not in store
        assert store.snapshot() == {"a": 1, "c": 3}

    def test_update_and_increment(self):
        """Given update and increment, should apply them to the stored value."""
        # Given
        store = BoundedStore(10)

        # When
        store.increment("hits")
        store.increment("hits", 2)
        store.update("names", lambda old: (old or []) + ["x"])

        # Then
        assert store.get("hits") == 3
        assert store.get("names") == ["x"]

    def test_delete_and_clear(self):
        """Given stored entries, delete and clear should remove them."""
        # Given
        store = BoundedStore(10)
        store.set("a", 1)
        store.set("b", 2)

        # When / Then
        assert store.delete("a") is True
        assert store.delete("a") is False
        store.clear()
        assert len(store) == 0
        assert store.get("b", "missing") == "missing"

    def test_increments_are_atomic_across_threads(self):
        """Given concurrent increments, none should be lost."""
        # Given
        store = BoundedStore(10)

        def work():
            for _ in range(1000):
                store.increment("n")

        threads = [threading.Thread(target=work) for _ in range(4)]

        # When
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Then
        assert store.get("n") == 4000

    def test_rejects_zero_capacity(self):
        """Given a capacity below 1, should raise ValueError."""
        # When / Then
        with pytest.raises(ValueError):
            BoundedStore(0)


class TestRepairConfig:
    """Tests for RepairConfig and merge_config."""

    def test_defaults(self):
        """Given no arguments, should use the documented defaults."""
        # Then
        assert DEFAULT_CONFIG.max_retries == 3
        assert DEFAULT_CONFIG.auto_format is True
        assert DEFAULT_CONFIG.strict_mode is False
        assert DEFAULT_CONFIG.enable_learning is True
        assert len(DEFAULT_CONFIG.fix_strategies) == 5

    @pytest.mark.parametrize("kwargs,error", [
        ({"max_retries": 0}, ValueError),
        ({"max_retries": "3"}, TypeError),
        ({"max_retries": True}, TypeError),
        ({"fix_strategies": ["syntax-targeted"]}, ValueError),
    ])
    def test_rejects_invalid_values(self, kwargs, error):
        """Given an invalid field, should raise."""
        # When / Then
        with pytest.raises(error):
            RepairConfig(**kwargs)

    def test_merge_replaces_only_given_fields(self):
        """Given a partial override, should return a new config and leave the original alone."""
        # Given
        config = RepairConfig()

        # When
        merged = merge_config(config, strict_mode=True)

        # Then
        assert merged.strict_mode is True
        assert config.strict_mode is False
        assert merged.max_retries == 3

    def test_merge_rejects_unknown_keys(self):
        """Given an unknown key, should raise ValueError naming it."""
        # When / Then
        with pytest.raises(ValueError, match="retries"):
            merge_config(RepairConfig(), retries=2)


class TestAnalyzeOptions:
    """Tests for AnalyzeOptions validation."""

    def test_rejects_non_string_language(self):
        """Given a non-string language, should raise TypeError."""
        # When / Then
        with pytest.raises(TypeError):
            AnalyzeOptions(language=5)

    def test_rejects_non_bool_multi_file(self):
        """Given a non-bool multi-file flag, should raise TypeError."""
        # When / Then
        with pytest.raises(TypeError):
            AnalyzeOptions(is_multi_file="yes")
