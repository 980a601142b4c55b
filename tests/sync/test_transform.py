"""Tests for the transformation engine."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from recordsync.core.config import SyncConfig
from recordsync.core.errors import TransformError
from recordsync.sync.transform import (
    DEFAULT_REGISTRY,
    TransformRegistry,
    transform_record,
    unknown_rules,
)


def config(mapping: list[dict], transformations: list[dict] | None = None) -> SyncConfig:
    return SyncConfig.from_dict({"mapping": mapping, "transformations": transformations or []})


class TestMapping:
    """Tests for field mapping."""

    def test_trim_mapping(self) -> None:
        """A trimmed source field lands in the target field."""
        cfg = config([{"source_field": "Name", "target_field": "name", "transformation": "trim"}])
        assert transform_record({"Name": "  Nike Air  "}, cfg) == {"name": "Nike Air"}

    def test_mappings_apply_in_order(self) -> None:
        """Later mappings to the same target overwrite earlier ones."""
        cfg = config(
            [
                {"source_field": "a", "target_field": "out"},
                {"source_field": "b", "target_field": "out"},
            ]
        )
        assert transform_record({"a": 1, "b": 2}, cfg) == {"out": 2}

    def test_missing_source_field_maps_to_none(self) -> None:
        """A missing source field without default yields None."""
        cfg = config([{"source_field": "missing", "target_field": "x"}])
        assert transform_record({}, cfg) == {"x": None}

    def test_default_only_for_none(self) -> None:
        """Defaults replace None but not falsy values."""
        cfg = config(
            [
                {"source_field": "a", "target_field": "a", "default_value": "fallback"},
                {"source_field": "b", "target_field": "b", "default_value": 99},
            ]
        )
        assert transform_record({"b": 0}, cfg) == {"a": "fallback", "b": 0}

    def test_explicit_null_default(self) -> None:
        """A configured None default is kept as None."""
        cfg = config([{"source_field": "a", "target_field": "a", "default_value": None}])
        assert transform_record({}, cfg) == {"a": None}

    def test_input_not_modified(self) -> None:
        """The raw record is left untouched."""
        record = {"Name": "  x  "}
        cfg = config([{"source_field": "Name", "target_field": "Name", "transformation": "trim"}])
        transform_record(record, cfg)
        assert record == {"Name": "  x  "}

    def test_unknown_rule_passes_value_through(self) -> None:
        """Unregistered rule names leave the value unchanged."""
        cfg = config([{"source_field": "a", "target_field": "a", "transformation": "titlecase"}])
        assert transform_record({"a": "nike air"}, cfg) == {"a": "nike air"}
        assert unknown_rules(cfg) == ["titlecase"]

    def test_identity_transform_is_idempotent(self) -> None:
        """Transforming twice with passthrough rules gives the same record."""
        cfg = config(
            [
                {"source_field": "name", "target_field": "name", "transformation": "trim"},
                {"source_field": "sku", "target_field": "sku", "transformation": "uppercase"},
                {"source_field": "price", "target_field": "price"},
            ]
        )
        record = {"name": "  Air Max ", "sku": "ab-1", "price": 10.5}
        once = transform_record(record, cfg)
        assert transform_record(once, cfg) == once


class TestPostTransformations:
    """Tests for post-mapping transformations."""

    def test_only_present_fields(self) -> None:
        """Transformations skip fields not produced by the mapping."""
        cfg = config(
            [{"source_field": "price", "target_field": "price"}],
            [
                {"field": "price", "type": "calculate", "rule": "multiply", "parameters": {"factor": 2}},
                {"field": "absent", "type": "format", "rule": "uppercase"},
            ],
        )
        assert transform_record({"price": 10}, cfg) == {"price": 20.0}

    def test_chain_in_order(self) -> None:
        """Transformations run in list order."""
        cfg = config(
            [{"source_field": "price", "target_field": "price"}],
            [
                {"field": "price", "type": "calculate", "rule": "add", "parameters": {"amount": 1}},
                {"field": "price", "type": "calculate", "rule": "multiply", "parameters": {"factor": 3}},
            ],
        )
        assert transform_record({"price": 1}, cfg) == {"price": 6.0}

    def test_lookup(self) -> None:
        """Lookup maps values through a table with a default."""
        cfg = config(
            [{"source_field": "c", "target_field": "c"}],
            [
                {
                    "field": "c",
                    "type": "lookup",
                    "rule": "lookup",
                    "parameters": {"table": {"1": "shoes"}, "default": "other"},
                }
            ],
        )
        assert transform_record({"c": 1}, cfg) == {"c": "shoes"}
        assert transform_record({"c": 7}, cfg) == {"c": "other"}


class TestBuiltinRules:
    """Tests for individual built-in rules."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(19.999, 20.0), (0.125, 0.13), (10, 10.0), (-1.005, -1.01), (2.5, 2.5)],
    )
    def test_currency_format_rounds_half_up(self, value: float, expected: float) -> None:
        """currency_format rounds to 2 decimals, half away from zero."""
        assert DEFAULT_REGISTRY.apply("currency_format", value) == expected

    def test_currency_format_ignores_non_numbers(self) -> None:
        """Non-numeric values pass through currency_format."""
        assert DEFAULT_REGISTRY.apply("currency_format", "abc") == "abc"
        assert DEFAULT_REGISTRY.apply("currency_format", True) is True

    def test_string_rules_ignore_non_strings(self) -> None:
        """String rules leave other types alone."""
        for rule in ("uppercase", "lowercase", "trim"):
            assert DEFAULT_REGISTRY.apply(rule, 5) == 5
            assert DEFAULT_REGISTRY.apply(rule, None) is None

    def test_date_format_inputs(self) -> None:
        """date_format normalizes all date-like inputs to ISO UTC."""
        expected = "2024-03-01T12:00:00+00:00"
        assert DEFAULT_REGISTRY.apply("date_format", datetime(2024, 3, 1, 12, 0)) == expected
        assert DEFAULT_REGISTRY.apply("date_format", "2024-03-01T12:00:00Z") == expected
        assert DEFAULT_REGISTRY.apply("date_format", "2024-03-01T14:00:00+02:00") == expected
        millis = int(datetime(2024, 3, 1, 12, 0, tzinfo=UTC).timestamp() * 1000)
        assert DEFAULT_REGISTRY.apply("date_format", millis) == expected
        assert DEFAULT_REGISTRY.apply("date_format", date(2024, 3, 1)) == "2024-03-01T00:00:00+00:00"

    def test_date_format_rejects_garbage(self) -> None:
        """Unparseable dates raise TransformError."""
        with pytest.raises(TransformError):
            DEFAULT_REGISTRY.apply("date_format", "not a date")

    def test_if_empty_and_round(self) -> None:
        """if_empty fills blanks and round honours digits."""
        assert DEFAULT_REGISTRY.apply("if_empty", "", {"value": "n/a"}) == "n/a"
        assert DEFAULT_REGISTRY.apply("if_empty", "x", {"value": "n/a"}) == "x"
        assert DEFAULT_REGISTRY.apply("round", 3.14159, {"digits": 2}) == 3.14


class TestRegistry:
    """Tests for TransformRegistry."""

    def test_register_custom_rule(self) -> None:
        """Custom rules are applied by name."""
        registry = TransformRegistry.with_builtins()
        registry.register("slugify", lambda v, p: str(v).lower().replace(" ", "-"))
        cfg = config([{"source_field": "n", "target_field": "slug", "transformation": "slugify"}])
        assert transform_record({"n": "Nike Air"}, cfg, registry) == {"slug": "nike-air"}
        assert unknown_rules(cfg, registry) == []

    def test_registries_are_independent(self) -> None:
        """Registering on one registry does not affect the default one."""
        registry = TransformRegistry.with_builtins()
        registry.register("custom", lambda v, p: v)
        assert not DEFAULT_REGISTRY.is_registered("custom")
        assert "trim" in registry.names()

    def test_unknown_rules_deduplicated(self) -> None:
        """Each unknown name is reported once, in first-seen order."""
        cfg = config(
            [
                {"source_field": "a", "target_field": "a", "transformation": "zzz"},
                {"source_field": "b", "target_field": "b", "transformation": "aaa"},
            ],
            [{"field": "a", "type": "format", "rule": "zzz"}],
        )
        assert unknown_rules(cfg) == ["zzz", "aaa"]
