"""Tests for record validation."""

import pytest

from recordsync.core.config import ValidationRule
from recordsync.core.errors import ConfigurationError
from recordsync.core.types import ValidationType
from recordsync.sync.validation import RecordValidator, validate_record


def rule(field: str, type_: str, rule: str = "", message: str = "") -> ValidationRule:
    return ValidationRule(field=field, type=ValidationType(type_), rule=rule, message=message)


class TestRequired:
    """Tests for required rules."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values_fail(self, value: object) -> None:
        """None and empty strings are missing."""
        failures = validate_record({"sku": value}, [rule("sku", "required")])
        assert [f.field for f in failures] == ["sku"]

    def test_absent_field_fails(self) -> None:
        """A missing key is missing."""
        assert validate_record({}, [rule("sku", "required")])

    @pytest.mark.parametrize("value", [0, False, "x"])
    def test_falsy_values_pass(self, value: object) -> None:
        """Zero and False are present values."""
        assert validate_record({"sku": value}, [rule("sku", "required")]) == []

    def test_custom_message(self) -> None:
        """The configured message is reported."""
        failures = validate_record({}, [rule("sku", "required", message="SKU needed")])
        assert failures[0].message == "SKU needed"


class TestFormatAndRange:
    """Tests for format and range rules."""

    def test_format(self) -> None:
        """Format rules match the value as a string."""
        rules = [rule("email", "format", r"^[^@]+@[^@]+$")]
        assert validate_record({"email": "a@b.c"}, rules) == []
        assert validate_record({"email": "nope"}, rules)

    def test_format_skips_empty(self) -> None:
        """Missing values are left to required rules."""
        assert validate_record({}, [rule("email", "format", r"^x$")]) == []

    def test_range(self) -> None:
        """Range bounds are inclusive."""
        rules = [rule("price", "range", "0-100")]
        assert validate_record({"price": 0}, rules) == []
        assert validate_record({"price": 100}, rules) == []
        assert validate_record({"price": 100.01}, rules)
        assert validate_record({"price": -1}, rules)

    def test_range_ignores_non_numbers(self) -> None:
        """Non-numeric values pass range rules."""
        assert validate_record({"price": "cheap"}, [rule("price", "range", "0-1")]) == []

    def test_malformed_rules_rejected(self) -> None:
        """Invalid regexes and ranges are configuration errors."""
        with pytest.raises(ConfigurationError):
            rule("email", "format", "(")
        with pytest.raises(ConfigurationError):
            rule("price", "range", "10-1")
        with pytest.raises(ConfigurationError):
            rule("price", "range", "cheap")


class TestUniqueAndCustom:
    """Tests for stateful and custom rules."""

    def test_unique_within_run(self) -> None:
        """A value seen on an earlier valid record fails."""
        validator = RecordValidator([rule("sku", "unique")])
        assert validator.validate({"sku": "A"}) == []
        assert validator.validate({"sku": "B"}) == []
        assert validator.validate({"sku": "A"})

    def test_invalid_records_do_not_claim_values(self) -> None:
        """Values of rejected records stay available."""
        validator = RecordValidator([rule("sku", "unique"), rule("name", "required")])
        assert validator.validate({"sku": "A"})
        assert validator.validate({"sku": "A", "name": "x"}) == []

    def test_custom_validator(self) -> None:
        """Custom rules call the registered predicate with value and record."""
        validator = RecordValidator(
            [rule("stock", "custom", "non_negative")],
            {"non_negative": lambda value, record: value is None or value >= 0},
        )
        assert validator.validate({"stock": 3}) == []
        failures = validator.validate({"stock": -1})
        assert failures[0].message == "stock failed non_negative"

    def test_unknown_custom_rule_passes(self) -> None:
        """Unregistered custom rules pass and are listed."""
        validator = RecordValidator([rule("stock", "custom", "mystery")])
        assert validator.validate({"stock": -1}) == []
        assert validator.unknown_custom_rules() == ["mystery"]

    def test_failures_in_rule_order(self) -> None:
        """Every failing rule is reported, in order."""
        failures = validate_record(
            {"price": 500},
            [rule("sku", "required"), rule("price", "range", "0-100")],
        )
        assert [f.field for f in failures] == ["sku", "price"]
