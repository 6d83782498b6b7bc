"""
Unit Tests - Stats Model
"""
import pytest
from pydantic import ValidationError

from statshub.errors import CounterOverflowError
from statshub.stats.models import (
    INT64_MAX,
    INT64_MIN,
    MAX_DIMENSION_LENGTH,
    MAX_NAME_LENGTH,
    StatsBundle,
    StatsSubmission,
    add_counters,
)


class TestStatsBundle:
    """Tests for StatsBundle validation"""

    def test_missing_mappings_default_to_empty(self):
        """Test that omitted mappings are empty, not absent"""
        bundle = StatsBundle.model_validate_json('{"counter": {"clicks": 1}}')

        assert bundle.counter == {"clicks": 1}
        assert bundle.gauge == {}
        assert bundle.presence == {}

    def test_null_mapping_rejected(self):
        """Test that a null mapping is invalid"""
        with pytest.raises(ValidationError):
            StatsBundle.model_validate_json('{"counter": null}')

    def test_non_integer_values_rejected(self):
        """Test strict integer values"""
        with pytest.raises(ValidationError):
            StatsBundle.model_validate_json('{"gauge": {"battery": "80"}}')
        with pytest.raises(ValidationError):
            StatsBundle.model_validate_json('{"gauge": {"battery": 80.5}}')

    def test_values_outside_int64_rejected(self):
        """Test 64-bit range validation"""
        with pytest.raises(ValidationError):
            StatsBundle(counter={"big": INT64_MAX + 1})

    @pytest.mark.parametrize("kind", ["counter", "gauge", "presence"])
    def test_stat_names_fit_the_warehouse(self, kind):
        """Test stat names longer than the warehouse column are rejected"""
        StatsBundle(**{kind: {"s" * MAX_NAME_LENGTH: 1}})

        with pytest.raises(ValidationError):
            StatsBundle(**{kind: {"s" * (MAX_NAME_LENGTH + 1): 1}})

    def test_values_iterates_all_kinds(self):
        """Test (kind, stat, value) iteration"""
        bundle = StatsBundle(counter={"a": 1}, gauge={"b": 2}, presence={"online": 1})

        assert sorted(bundle.values()) == [
            ("counter", "a", 1),
            ("gauge", "b", 2),
            ("presence", "online", 1),
        ]
        assert not bundle.is_empty()
        assert StatsBundle().is_empty()


class TestStatsSubmission:
    """Tests for StatsSubmission"""

    def test_targets_user_only(self):
        """Test that a plain submission targets the user dimension"""
        submission = StatsSubmission(counter={"clicks": 1})

        assert submission.targets(42) == [("user", "42")]

    def test_country_code_shorthand(self):
        """Test legacy countryCode maps to the country dimension"""
        submission = StatsSubmission.model_validate_json(
            '{"countryCode": "es", "counter": {"clicks": 1}}'
        )

        assert submission.targets(7) == [("user", "7"), ("country", "ES")]

    def test_explicit_dims(self):
        """Test extra dimensions are targeted after the user"""
        submission = StatsSubmission.model_validate_json(
            '{"dims": {"fallback": "fb-1", "country": "DE"}}'
        )

        assert submission.targets(1) == [("user", "1"), ("country", "DE"), ("fallback", "fb-1")]

    def test_user_dimension_cannot_be_overridden(self):
        """Test that dims may not name the user dimension"""
        with pytest.raises(ValidationError):
            StatsSubmission.model_validate_json('{"dims": {"user": "99"}}')

    def test_dimension_name_with_separator_rejected(self):
        """Test that dimension names cannot contain ':'"""
        with pytest.raises(ValidationError):
            StatsSubmission.model_validate_json('{"dims": {"a:b": "x"}}')

    @pytest.mark.parametrize("body", [
        {"dims": {"d" * (MAX_DIMENSION_LENGTH + 1): "x"}},
        {"dims": {"fallback": "e" * (MAX_NAME_LENGTH + 1)}},
        {"countryCode": "c" * (MAX_NAME_LENGTH + 1)},
    ])
    def test_routing_names_fit_the_warehouse(self, body):
        """Test over-long dimension and entity names are rejected"""
        with pytest.raises(ValidationError):
            StatsSubmission.model_validate(body)

    def test_bundle_strips_routing_fields(self):
        """Test the bundle only carries stats"""
        submission = StatsSubmission(counter={"c": 1}, gauge={"g": 2}, dims={"country": "US"})

        assert submission.bundle() == StatsBundle(counter={"c": 1}, gauge={"g": 2})


class TestAddCounters:
    """Tests for counter merge"""

    def test_adds_to_existing_and_defaults_to_zero(self):
        """Test addition with missing names starting at 0"""
        result = add_counters({"clicks": 3, "other": 9}, {"clicks": 2, "new": 4})

        assert result == {"clicks": 5, "new": 4}

    def test_negative_increments_allowed(self):
        """Test decrements"""
        assert add_counters({"c": 5}, {"c": -7}) == {"c": -2}

    def test_sum_is_order_independent(self):
        """Test that any split of increments gives the same total"""
        increments = [3, -1, 7, 0, 12, 5]
        forward = {}
        backward = {}
        for delta in increments:
            forward.update(add_counters(forward, {"c": delta}))
        for delta in reversed(increments):
            backward.update(add_counters(backward, {"c": delta}))

        assert forward == backward == {"c": sum(increments)}

    def test_overflow_raises(self):
        """Test overflow is an error, not a wrap"""
        with pytest.raises(CounterOverflowError):
            add_counters({"c": INT64_MAX}, {"c": 1})
        with pytest.raises(CounterOverflowError):
            add_counters({"c": INT64_MIN}, {"c": -1})
