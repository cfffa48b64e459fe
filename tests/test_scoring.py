"""Tests for field and correctness scoring (no API calls required)."""

import pytest
from src.core.models import FieldStatus, NormalizedProvider, RegistrySource, UserProviderData
from src.core.scoring import CorrectnessScorer, FieldScorer


def _registry_provider(**overrides):
    values = dict(
        name="John Smith",
        source=RegistrySource.US_NPI,
        npi_number="1234567893",
        phone="555-123-4567",
        address_line1="123 Main Street",
        city="Boston",
        state="MA",
        postal_code="02101",
        specialty="Cardiology",
    )
    values.update(overrides)
    return NormalizedProvider(**values)


class TestCharacterOverlap:
    """Tests for the bag-of-characters heuristic."""

    def test_identical(self):
        assert FieldScorer.character_overlap("boston", "boston") == 1.0

    def test_divides_by_longer_length(self):
        # all 3 of "abc" occur in "abcd"
        assert FieldScorer.character_overlap("abc", "abcd") == 0.75

    def test_symmetric_for_equal_lengths(self):
        assert FieldScorer.character_overlap("abcz", "abcd") == FieldScorer.character_overlap("abcd", "abcz")

    def test_both_empty(self):
        assert FieldScorer.character_overlap("", "") == 1.0


class TestScoreField:
    """Tests for the 0 / 0.5 / 1 field ladder."""

    def test_formatted_phones_match(self):
        assert FieldScorer.score_field("(555) 123-4567", "555-123-4567", is_phone=True) == 1

    def test_abbreviated_street_is_partial(self):
        assert FieldScorer.score_field("123 Main St", "123 Main Street") == 0.5

    def test_case_and_whitespace_insensitive(self):
        assert FieldScorer.score_field("  BOSTON ", "boston") == 1

    def test_overlap_above_threshold_is_partial(self):
        # "cardiologys" vs "cardiologist": no substring, high overlap
        assert FieldScorer.score_field("Cardiologys", "Cardiologist") == 0.5

    def test_unrelated_values_mismatch(self):
        assert FieldScorer.score_field("Boston", "Chicago") == 0

    @pytest.mark.parametrize("user,registry", [
        ("", "Boston"),
        ("Boston", ""),
        (None, None),
        ("", ""),
    ])
    def test_missing_data_never_matches(self, user, registry):
        assert FieldScorer.score_field(user, registry) == 0

    @pytest.mark.parametrize("a,b,is_phone", [
        ("123 Main St", "123 Main Street", False),
        ("(555) 123-4567", "555.123.4567", True),
        ("abcz", "abcd", False),
        ("Dr. Asha Rao", "Asha Rao", False),
    ])
    def test_symmetric(self, a, b, is_phone):
        assert FieldScorer.score_field(a, b, is_phone) == FieldScorer.score_field(b, a, is_phone)

    @pytest.mark.parametrize("value", ["Boston", "123 Main St", "x"])
    def test_reflexive(self, value):
        assert FieldScorer.score_field(value, value) == 1

    def test_phone_normalization_only_for_phone_fields(self):
        assert FieldScorer.score_field("555-1234", "5551234", is_phone=True) == 1
        assert FieldScorer.score_field("555-1234", "5551234") != 1


class TestFieldStatus:
    """Tests for status classification."""

    @pytest.mark.parametrize("score,status", [
        (1, FieldStatus.MATCH),
        (0.5, FieldStatus.PARTIAL),
        (0, FieldStatus.MISMATCH),
    ])
    def test_from_score(self, score, status):
        assert FieldStatus.from_score(score) == status


class TestCorrectnessScorer:
    """Tests for the weighted roll-up."""

    def test_all_fields_match(self):
        user = UserProviderData(
            name="john smith",
            phone="(555) 123-4567",
            address_line1="123 main street",
            city="Boston",
            state="MA",
            postal_code="02101",
            specialty="Cardiology",
        )
        overall, fields = CorrectnessScorer.score(user, _registry_provider())

        assert overall == 100
        assert all(fs.status == FieldStatus.MATCH for fs in fields.values())

    def test_empty_user_data_scores_zero(self):
        overall, fields = CorrectnessScorer.score(UserProviderData(), _registry_provider())

        assert overall == 0
        assert set(fields) == set(CorrectnessScorer.FIELD_WEIGHTS)
        assert fields["city"].user_value == ""
        assert fields["city"].registry_value == "Boston"

    def test_name_and_phone_only(self):
        user = UserProviderData(name="John Smith", phone="(555) 123-4567")
        overall, _ = CorrectnessScorer.score(user, _registry_provider())

        # (2 + 1.5) / 9
        assert overall == 39

    def test_rounds_to_nearest(self):
        user = UserProviderData(state="MA")
        overall, _ = CorrectnessScorer.score(user, _registry_provider())
        # 1 / 9
        assert overall == 11

    def test_exact_half_percent_rounds_up(self, monkeypatch):
        monkeypatch.setattr(CorrectnessScorer, "FIELD_WEIGHTS", {"city": 1, "state": 1, "name": 2})
        user = UserProviderData(city="Boston", state="NY", name="Jon")
        registry = _registry_provider(state="NJ", name="Jane Doe")
        overall, _ = CorrectnessScorer.score(user, registry)
        assert overall == 25

        monkeypatch.setattr(CorrectnessScorer, "FIELD_WEIGHTS", {"city": 1, "state": 1, "name": 2, "phone": 4})
        # 1 / 8 = 12.5
        overall, _ = CorrectnessScorer.score(user, registry)
        assert overall == 13

    def test_accepts_mappings(self):
        overall, fields = CorrectnessScorer.score(
            {"city": "boston"},
            {"city": "Boston", "state": "MA"},
        )
        assert fields["city"].score == 1
        assert fields["state"].score == 0
        assert overall == 11

    def test_field_score_wire_form(self):
        _, fields = CorrectnessScorer.score(UserProviderData(address_line1="123 Main St"), _registry_provider())
        assert fields["address_line1"].to_dict() == {
            "score": 0.5,
            "userValue": "123 Main St",
            "registryValue": "123 Main Street",
            "status": "partial",
        }

    def test_bounds(self):
        user = UserProviderData(name="Someone Else", city="Chicago")
        overall, _ = CorrectnessScorer.score(user, _registry_provider())
        assert 0 <= overall <= 100
