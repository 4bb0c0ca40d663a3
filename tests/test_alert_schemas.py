"""Tests for alert configuration validation (form rules enforced at construction)."""
import pytest
from pydantic import ValidationError

from conftest import NOW, make_config, make_tender
from tenderwatch.api.schemas.alert import (
    AdvancedFilters,
    AlertConfigurationCreate,
    AlertKeyword,
    EmailFrequency,
    EmailSettings,
    EstimatedValueFilter,
)
from tenderwatch.api.schemas.tender import TenderSnapshot
from tenderwatch.services.alert_engine import record_match


def _rule(**kwargs) -> dict:
    data = {"name": "Road works", "keywords": [{"term": "road", "matchType": "contains"}]}
    data.update(kwargs)
    return data


@pytest.mark.unit
class TestAlertRule:

    def test_defaults(self):
        rule = AlertConfigurationCreate.model_validate(_rule())
        assert rule.is_active is True
        assert rule.categories == ()
        assert rule.locations.is_empty()
        assert rule.estimated_value is None
        assert rule.email_settings.frequency == EmailFrequency.IMMEDIATE
        assert rule.email_settings.daily_summary_time == "09:00"

    def test_camel_case_and_snake_case_both_accepted(self):
        camel = AlertConfigurationCreate.model_validate(_rule(isActive=False))
        snake = AlertConfigurationCreate.model_validate(_rule(is_active=False))
        assert camel.is_active is False
        assert snake.is_active is False

    def test_dump_uses_camel_case(self):
        data = AlertConfigurationCreate.model_validate(_rule()).model_dump(by_alias=True)
        assert "emailSettings" in data
        assert data["keywords"][0]["matchType"] == "contains"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    def test_bad_name(self, name):
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(name=name))

    def test_name_is_stripped(self):
        assert AlertConfigurationCreate.model_validate(_rule(name="  Roads ")).name == "Roads"

    def test_description_max_length(self):
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(description="d" * 501))

    def test_keywords_required(self):
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(keywords=[]))

    def test_too_many_keywords(self):
        keywords = [{"term": f"kw{i}", "matchType": "contains"} for i in range(21)]
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(keywords=keywords))

    def test_too_many_categories(self):
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(categories=[f"c{i}" for i in range(11)]))

    def test_categories_deduplicated(self):
        rule = AlertConfigurationCreate.model_validate(_rule(categories=["Works", "works ", ""]))
        assert rule.categories == ("Works",)

    def test_unknown_organization_type(self):
        with pytest.raises(ValidationError):
            AlertConfigurationCreate.model_validate(_rule(organizationTypes=["municipal"]))


@pytest.mark.unit
class TestKeyword:

    def test_unknown_match_type(self):
        with pytest.raises(ValidationError):
            AlertKeyword(term="road", match_type="regex")

    def test_match_type_required(self):
        with pytest.raises(ValidationError):
            AlertKeyword.model_validate({"term": "road"})

    @pytest.mark.parametrize("term", ["", "  ", "t" * 51])
    def test_bad_term(self, term):
        with pytest.raises(ValidationError):
            AlertKeyword(term=term, match_type="exact")


@pytest.mark.unit
class TestValueAndDays:

    def test_min_greater_than_max(self):
        with pytest.raises(ValidationError):
            EstimatedValueFilter(min=500, max=100)

    def test_negative_bound(self):
        with pytest.raises(ValidationError):
            EstimatedValueFilter(min=-1)

    def test_unknown_currency(self):
        with pytest.raises(ValidationError):
            EstimatedValueFilter(min=1, currency="GBP")

    def test_equal_bounds_allowed(self):
        assert EstimatedValueFilter(min=100, max=100).has_bounds()

    def test_days_min_greater_than_max(self):
        with pytest.raises(ValidationError):
            AdvancedFilters(min_days_until_closing=10, max_days_until_closing=5)

    @pytest.mark.parametrize("days", [-1, 366])
    def test_days_out_of_range(self, days):
        with pytest.raises(ValidationError):
            AdvancedFilters(max_days_until_closing=days)

    def test_too_many_excludes(self):
        with pytest.raises(ValidationError):
            AdvancedFilters(exclude_keywords=[f"x{i}" for i in range(11)])

    def test_exclude_too_long(self):
        with pytest.raises(ValidationError):
            AdvancedFilters(exclude_keywords=["e" * 51])

    def test_blank_excludes_dropped(self):
        assert AdvancedFilters(exclude_keywords=["", " used ", "USED"]).exclude_keywords == ("used",)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            AdvancedFilters(included_statuses=["open"])


@pytest.mark.unit
class TestEmailSettings:

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            EmailSettings(custom_email="not-an-email")

    def test_empty_email_is_none(self):
        assert EmailSettings(custom_email="").custom_email is None

    @pytest.mark.parametrize("value", ["24:00", "9am", "12:60", ""])
    def test_invalid_time(self, value):
        with pytest.raises(ValidationError):
            EmailSettings(daily_summary_time=value)

    def test_time_normalized(self):
        settings = EmailSettings(daily_summary_time="7:05")
        assert settings.daily_summary_time == "07:05"
        assert settings.summary_hour_minute == (7, 5)

    def test_unknown_frequency(self):
        with pytest.raises(ValidationError):
            EmailSettings(frequency="monthly")


@pytest.mark.unit
class TestImmutability:

    def test_configuration_is_frozen(self):
        config = make_config()
        with pytest.raises(ValidationError):
            config.name = "changed"

    def test_nested_sections_are_frozen(self):
        config = make_config()
        with pytest.raises(ValidationError):
            config.stats.total_matches += 1
        with pytest.raises(ValidationError):
            config.email_settings.enabled = False
        with pytest.raises(ValidationError):
            config.advanced_filters.min_days_until_closing = 3
        with pytest.raises(ValidationError):
            config.keywords[0].term = "other"

    def test_list_fields_cannot_grow(self):
        config = make_config(categories=["Works"])
        with pytest.raises(AttributeError):
            config.keywords.append(config.keywords[0])
        with pytest.raises(AttributeError):
            config.categories.append("Goods")
        with pytest.raises(AttributeError):
            config.locations.provinces.append("Western")

    def test_recorded_match_shares_no_mutable_state(self):
        config = make_config()
        updated = record_match(config, make_tender(), email_sent=True, now=NOW)
        assert updated is not config
        assert config.stats.total_matches == 0
        assert updated.stats.total_matches == 1
        assert updated.stats.last_matched_at == NOW


@pytest.mark.unit
class TestTenderSnapshot:

    def test_accepts_portal_id_key(self):
        tender = TenderSnapshot.model_validate({"_id": "abc123", "title": "Roads"})
        assert tender.id == "abc123"

    def test_nested_accessors(self):
        tender = TenderSnapshot.model_validate({
            "id": "t1",
            "organization": {"type": "ngo"},
            "financials": {"estimatedValue": {"amount": 10, "currency": "USD"}},
        })
        assert tender.organization_type == "ngo"
        assert tender.estimated_amount == 10
        assert tender.closing_at is None
