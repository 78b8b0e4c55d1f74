"""
Settings testovi - podrazumevane vrednosti i prepisivanje iz baze.
"""
import pytest
from decimal import Decimal

from mlekohub.errors import BadRequestError
from mlekohub.models import SystemSetting
from mlekohub.services.settings_service import EngineSettings, load_settings, update_setting


class TestLoadSettings:

    def test_defaults_from_config(self, db):
        settings = load_settings()

        assert settings.adhoc_min_advance_days == 1
        assert settings.adhoc_max_advance_days == 30
        assert settings.adhoc_default_capacity == 50
        assert settings.adhoc_cancel_before_hours == 12
        assert settings.tax_percentage == Decimal('0')
        assert settings.max_pause_days == 30
        assert settings.bill_due_days == 10

    def test_wrapped_values(self, db):
        db.session.add(SystemSetting(key='adhoc_min_advance_days', value={'days': 2}, category='adhoc'))
        db.session.add(SystemSetting(key='adhoc_default_capacity', value={'capacity': 5}, category='adhoc'))
        db.session.add(SystemSetting(key='tax_percentage', value={'gst': '18'}, category='billing'))
        db.session.add(SystemSetting(key='max_pause_days', value=14, category='subscription'))
        db.session.flush()

        settings = load_settings()

        assert settings.adhoc_min_advance_days == 2
        assert settings.adhoc_default_capacity == 5
        assert settings.tax_percentage == Decimal('18')
        assert settings.max_pause_days == 14

    def test_invalid_stored_value_ignored(self, db):
        db.session.add(SystemSetting(key='bill_due_days', value={'days': 'soon'}, category='billing'))
        db.session.flush()

        assert load_settings().bill_due_days == 10

    def test_snapshot_is_immutable(self, db):
        settings = load_settings()
        with pytest.raises(Exception):
            settings.max_pause_days = 5
        assert isinstance(settings, EngineSettings)


class TestUpdateSetting:

    def test_creates_and_updates(self, db):
        update_setting('adhoc_cancel_before_hours', {'hours': 6})
        assert load_settings().adhoc_cancel_before_hours == 6

        update_setting('adhoc_cancel_before_hours', 24)
        assert SystemSetting.query.filter_by(key='adhoc_cancel_before_hours').count() == 1
        assert load_settings().adhoc_cancel_before_hours == 24

    def test_decimal_stored_as_string(self, db):
        setting = update_setting('tax_percentage', '5.5')
        assert setting.value == '5.5'
        assert setting.category == 'billing'

    def test_unknown_key(self, db):
        with pytest.raises(BadRequestError):
            update_setting('delivery_fee', 10)

    @pytest.mark.parametrize('value', [-1, 'abc', {'other': 3}])
    def test_invalid_value(self, db, value):
        with pytest.raises(BadRequestError):
            update_setting('max_pause_days', value)
