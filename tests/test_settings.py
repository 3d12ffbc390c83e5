"""Tests for environment-driven settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SettingsError

from ledgerfix.config import get_settings


def test_defaults(settings_env):
    settings = get_settings()
    assert settings.batch_size == 500
    assert settings.tolerance == Decimal("0.01")
    assert settings.debit_normal_partner_types == ["CUSTOMER"]
    assert settings.account_roles == {}
    assert settings.admin_pin is None


def test_partner_types_from_comma_list(settings_env):
    settings_env(debit_normal_partner_types="CUSTOMER, VENDOR")
    assert get_settings().debit_normal_partner_types == ["CUSTOMER", "VENDOR"]


def test_account_roles_from_json(settings_env):
    settings_env(account_roles='{"CAPITAL": "301", "OPENING_EQUITY": "305"}')
    assert get_settings().account_roles == {"CAPITAL": "301", "OPENING_EQUITY": "305"}


def test_admin_pin_is_secret(settings_env):
    settings_env(admin_pin="4321")
    settings = get_settings()
    assert settings.admin_pin.get_secret_value() == "4321"
    assert "4321" not in repr(settings)


def test_batch_size_cannot_exceed_store_ceiling(settings_env):
    settings_env(batch_size="600")
    with pytest.raises(SettingsError):
        get_settings()
