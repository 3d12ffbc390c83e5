"""Tests for the data reset."""

import pytest

from ledgerfix.database import collections
from ledgerfix.domain.errors import AuthorizationError, ValidationError
from ledgerfix.domain.reset import CONFIRMATION_PHRASE, ResetScope, ResetService


@pytest.fixture
def populated(chart):
    chart.append_batch(collections.LEDGER, [{"transactionId": "JV-1"}, {"transactionId": "JV-1"}])
    chart.append_batch(collections.PURCHASES, [{"id": "P1"}])
    chart.append_batch(collections.PARTNERS, [{"id": "CUS-1", "name": "Acme", "type": "CUSTOMER"}])
    return chart


def test_transactional_reset_keeps_setup_data(populated):
    result = ResetService(populated, "4321").reset(ResetScope.TRANSACTIONS, CONFIRMATION_PHRASE, "4321")

    assert result.success
    assert result.deleted[collections.LEDGER] == 2
    assert result.deleted[collections.PURCHASES] == 1
    assert result.total_deleted == 3
    assert populated.get_all(collections.LEDGER) == []
    assert len(populated.get_all(collections.PARTNERS)) == 1
    assert len(populated.get_all(collections.ACCOUNTS)) == 11


def test_complete_reset(populated):
    result = ResetService(populated, "4321").reset(ResetScope.COMPLETE, CONFIRMATION_PHRASE, "4321")
    assert result.total_deleted == 15
    assert populated.get_all(collections.ACCOUNTS) == []


def test_wrong_phrase(populated):
    with pytest.raises(ValidationError, match=CONFIRMATION_PHRASE):
        ResetService(populated, "4321").reset(ResetScope.TRANSACTIONS, "delete all", "4321")
    assert len(populated.get_all(collections.LEDGER)) == 2


def test_wrong_code(populated):
    with pytest.raises(AuthorizationError, match="Invalid authorization code"):
        ResetService(populated, "4321").reset(ResetScope.TRANSACTIONS, CONFIRMATION_PHRASE, "0000")
    assert len(populated.get_all(collections.LEDGER)) == 2


def test_no_code_configured(populated):
    with pytest.raises(AuthorizationError, match="No admin authorization code"):
        ResetService(populated, None).reset(ResetScope.TRANSACTIONS, CONFIRMATION_PHRASE, "")
