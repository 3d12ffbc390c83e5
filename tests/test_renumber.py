"""Tests for entity id renumbering."""

import pytest

from ledgerfix.database import collections
from ledgerfix.domain.errors import ValidationError
from ledgerfix.domain.renumber import RENUMBER_KINDS, build_mapping, get_kind


@pytest.fixture
def divisions(temp_db):
    temp_db.append_batch(
        collections.DIVISIONS,
        [
            {"id": "abc", "name": "North"},
            {"id": "xyz", "name": "East"},
            {"id": "DIV-1003", "name": "West"},
        ],
    )
    temp_db.append_batch(
        collections.SUB_DIVISIONS,
        [{"id": "SDIV-1001", "name": "North Retail", "divisionId": "abc"}],
    )
    temp_db.append_batch(
        collections.PARTNERS,
        [
            {"id": "CUS-1", "name": "Acme", "type": "CUSTOMER", "divisionId": "xyz"},
            {"id": "CUS-2", "name": "Beta", "type": "CUSTOMER", "divisionId": "DIV-1003"},
        ],
    )
    temp_db.append_batch(
        collections.SALES_INVOICES,
        [{"id": "si-1", "invoiceNo": "1", "date": "2024-01-01", "divisionId": "abc"}],
    )
    return temp_db


def references(store, old_ids):
    """Every reference field, across every kind, that still names one of ``old_ids``."""
    stale = []
    for kind in RENUMBER_KINDS.values():
        for collection, field_name in kind.references:
            for doc in store.get_all(collection):
                if doc.get(field_name) in old_ids:
                    stale.append((collection, doc["id"], field_name))
    return stale


def test_mapping_is_sorted_by_name_after_highest_number():
    docs = [{"id": "abc", "name": "North"}, {"id": "xyz", "name": "East"}, {"id": "DIV-1003", "name": "West"}]
    assert build_mapping(get_kind("divisions"), docs) == {"xyz": "DIV-1004", "abc": "DIV-1005"}


def test_mapping_starts_at_configured_number():
    docs = [{"id": "a", "name": "A"}]
    assert build_mapping(get_kind("sections"), docs, start=7) == {"a": "SEC-0007"}


def test_renumber_cascades_to_every_reference(divisions, renumber_service):
    result = renumber_service.renumber("divisions")

    assert result.success
    assert result.mapping == {"xyz": "DIV-1004", "abc": "DIV-1005"}
    assert result.created == 2
    assert result.deleted == 2
    assert result.references_updated == 3

    assert sorted(doc["id"] for doc in divisions.get_all(collections.DIVISIONS)) == [
        "DIV-1003",
        "DIV-1004",
        "DIV-1005",
    ]
    north = divisions.get(collections.DIVISIONS, "DIV-1005")
    assert north["name"] == "North"
    assert north["previousId"] == "abc"
    assert north["updatedAt"]

    assert references(divisions, {"abc", "xyz"}) == []
    assert divisions.get(collections.SUB_DIVISIONS, "SDIV-1001")["divisionId"] == "DIV-1005"
    assert divisions.get(collections.PARTNERS, "CUS-1")["divisionId"] == "DIV-1004"
    assert divisions.get(collections.PARTNERS, "CUS-2")["divisionId"] == "DIV-1003"
    assert divisions.get(collections.SALES_INVOICES, "si-1")["divisionId"] == "DIV-1005"


def test_dry_run_writes_nothing(divisions, renumber_service):
    result = renumber_service.renumber("divisions", dry_run=True)
    assert result.dry_run
    assert len(result.mapping) == 2
    assert result.created == 0
    assert divisions.get(collections.DIVISIONS, "abc") is not None
    assert divisions.get(collections.PARTNERS, "CUS-1")["divisionId"] == "xyz"


def test_rerun_after_interrupted_run_reuses_copies(divisions, renumber_service):
    # Copy phase of an earlier run got as far as one document
    divisions.append_batch(collections.DIVISIONS, [{"id": "DIV-1004", "name": "East", "previousId": "xyz"}])

    result = renumber_service.renumber("divisions")

    assert result.mapping == {"xyz": "DIV-1004", "abc": "DIV-1005"}
    assert result.created == 1
    assert references(divisions, {"abc", "xyz"}) == []
    assert len(divisions.get_all(collections.DIVISIONS)) == 3


def test_nothing_to_renumber(temp_db, renumber_service):
    temp_db.append_batch(collections.CATEGORIES, [{"id": "CAT-1001", "name": "Bales"}])
    result = renumber_service.renumber("categories")
    assert result.mapping == {}
    assert renumber_service.renumber("categories").created == 0


def test_categories_rewrite_item_references(temp_db, renumber_service):
    temp_db.append_batch(collections.CATEGORIES, [{"id": "c-old", "name": "Bales"}])
    temp_db.append_batch(collections.ITEMS, [{"id": "ITM-1", "name": "Bale", "category": "c-old"}])

    renumber_service.renumber("categories")

    assert temp_db.get(collections.ITEMS, "ITM-1")["category"] == "CAT-1001"


def test_unknown_kind():
    assert get_kind("sub_divisions").prefix == "SDIV"
    with pytest.raises(ValidationError, match="Unknown entity kind"):
        get_kind("warehouses")
