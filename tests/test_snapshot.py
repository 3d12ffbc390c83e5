"""Tests for loading ledger snapshots."""

from ledgerfix.database import collections
from ledgerfix.domain.snapshot import load_snapshot


def test_unreadable_documents_are_skipped(chart, make_entry, insert_entries):
    chart.append_batch(collections.PARTNERS, [{"id": "X-1", "name": "Broken", "type": "ALIEN"}])
    insert_entries(chart, [make_entry("JV-1", "1100", debit="5"), make_entry("JV-1", "3000", credit="5")])

    snapshot = load_snapshot(chart)

    assert snapshot.skipped == ("partners/X-1",)
    assert snapshot.partners == ()
    assert len(snapshot.entries) == 2
    assert snapshot.account("1100").name == "Cash"
    assert snapshot.account("nope") is None


def test_factory_filter(temp_db, make_entry, insert_entries):
    temp_db.append_batch(
        collections.ACCOUNTS,
        [
            {"id": "1100", "name": "Cash", "type": "ASSET"},
            {"id": "1101", "name": "Cash F1", "type": "ASSET", "factoryId": "F1"},
            {"id": "1102", "name": "Cash F2", "type": "ASSET", "factoryId": "F2"},
        ],
    )
    temp_db.append_batch(collections.PARTNERS, [{"id": "CUS-1", "name": "Acme", "type": "CUSTOMER"}])
    insert_entries(
        temp_db,
        [
            make_entry("JV-1", "1101", debit="5", factory_id="F1"),
            make_entry("JV-2", "1102", debit="5", factory_id="F2"),
        ],
    )

    snapshot = load_snapshot(temp_db, factory_id="F1")

    assert snapshot.factory_id == "F1"
    assert [e.transaction_id for e in snapshot.entries] == ["JV-1"]
    assert [e.transaction_id for e in snapshot.balance_entries] == ["JV-1", "JV-2"]
    assert [a.id for a in snapshot.accounts] == ["1100", "1101"]
    assert [p.id for p in snapshot.partners] == ["CUS-1"]
    assert len(load_snapshot(temp_db).entries) == 2
