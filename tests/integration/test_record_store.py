"""
Integration tests for primitive record storage.

Runs against a PostgreSQL testcontainer; every test starts from a freshly
reinitialized test environment.
"""

import pytest
from datetime import date, datetime, timezone

from migration_ledger.core.models import DataKind, IdentityGroupRecord, PersonRecord

FIRST = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
SECOND = datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)


def identity(group: str, account: str, **fields) -> IdentityGroupRecord:
    return IdentityGroupRecord(identity_group=group, account_id=account, **fields)


@pytest.mark.integration
class TestRecordStore:
    """Tests for RecordStore against PostgreSQL"""

    def test_append_and_fetch_in_order(self, warehouse):
        """Test records come back in insertion order with their extra columns"""
        records = [
            identity("GRP2", "user9", application_name="App B", extra={"Owner": "Alice"}),
            identity("GRP1", "user1", application_name="App A"),
        ]

        written = warehouse.records.append(DataKind.IDENTITY_GROUP, records, batch_id="AD_1", imported_at=FIRST)

        fetched = warehouse.records.fetch_all(DataKind.IDENTITY_GROUP)
        assert written == 2
        assert [r.account_id for r in fetched] == ["user9", "user1"]
        assert fetched[0].extra == {"Owner": "Alice"}
        assert fetched[0].batch_id == "AD_1"
        assert fetched[0].imported_at == FIRST
        assert fetched[1].environment == "N/A"

    def test_appends_accumulate(self, warehouse):
        """Test a second batch adds to the first and is listed separately"""
        store = warehouse.records
        store.append(DataKind.HR, [PersonRecord(account_id="user1")], batch_id="HR_1", imported_at=FIRST)
        store.append(
            DataKind.HR,
            [PersonRecord(account_id="user1", leave_date=date(2024, 1, 1)), PersonRecord(account_id="user2")],
            batch_id="HR_2",
            imported_at=SECOND,
        )

        assert store.count(DataKind.HR) == 3
        assert store.latest_import(DataKind.HR) == SECOND
        assert [(b["batch_id"], b["records"]) for b in store.batches(DataKind.HR)] == [("HR_1", 1), ("HR_2", 2)]
        assert store.fetch_all(DataKind.HR)[1].leave_date == date(2024, 1, 1)

    def test_empty_table(self, warehouse):
        """Test an empty kind has no count and no latest import"""
        assert warehouse.records.count(DataKind.CLUSTER) == 0
        assert warehouse.records.latest_import(DataKind.CLUSTER) is None
        assert warehouse.records.append(DataKind.CLUSTER, []) == 0

    def test_append_requires_batch_stamp(self, warehouse):
        """Test records without a batch id are refused and nothing is written"""
        with pytest.raises(ValueError, match="batch_id and imported_at"):
            warehouse.records.append(DataKind.IDENTITY_GROUP, [identity("GRP1", "user1")])

        assert warehouse.records.count(DataKind.IDENTITY_GROUP) == 0

    def test_combined_is_not_a_record_table(self, warehouse):
        """Test combined records are refused by the primitive store"""
        with pytest.raises(ValueError, match="not stored in a record table"):
            warehouse.records.fetch_all(DataKind.COMBINED)

    def test_clear_only_touches_one_kind(self, warehouse):
        """Test clearing a kind leaves the other kinds"""
        warehouse.records.append(DataKind.IDENTITY_GROUP, [identity("GRP1", "user1")], "AD_1", FIRST)
        warehouse.records.append(DataKind.HR, [PersonRecord(account_id="user1")], "HR_1", FIRST)

        removed = warehouse.clear("AD")

        assert removed == 1
        assert warehouse.records.count(DataKind.IDENTITY_GROUP) == 0
        assert warehouse.records.count(DataKind.HR) == 1

    def test_snapshot_reads_every_kind(self, warehouse):
        """Test the snapshot holds each kind's records"""
        warehouse.records.append(DataKind.IDENTITY_GROUP, [identity("GRP1", "user1")], "AD_1", FIRST)
        warehouse.records.append(DataKind.HR, [PersonRecord(account_id="user1")], "HR_1", FIRST)

        snapshot = warehouse.records.snapshot()

        assert [r.account_id for r in snapshot.identity_groups] == ["user1"]
        assert [r.account_id for r in snapshot.persons] == ["user1"]
        assert snapshot.clusters == []
