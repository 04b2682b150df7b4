"""
Integration tests for environment isolation, switching and status.
"""

import pytest
from datetime import datetime, timezone

from migration_ledger.core.models import DataKind, PersonRecord
from migration_ledger.warehouse import Environment, EnvironmentManager, SchemaManager, TABLE_NAMES, Warehouse

STAMP = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def acceptance(db_pool):
    schemas = SchemaManager(db_pool)
    schemas.reinitialize(Environment.ACCEPTANCE)
    yield Warehouse(db_pool, environment=Environment.ACCEPTANCE)
    schemas.drop_schema(Environment.ACCEPTANCE)


@pytest.mark.integration
class TestEnvironments:
    """Tests for per-environment schemas"""

    def test_schema_has_every_table(self, db_pool, clean_environment):
        """Test a prepared environment holds one table per kind"""
        tables = SchemaManager(db_pool).list_tables(clean_environment)
        assert tables == sorted(TABLE_NAMES.values())

    def test_environments_are_isolated(self, warehouse, acceptance):
        """Test writes to one environment are invisible in another"""
        warehouse.records.append(DataKind.HR, [PersonRecord(account_id="user1")], "HR_1", STAMP)

        assert warehouse.records.count(DataKind.HR) == 1
        assert acceptance.records.count(DataKind.HR) == 0

    def test_reinitialize_empties_tables(self, warehouse):
        """Test reinitialize drops all records"""
        warehouse.records.append(DataKind.HR, [PersonRecord(account_id="user1")], "HR_1", STAMP)

        warehouse.reinitialize()

        assert warehouse.records.count(DataKind.HR) == 0

    def test_status_report(self, warehouse):
        """Test status lists every kind with counts and latest import"""
        warehouse.records.append(DataKind.HR, [PersonRecord(account_id="user1")], "HR_1", STAMP)

        status = warehouse.status()

        assert set(status) == {kind.value for kind in DataKind}
        assert status["hr"] == {"records": 1, "latest_import": STAMP}
        assert status["combined"] == {"records": 0, "latest_import": None}

    def test_switch_creates_target_schema(self, db_pool):
        """Test switching prepares the target environment"""
        schemas = SchemaManager(db_pool)
        schemas.drop_schema(Environment.DEVELOPMENT)
        manager = EnvironmentManager(schemas, initial=Environment.TEST)

        manager.switch("dev")

        assert manager.current is Environment.DEVELOPMENT
        assert schemas.schema_exists(Environment.DEVELOPMENT)
        schemas.drop_schema(Environment.DEVELOPMENT)
