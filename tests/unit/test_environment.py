"""
Unit tests for environments and environment switching.
"""

import pytest

from migration_ledger.core.errors import UnknownEnvironmentError
from migration_ledger.warehouse import Environment, EnvironmentManager, writer_lock


class RecordingSchemaManager:
    """Schema manager stand-in that records prepared environments."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.prepared = []

    def ensure_schema(self, environment):
        if environment in self.failing:
            raise RuntimeError(f"cannot prepare {environment.value}")
        self.prepared.append(environment)


@pytest.mark.unit
class TestEnvironment:
    """Tests for Environment"""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("development", Environment.DEVELOPMENT),
            ("DEV", Environment.DEVELOPMENT),
            ("tst", Environment.TEST),
            (" Acceptance ", Environment.ACCEPTANCE),
            ("p", Environment.PRODUCTION),
            ("prod", Environment.PRODUCTION),
        ],
    )
    def test_parse_names_and_aliases(self, name, expected):
        """Test full names and abbreviations resolve"""
        assert Environment.parse(name) is expected

    def test_unknown_environment(self):
        """Test an unknown name lists the known environments"""
        with pytest.raises(UnknownEnvironmentError, match="Expected one of: development, test"):
            Environment.parse("staging")

    def test_schema_names(self):
        """Test every environment has its own schema"""
        schemas = {env.schema for env in Environment}

        assert Environment.TEST.schema == "ledger_test"
        assert len(schemas) == len(Environment)

    def test_default_from_environment_variable(self, monkeypatch):
        """Test LEDGER_ENVIRONMENT selects the default"""
        monkeypatch.setenv("LEDGER_ENVIRONMENT", "acc")
        assert Environment.default() is Environment.ACCEPTANCE

        monkeypatch.delenv("LEDGER_ENVIRONMENT")
        assert Environment.default() is Environment.DEVELOPMENT

    def test_one_writer_lock_per_environment(self):
        """Test the same lock is handed out for the same environment"""
        assert writer_lock(Environment.TEST) is writer_lock(Environment.TEST)
        assert writer_lock(Environment.TEST) is not writer_lock(Environment.PRODUCTION)


@pytest.mark.unit
class TestEnvironmentManager:
    """Tests for EnvironmentManager"""

    def test_switch_prepares_schema_first(self):
        """Test switching prepares the target and makes it current"""
        schemas = RecordingSchemaManager()
        manager = EnvironmentManager(schemas, initial="dev")

        result = manager.switch("acceptance")

        assert result is Environment.ACCEPTANCE
        assert manager.current is Environment.ACCEPTANCE
        assert schemas.prepared == [Environment.ACCEPTANCE]

    def test_failed_switch_keeps_previous(self):
        """Test a failing schema preparation leaves the current environment"""
        manager = EnvironmentManager(RecordingSchemaManager(failing=[Environment.PRODUCTION]), initial="test")

        with pytest.raises(RuntimeError, match="cannot prepare production"):
            manager.switch("production")

        assert manager.current is Environment.TEST

    def test_unknown_target(self):
        """Test switching to an unknown name changes nothing"""
        schemas = RecordingSchemaManager()
        manager = EnvironmentManager(schemas, initial=Environment.TEST)

        with pytest.raises(UnknownEnvironmentError):
            manager.switch("staging")

        assert manager.current is Environment.TEST
        assert schemas.prepared == []

    def test_available(self):
        """Test all environments are offered"""
        assert EnvironmentManager.available() == list(Environment)
