"""
Pytest configuration and fixtures for migration-ledger tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Generator

import pytest
from openpyxl import Workbook
from testcontainers.postgres import PostgresContainer

from migration_ledger.warehouse.connection import DatabaseConnectionPool
from migration_ledger.warehouse.environment import Environment
from migration_ledger.warehouse.ledger import Warehouse
from migration_ledger.warehouse.schema_mgmt import SchemaManager


MARKER = "=Start Data Below="

WorkbookFactory = Callable[..., Path]


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full import and reconciliation flow"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session", autouse=True)
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)


# =======================
# SPREADSHEET FIXTURES
# =======================

@pytest.fixture(scope="function")
def make_workbook(tmp_path) -> WorkbookFactory:
    """
    Factory writing .xlsx files into tmp_path

    Usage:
        path = make_workbook([["AD Group", "System Account"], ["GRP1", "user1"]])

    By default a marker row is written above the given rows. Pass
    marker=False to leave it out, or preamble=[...] for rows above the marker.

    Returns:
        Callable returning the path of the written workbook
    """
    counter = {"n": 0}

    def _make(
        rows: Sequence[Sequence[Any]],
        marker: bool = True,
        preamble: Sequence[Sequence[Any]] = (),
        name: str | None = None,
    ) -> Path:
        counter["n"] += 1
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Export"
        for row in preamble:
            sheet.append(list(row))
        if marker:
            sheet.append([MARKER])
        for row in rows:
            sheet.append(list(row))
        path = tmp_path / (name or f"export_{counter['n']}.xlsx")
        workbook.save(path)
        return path

    return _make


@pytest.fixture(scope="session")
def identity_rows() -> list[list[Any]]:
    """AD group export: GRP1 grants App A, GRP2 grants App B"""
    return [
        ["AD Group", "System Account", "Application Name", "Application Suite", "OTAP", "Critical"],
        ["GRP1", "user1", "App A", "Suite1", "P", "Y"],
        ["GRP1", "user2", "App A", "Suite1", "P", "N"],
        ["GRP2", "user1", "App B", "Suite2", "A", "N"],
        ["GRP2", "user3", "App B", "Suite2", "P", "N"],
    ]


@pytest.fixture(scope="session")
def hr_rows() -> list[list[Any]]:
    return [
        ["System Account", "Department", "Job Role", "Division", "Leave Date", "EmpNo"],
        ["user1", "Finance", "Analyst", "East", None, "1001"],
        ["user2", "Finance", "Controller", "East", "01-01-2020", "1002"],
        ["user3", "IT", "Engineer", "West", None, "1003"],
    ]


@pytest.fixture(scope="session")
def package_rows() -> list[list[Any]]:
    return [
        ["Application Name", "Package Status", "Package Readiness Date"],
        ["App A", "Ready", "15-03-2024"],
        ["App B", "In Progress", None],
    ]


@pytest.fixture(scope="session")
def test_status_rows() -> list[list[Any]]:
    return [
        ["Application Name", "Test Status", "Test Date", "Test Result", "Comments"],
        ["App A", "PAT OK", "20-03-2024", "Passed", "All good"],
        ["App B", "Not Started", "01-04-2024", "Pending", None],
    ]


@pytest.fixture(scope="session")
def migration_rows() -> list[list[Any]]:
    return [
        ["AD Group", "Application Name", "In Scope/Out Scope Division", "Will Be", "Migration Platform"],
        ["GRP1", "App A", "In", "App B", "Citrix"],
        ["GRP2", "App B", "In", None, "Citrix"],
    ]


@pytest.fixture(scope="session")
def cluster_rows() -> list[list[Any]]:
    return [
        ["Department", "Department Simple", "Domain", "Migration Cluster", "Migration Cluster Readiness"],
        ["Finance", "FIN", "Corporate", "Cluster 1", "Planned"],
        ["IT", "IT", "Technology", "Cluster 2", "Executed"],
    ]


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips dependent tests when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_ledger",
        password="test_password",
        dbname="test_ledger",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available for PostgreSQL tests: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Connection pool against the test container

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_ledger",
        user="test_ledger",
        password="test_password",
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_environment(db_pool) -> Environment:
    """
    Recreate the test environment's tables before each test

    Returns:
        The clean Environment
    """
    SchemaManager(db_pool).reinitialize(Environment.TEST)
    return Environment.TEST


@pytest.fixture(scope="function")
def warehouse(db_pool, clean_environment) -> Warehouse:
    """Warehouse facade over a freshly reinitialized test environment"""
    return Warehouse(db_pool, environment=clean_environment)
