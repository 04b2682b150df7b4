"""
Named environments and switching between them.

Each environment is a separate PostgreSQL schema holding the full set of
ledger tables. Stores and services always receive their environment
explicitly; EnvironmentManager only tracks which one the caller uses next.
"""

import os
import threading
from enum import Enum

from migration_ledger.core.errors import UnknownEnvironmentError
from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    ACCEPTANCE = "acceptance"
    PRODUCTION = "production"

    @property
    def schema(self) -> str:
        """PostgreSQL schema holding this environment's tables."""
        return f"ledger_{self.value}"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, name: "str | Environment") -> "Environment":
        """
        Resolve an environment from its name or a common abbreviation.

        Raises:
            UnknownEnvironmentError: If the name matches no environment
        """
        if isinstance(name, Environment):
            return name
        needle = name.strip().lower()
        needle = _ALIASES.get(needle, needle)
        for env in cls:
            if env.value == needle:
                return env
        raise UnknownEnvironmentError(name, [env.value for env in cls])

    @classmethod
    def default(cls) -> "Environment":
        """Environment named by LEDGER_ENVIRONMENT, or development."""
        return cls.parse(os.getenv("LEDGER_ENVIRONMENT", cls.DEVELOPMENT.value))


_ALIASES = {
    "dev": "development",
    "o": "development",
    "tst": "test",
    "t": "test",
    "acc": "acceptance",
    "a": "acceptance",
    "prod": "production",
    "prd": "production",
    "p": "production",
}

# Single writer per environment: imports, rebuilds and maintenance take this lock
_WRITER_LOCKS = {env: threading.Lock() for env in Environment}


def writer_lock(environment: Environment) -> threading.Lock:
    return _WRITER_LOCKS[environment]


class EnvironmentManager:
    """
    Tracks the current environment and switches atomically.

    switch() creates or verifies the target schema in one transaction and
    only then makes it current. If that fails the previous environment stays
    current and the error propagates.
    """

    def __init__(self, schema_manager, initial: Environment | str | None = None):
        """
        Args:
            schema_manager: SchemaManager used to prepare environments
            initial: Starting environment (default: LEDGER_ENVIRONMENT or development)
        """
        self.schema_manager = schema_manager
        self._current = Environment.parse(initial) if initial is not None else Environment.default()
        self._lock = threading.Lock()

    @property
    def current(self) -> Environment:
        with self._lock:
            return self._current

    @staticmethod
    def available() -> list[Environment]:
        return list(Environment)

    def switch(self, target: Environment | str) -> Environment:
        """
        Make target the current environment.

        Raises:
            UnknownEnvironmentError: If target is not a known environment
            psycopg.Error: If the schema cannot be prepared
        """
        environment = Environment.parse(target)
        with self._lock:
            previous = self._current
            try:
                self.schema_manager.ensure_schema(environment)
            except Exception:
                logger.error(
                    f"Switch to {environment.label} failed; staying on {previous.label}",
                    extra={"environment": environment.value, "previous": previous.value},
                )
                raise
            self._current = environment

        logger.info(
            f"Switched environment to {environment.label}",
            extra={"environment": environment.value, "previous": previous.value},
        )
        return environment
