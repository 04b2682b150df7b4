"""
Base validator interface for all validation rules.

All validators inherit from BaseValidator and implement validate(). Validators
that turn cell text into typed values also override coerce().
"""

from abc import ABC, abstractmethod
from typing import Any

from migration_ledger.core.models import CanonicalField


class ValidationError(Exception):
    """Raised when a validation rule fails."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


class BaseValidator(ABC):
    """
    Abstract base class for all validators.

    Each validator implements one rule type (required_field, date, choice).
    Values arrive as raw cell text; absent cells are the N/A sentinel.
    """

    def __init__(self, field_name: CanonicalField | str, parameters: dict[str, Any] | None = None):
        """
        Args:
            field_name: Canonical field to validate
            parameters: Rule-specific parameters (e.g. choices for a choice rule)
        """
        self.field = CanonicalField(field_name)
        self.field_name = self.field.value
        self.parameters = parameters or {}

    @property
    def display_name(self) -> str:
        return self.field.display_name

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate a value against this rule.

        Args:
            value: The raw cell text
            record: All raw field values of the row (for context-dependent rules)

        Raises:
            ValidationError: If validation fails
        """

    def coerce(self, value: Any) -> Any:
        """Typed value for a value that passed validate(); identity by default."""
        return value

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
