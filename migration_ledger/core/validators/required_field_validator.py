"""
RequiredFieldValidator - ensures a field is present and not N/A or blank.
"""

from typing import Any

from migration_ledger.core.models import is_absent

from .base_validator import BaseValidator, ValidationError


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field holds a value.

    Fails if the column was not found in the header, or the cell is empty,
    whitespace-only or the N/A sentinel.
    """

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if is_absent(value):
            message = self.parameters.get("message") or f"Missing {self.display_name}"
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message=message,
            )

    def coerce(self, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @property
    def rule_type(self) -> str:
        return "required_field"
