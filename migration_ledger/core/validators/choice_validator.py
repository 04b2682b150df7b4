"""
ChoiceValidator - checks a value against a fixed vocabulary.
"""

from typing import Any

from migration_ledger.core.models import is_absent

from .base_validator import BaseValidator, ValidationError


class ChoiceValidator(BaseValidator):
    """
    Validates that a present value is one of a set of choices.

    Comparison is case-insensitive. Usually configured with severity
    "warning" so unexpected codes are reported but kept.

    Parameters:
        choices: Accepted values
        normalize: "upper" or "lower" to rewrite the kept value (optional)
    """

    def __init__(self, field_name, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        choices = self.parameters.get("choices")
        if not choices:
            raise ValueError(f"Choice rule for '{self.field_name}' requires 'choices'")
        self.choices = [str(choice) for choice in choices]
        self._folded = {choice.strip().lower() for choice in self.choices}
        self.normalize = self.parameters.get("normalize")
        if self.normalize not in (None, "upper", "lower"):
            raise ValueError(f"Invalid normalize '{self.normalize}'. Must be 'upper' or 'lower'")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if is_absent(value):
            return
        if str(value).strip().lower() not in self._folded:
            raise ValidationError(
                rule_name="choice",
                field_name=self.field_name,
                message=(
                    f"{self.display_name} '{value}' is not one of "
                    f"{', '.join(self.choices)}"
                ),
            )

    def coerce(self, value: Any) -> Any:
        if is_absent(value) or self.normalize is None:
            return value
        text = str(value).strip()
        return text.upper() if self.normalize == "upper" else text.lower()

    @property
    def rule_type(self) -> str:
        return "choice"
