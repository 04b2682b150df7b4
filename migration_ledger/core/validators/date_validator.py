"""
DateValidator - parses day-first spreadsheet dates.
"""

from datetime import date, datetime
from typing import Any

from migration_ledger.core.models import is_absent

from .base_validator import BaseValidator, ValidationError

DATE_FORMATS = (
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%Y-%m-%d %H:%M:%S",
)


def parse_date(value: Any) -> date | None:
    """
    Parse a cell value as a date.

    Accepts date/datetime objects, dd-MM-yyyy, dd/MM/yyyy, dd.MM.yyyy,
    yyyy-MM-dd and ISO datetime text.

    Returns:
        The date, or None when the text matches no format
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


class DateValidator(BaseValidator):
    """
    Validates that a present value is a date.

    Absent values pass; pair with required_field when the date is mandatory.
    """

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if is_absent(value):
            return
        if parse_date(value) is None:
            raise ValidationError(
                rule_name="date",
                field_name=self.field_name,
                message=f"{self.display_name} '{value}' is not a valid date",
            )

    def coerce(self, value: Any) -> Any:
        if is_absent(value):
            return value
        return parse_date(value)

    @property
    def rule_type(self) -> str:
        return "date"
