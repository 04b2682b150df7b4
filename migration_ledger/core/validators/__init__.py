"""
Validators for spreadsheet rows.

Each validator implements a specific validation rule type.
"""

from .base_validator import BaseValidator, ValidationError
from .choice_validator import ChoiceValidator
from .date_validator import DateValidator, parse_date
from .required_field_validator import RequiredFieldValidator

__all__ = [
    "BaseValidator",
    "ChoiceValidator",
    "DateValidator",
    "parse_date",
    "RequiredFieldValidator",
    "ValidationError",
]
