"""
ValidationResult model representing the outcome of validating one data row (ephemeral).
"""

from pydantic import BaseModel, Field, field_validator

from .records import SourceRecord


class ValidationResult(BaseModel):
    """
    Outcome of validating a row.

    Attributes:
        row_number: 1-based worksheet row
        passed: Overall validation status
        record: Typed record, set only when passed
        failed_rules: Names of error-severity rules that failed
        reasons: Human-readable failure messages, in rule order
        warnings: Messages of warning-severity rules that failed
    """

    row_number: int = Field(..., ge=1)
    passed: bool
    record: SourceRecord | None = None
    failed_rules: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("failed_rules")
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get("passed") and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v
