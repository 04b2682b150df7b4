"""
Record validator: applies the per-kind rule set to a worksheet row and
builds the typed record when the row passes.
"""

from typing import Any

from pydantic import ValidationError as ModelValidationError

from migration_ledger.core.models import (
    DATE_FIELDS,
    NOT_AVAILABLE,
    RECORD_TYPES,
    CanonicalField,
    DataKind,
    ValidationResult,
)
from migration_ledger.core.schema import fields_for
from migration_ledger.core.validators import (
    BaseValidator,
    ChoiceValidator,
    DateValidator,
    RequiredFieldValidator,
    ValidationError,
)
from migration_ledger.observability.metrics import record_validation_failure

from .rule_config import RuleSet, load_default_rules


class RecordValidator:
    """
    Orchestrates validation rules on spreadsheet rows.

    Rules run in configuration order per kind; every failing error-severity
    rule contributes one reason, so a row reports all of its problems at once.
    Date fields without an explicit date rule get one automatically.
    """

    VALIDATOR_REGISTRY: dict[str, type[BaseValidator]] = {
        "required_field": RequiredFieldValidator,
        "date": DateValidator,
        "choice": ChoiceValidator,
    }

    def __init__(self, rules: RuleSet | None = None):
        """
        Args:
            rules: Rule configurations per kind, each containing rule_name,
                   rule_type, field_name, parameters, severity and enabled.
                   Defaults to the packaged validation_rules.yaml.
        """
        self.rules = load_default_rules() if rules is None else rules
        self.validators: dict[DataKind, list[tuple[str, str, BaseValidator]]] = {}
        self._build_validators()

    def _build_validators(self) -> None:
        for kind in DataKind.importable_kinds():
            built: list[tuple[str, str, BaseValidator]] = []
            for rule in self.rules.get(kind, []):
                if not rule.get("enabled", True):
                    continue

                rule_name = rule["rule_name"]
                validator_class = self.VALIDATOR_REGISTRY.get(rule["rule_type"])
                if not validator_class:
                    raise ValueError(f"Unknown rule type: {rule['rule_type']}")

                try:
                    validator = validator_class(rule["field_name"], rule.get("parameters", {}))
                except ValueError as e:
                    raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e
                built.append((rule_name, rule.get("severity", "error"), validator))

            covered = {v.field for _, _, v in built if isinstance(v, DateValidator)}
            for field in fields_for(kind):
                if field in DATE_FIELDS and field not in covered:
                    built.append((f"{field.value}_date", "error", DateValidator(field)))

            self.validators[kind] = built

    def validate_row(
        self,
        kind: DataKind,
        row_number: int,
        raw: dict[CanonicalField, str],
        extra: dict[str, str] | None = None,
    ) -> ValidationResult:
        """
        Validate one row and build its record.

        Args:
            kind: Data kind being imported
            row_number: 1-based worksheet row number
            raw: Cell text per canonical field; missing columns may be omitted
            extra: Values of unmapped columns, kept on the record

        Returns:
            ValidationResult with the typed record when the row passed
        """
        values: dict[str, Any] = {
            field.value: raw.get(field, NOT_AVAILABLE) for field in fields_for(kind)
        }
        context = dict(values)
        failed_rules: list[str] = []
        reasons: list[str] = []
        warnings: list[str] = []

        for rule_name, severity, validator in self.validators.get(kind, []):
            value = values.get(validator.field_name, NOT_AVAILABLE)
            try:
                validator.validate(value, context)
            except ValidationError as e:
                if severity == "error":
                    failed_rules.append(rule_name)
                    reasons.append(e.message)
                    record_validation_failure(kind.value, validator.rule_type, validator.field_name)
                    continue
                warnings.append(e.message)
            values[validator.field_name] = validator.coerce(value)

        if failed_rules:
            return ValidationResult(
                row_number=row_number,
                passed=False,
                failed_rules=failed_rules,
                reasons=reasons,
                warnings=warnings,
            )

        payload = {**values, "extra": extra or {}, "row_number": row_number}
        try:
            record = RECORD_TYPES[kind].model_validate(payload)
        except ModelValidationError as e:
            return ValidationResult(
                row_number=row_number,
                passed=False,
                failed_rules=["model"],
                reasons=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                ],
                warnings=warnings,
            )

        return ValidationResult(row_number=row_number, passed=True, record=record, warnings=warnings)

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts per kind and per type
        """
        by_type: dict[str, int] = {}
        for entries in self.validators.values():
            for _, _, validator in entries:
                by_type[validator.rule_type] = by_type.get(validator.rule_type, 0) + 1
        return {
            "total_rules": sum(len(entries) for entries in self.validators.values()),
            "rules_by_kind": {kind.value: len(entries) for kind, entries in self.validators.items()},
            "rules_by_type": by_type,
        }
