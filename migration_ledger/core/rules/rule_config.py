"""
Rule configuration management.

Loads per-kind validation rules from YAML and provides a builder for
assembling rule sets in code.
"""

from pathlib import Path
from typing import Any

import yaml

from migration_ledger.core.models import CanonicalField, DataKind
from migration_ledger.core.schema import fields_for

DEFAULT_RULES_PATH = Path(__file__).with_name("validation_rules.yaml")

RuleSet = dict[DataKind, list[dict[str, Any]]]


class RuleConfigLoader:
    """
    Loads validation rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    kinds:
      hr:
        account_id:
          - type: required_field
        leave_date:
          - type: date
    ```
    """

    def __init__(self, config_path: str | Path = DEFAULT_RULES_PATH):
        """
        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self) -> RuleSet:
        """
        Load and parse validation rules from the YAML file.

        Returns:
            Rule dictionaries per data kind, suitable for RecordValidator

        Raises:
            ValueError: If the YAML is malformed, names an unknown kind, or names
                a field the kind's spreadsheets cannot contain
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "kinds" not in config:
            raise ValueError("Configuration file must contain 'kinds' section")

        rules: RuleSet = {}
        for kind_name, field_rules in config["kinds"].items():
            try:
                kind = DataKind(kind_name)
            except ValueError as e:
                raise ValueError(f"Unknown data kind '{kind_name}' in rule configuration") from e
            if not kind.importable:
                raise ValueError(f"Rules cannot be configured for {kind_name} data")

            allowed = set(fields_for(kind))
            kind_rules = rules.setdefault(kind, [])
            for field_name, field_rule_list in (field_rules or {}).items():
                try:
                    field = CanonicalField(field_name)
                except ValueError as e:
                    raise ValueError(f"Unknown field '{field_name}' for {kind_name} rules") from e
                if field not in allowed:
                    raise ValueError(f"Field '{field_name}' does not exist in {kind_name} data")
                if not isinstance(field_rule_list, list):
                    raise ValueError(f"Rules for field '{field_name}' must be a list")

                for idx, rule_def in enumerate(field_rule_list):
                    kind_rules.append(self._parse_rule(field, rule_def, idx))

        return rules

    def _parse_rule(self, field: CanonicalField, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single rule definition.

        Raises:
            ValueError: If rule definition is invalid
        """
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ValueError(f"Rule for field '{field.value}' is missing 'type'")

        rule_type = rule_def["type"]
        rule_name = rule_def.get("name", f"{field.value}_{rule_type}_{idx}")
        parameters = rule_def.get("params", rule_def.get("parameters", {}))

        severity = rule_def.get("severity", "error")
        if severity not in ("error", "warning"):
            raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field,
            "parameters": parameters,
            "severity": severity,
            "enabled": rule_def.get("enabled", True),
        }


def load_default_rules() -> RuleSet:
    return RuleConfigLoader(DEFAULT_RULES_PATH).load_rules()


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (for testing or dynamic rules).
    """

    def __init__(self):
        self.rules: RuleSet = {}

    def _add(self, kind: DataKind, field: CanonicalField, rule_type: str, parameters: dict, severity: str):
        self.rules.setdefault(kind, []).append({
            "rule_name": f"{field.value}_{rule_type}",
            "rule_type": rule_type,
            "field_name": field,
            "parameters": parameters,
            "severity": severity,
            "enabled": True,
        })
        return self

    def add_required_field(self, kind: DataKind, field: CanonicalField, message: str | None = None) -> "RuleConfigBuilder":
        params = {"message": message} if message else {}
        return self._add(kind, field, "required_field", params, "error")

    def add_date(self, kind: DataKind, field: CanonicalField) -> "RuleConfigBuilder":
        return self._add(kind, field, "date", {}, "error")

    def add_choice(
        self,
        kind: DataKind,
        field: CanonicalField,
        choices: list[str],
        normalize: str | None = None,
        severity: str = "warning",
    ) -> "RuleConfigBuilder":
        params: dict[str, Any] = {"choices": choices}
        if normalize:
            params["normalize"] = normalize
        return self._add(kind, field, "choice", params, severity)

    def build(self) -> RuleSet:
        return self.rules
