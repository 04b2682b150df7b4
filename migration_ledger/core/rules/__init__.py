"""
Validation rule configuration and the record validator.
"""

from .rule_config import DEFAULT_RULES_PATH, RuleConfigBuilder, RuleConfigLoader, load_default_rules
from .rule_engine import RecordValidator

__all__ = [
    "DEFAULT_RULES_PATH",
    "load_default_rules",
    "RecordValidator",
    "RuleConfigBuilder",
    "RuleConfigLoader",
]
