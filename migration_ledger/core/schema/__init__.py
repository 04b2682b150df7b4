"""
Header synonym tables and worksheet header resolution.
"""

from .header_resolver import ColumnMap, HeaderResolver, find_marker, infer_kind, is_marker_row
from .synonyms import KEY_FIELDS, SYNONYMS, canonical_field, fields_for, normalize_header

__all__ = [
    "canonical_field",
    "ColumnMap",
    "fields_for",
    "find_marker",
    "HeaderResolver",
    "infer_kind",
    "is_marker_row",
    "KEY_FIELDS",
    "normalize_header",
    "SYNONYMS",
]
