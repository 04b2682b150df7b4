"""
Unit tests for query field resolution, operator gating and SQL conditions.
"""

import pytest
from datetime import date

from migration_ledger.core.errors import InvalidQueryError
from migration_ledger.core.models import DataKind, FieldType
from migration_ledger.warehouse import OPERATORS_BY_TYPE, QueryFilter, QueryOperator, queryable_fields
from migration_ledger.warehouse.query import TRUE_VALUES, resolve_field


@pytest.mark.unit
class TestQueryOperator:
    """Tests for QueryOperator parsing"""

    def test_parse_variants(self):
        """Test values with underscores, dashes and case are accepted"""
        assert QueryOperator.parse("not_equals") is QueryOperator.NOT_EQUALS
        assert QueryOperator.parse("Is-Empty") is QueryOperator.IS_EMPTY
        assert QueryOperator.parse(QueryOperator.AFTER) is QueryOperator.AFTER

    def test_unknown_operator(self):
        """Test an unknown operator is an invalid query"""
        with pytest.raises(InvalidQueryError, match="Unknown operator"):
            QueryOperator.parse("roughly")

    def test_boolean_fields_only_compare(self):
        """Test boolean fields allow equality operators only"""
        assert OPERATORS_BY_TYPE[FieldType.BOOLEAN] == (QueryOperator.EQUALS, QueryOperator.NOT_EQUALS)
        assert QueryOperator.CONTAINS not in OPERATORS_BY_TYPE[FieldType.DATE]


@pytest.mark.unit
class TestQueryableFields:
    """Tests for field listing and resolution"""

    def test_field_types(self):
        """Test declared types of identity and combined columns"""
        identity = {f.column: f for f in queryable_fields(DataKind.IDENTITY_GROUP)}
        combined = {f.column: f for f in queryable_fields(DataKind.COMBINED)}

        assert identity["critical_flag"].field_type is FieldType.BOOLEAN
        assert identity["environment"].display_name == "OTAP"
        assert "batch_id" in identity
        assert "imported_at" not in identity
        assert combined["test_readiness_date"].field_type is FieldType.DATE
        assert combined["department"].field_type is FieldType.TEXT

    def test_resolve_by_display_or_column_name(self):
        """Test display names and column names resolve ignoring case and separators"""
        assert resolve_field(DataKind.IDENTITY_GROUP, "otap").column == "environment"
        assert resolve_field(DataKind.IDENTITY_GROUP, "System-Account").column == "account_id"
        assert resolve_field(DataKind.HR, "leave_date").column == "leave_date"
        assert resolve_field(DataKind.MIGRATION, "Application New").column == "new_application_name"

    def test_combined_suites_resolve_separately(self):
        """Test the identity suite and the migration suite have distinct display names"""
        assert resolve_field(DataKind.COMBINED, "Application Suite").column == "application_suite"
        assert resolve_field(DataKind.COMBINED, "Migration Suite").column == "suite"

    def test_combined_display_names_are_unique(self):
        """Test every combined field can be reached by its display name"""
        names = [f.display_name.lower() for f in queryable_fields(DataKind.COMBINED)]

        assert len(names) == len(set(names))

    def test_unknown_field(self):
        """Test a field of another kind is rejected"""
        with pytest.raises(InvalidQueryError, match="Unknown field 'Package Status' for HR data"):
            resolve_field(DataKind.HR, "Package Status")


@pytest.mark.unit
class TestQueryFilter:
    """Tests for QueryFilter validation and SQL conditions"""

    def test_date_value_parsed(self):
        """Test date values are converted before querying"""
        condition = QueryFilter.build("hr", "Leave Date", "before", "31-01-2024")

        assert condition.kind is DataKind.HR
        assert condition.value == date(2024, 1, 31)
        _, params = condition.to_sql()
        assert params == [date(2024, 1, 31)]

    def test_malformed_date(self):
        """Test an unparseable date is an invalid query"""
        with pytest.raises(InvalidQueryError, match="not a valid date"):
            QueryFilter.build(DataKind.HR, "leave_date", "after", "soon")

    def test_operator_not_allowed_for_type(self):
        """Test text operators are refused on dates and date operators on text"""
        with pytest.raises(InvalidQueryError, match="not allowed for date field 'Leave Date'"):
            QueryFilter.build(DataKind.HR, "Leave Date", "contains", "2024")
        with pytest.raises(InvalidQueryError, match="not allowed for text field"):
            QueryFilter.build(DataKind.HR, "Department", "before", "Finance")

    def test_value_required(self):
        """Test value operators need a non-blank value"""
        with pytest.raises(InvalidQueryError, match="requires a value"):
            QueryFilter.build(DataKind.HR, "Department", "contains", "  ")

    def test_empty_operators_take_no_value(self):
        """Test is empty ignores any value and has no parameters"""
        condition = QueryFilter.build(DataKind.HR, "Department", "is empty", "ignored")

        assert condition.value is None
        _, params = condition.to_sql()
        assert params == []

    def test_unknown_kind(self):
        """Test an unknown kind is an invalid query"""
        with pytest.raises(InvalidQueryError, match="Unknown data kind"):
            QueryFilter.build("payroll", "Department", "equals", "x")

    def test_boolean_values(self):
        """Test boolean text is converted and unknown text rejected"""
        condition = QueryFilter.build(DataKind.IDENTITY_GROUP, "Critical", "equals", "Yes")
        assert condition.value is True

        _, params = condition.to_sql()
        assert params == [list(TRUE_VALUES)]

        with pytest.raises(InvalidQueryError, match="not a boolean"):
            QueryFilter.build(DataKind.IDENTITY_GROUP, "Critical", "equals", "maybe")

    def test_like_patterns_are_escaped(self):
        """Test wildcard characters in values are matched literally"""
        contains = QueryFilter.build(DataKind.PACKAGE, "Application Name", "contains", "50%_off")
        starts = QueryFilter.build(DataKind.PACKAGE, "Application Name", "starts with", "App")
        ends = QueryFilter.build(DataKind.PACKAGE, "Application Name", "ends with", "A")

        assert contains.to_sql()[1] == ["%50\\%\\_off%"]
        assert starts.to_sql()[1] == ["App%"]
        assert ends.to_sql()[1] == ["%A"]

    def test_equals_keeps_trimmed_value(self):
        """Test text values are trimmed"""
        condition = QueryFilter.build(DataKind.PACKAGE, "Package Status", "equals", "  Ready ")
        assert condition.to_sql()[1] == ["Ready"]
