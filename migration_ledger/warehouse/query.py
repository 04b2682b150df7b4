"""
Field/operator queries over record and combined tables.

Each queryable field has a declared type (text, date or boolean) and only the
operators allowed for that type are accepted. Text comparisons ignore case.
"""

from datetime import date
from enum import Enum
from typing import Any

from psycopg import sql
from pydantic import BaseModel

from migration_ledger.core.errors import InvalidQueryError
from migration_ledger.core.models import (
    DATE_FIELDS,
    CanonicalField,
    DataKind,
    FieldType,
    SourceRecord,
    CombinedRecord,
)
from migration_ledger.core.schema import normalize_header
from migration_ledger.core.validators import parse_date
from migration_ledger.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .environment import Environment
from .schema_mgmt import model_for, table_identifier

logger = get_logger(__name__)


class QueryOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not contains"
    STARTS_WITH = "starts with"
    ENDS_WITH = "ends with"
    IS_EMPTY = "is empty"
    IS_NOT_EMPTY = "is not empty"
    BEFORE = "before"
    AFTER = "after"

    @classmethod
    def parse(cls, value: "str | QueryOperator") -> "QueryOperator":
        if isinstance(value, QueryOperator):
            return value
        needle = " ".join(value.strip().lower().replace("_", " ").replace("-", " ").split())
        for operator in cls:
            if operator.value == needle:
                return operator
        raise InvalidQueryError(f"Unknown operator '{value}'")

    @property
    def needs_value(self) -> bool:
        return self not in (QueryOperator.IS_EMPTY, QueryOperator.IS_NOT_EMPTY)


Op = QueryOperator

OPERATORS_BY_TYPE: dict[FieldType, tuple[QueryOperator, ...]] = {
    FieldType.TEXT: (
        Op.EQUALS,
        Op.NOT_EQUALS,
        Op.CONTAINS,
        Op.NOT_CONTAINS,
        Op.STARTS_WITH,
        Op.ENDS_WITH,
        Op.IS_EMPTY,
        Op.IS_NOT_EMPTY,
    ),
    FieldType.DATE: (Op.EQUALS, Op.NOT_EQUALS, Op.BEFORE, Op.AFTER, Op.IS_EMPTY, Op.IS_NOT_EMPTY),
    FieldType.BOOLEAN: (Op.EQUALS, Op.NOT_EQUALS),
}

BOOLEAN_FIELDS = {CanonicalField.CRITICAL_FLAG.value}
TRUE_VALUES = ("y", "yes", "true", "1", "x")
FALSE_VALUES = ("n", "no", "false", "0")


class QueryField(BaseModel):
    """A queryable column with its display name and declared type."""

    column: str
    display_name: str
    field_type: FieldType

    @property
    def operators(self) -> tuple[QueryOperator, ...]:
        return OPERATORS_BY_TYPE[self.field_type]


def _field_type(column: str) -> FieldType:
    if column in BOOLEAN_FIELDS:
        return FieldType.BOOLEAN
    if column in {f.value for f in DATE_FIELDS}:
        return FieldType.DATE
    return FieldType.TEXT


def _display_name(column: str) -> str:
    try:
        return CanonicalField(column).display_name
    except ValueError:
        return column.replace("_", " ").title()


def queryable_fields(kind: DataKind) -> list[QueryField]:
    """Queryable fields of a kind in column order."""
    columns = [c for c in model_for(kind).column_names() if c != "imported_at"]
    if "batch_id" not in columns:
        columns.append("batch_id")
    return [
        QueryField(column=c, display_name=_display_name(c), field_type=_field_type(c))
        for c in columns
    ]


def resolve_field(kind: DataKind, name: str) -> QueryField:
    """
    Find a field by display name or column name, ignoring case and separators.

    Raises:
        InvalidQueryError: If the kind has no such field
    """
    needle = normalize_header(name)
    for field in queryable_fields(kind):
        if needle in (normalize_header(field.display_name), normalize_header(field.column)):
            return field
    raise InvalidQueryError(f"Unknown field '{name}' for {kind.label} data")


def _parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise InvalidQueryError(f"'{value}' is not a boolean value")


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class QueryFilter(BaseModel):
    """
    A validated field/operator/value condition.

    Build with QueryFilter.build(); the value is already converted to the
    field's type.
    """

    kind: DataKind
    field: QueryField
    operator: QueryOperator
    value: Any = None

    @classmethod
    def build(
        cls,
        kind: DataKind | str,
        field: str,
        operator: QueryOperator | str,
        value: Any = None,
    ) -> "QueryFilter":
        """
        Validate a condition.

        Raises:
            InvalidQueryError: Unknown field or operator, an operator not allowed
                for the field type, or a missing or malformed value
        """
        try:
            kind = DataKind.parse(kind)
        except ValueError as e:
            raise InvalidQueryError(str(e)) from e
        query_field = resolve_field(kind, field)
        op = QueryOperator.parse(operator)

        if op not in query_field.operators:
            allowed = ", ".join(o.value for o in query_field.operators)
            raise InvalidQueryError(
                f"Operator '{op.value}' is not allowed for {query_field.field_type.value} field "
                f"'{query_field.display_name}'. Allowed: {allowed}"
            )

        if not op.needs_value:
            return cls(kind=kind, field=query_field, operator=op)

        if value is None or (isinstance(value, str) and value.strip() == ""):
            raise InvalidQueryError(f"Operator '{op.value}' requires a value")

        if query_field.field_type is FieldType.DATE:
            parsed = value if isinstance(value, date) else parse_date(value)
            if parsed is None:
                raise InvalidQueryError(f"'{value}' is not a valid date")
            value = parsed
        elif query_field.field_type is FieldType.BOOLEAN:
            value = _parse_boolean(value)
        else:
            value = str(value).strip()

        return cls(kind=kind, field=query_field, operator=op, value=value)

    def to_sql(self) -> tuple[sql.Composable, list[Any]]:
        """WHERE-clause condition and its parameters."""
        column = sql.Identifier(self.field.column)
        op = self.operator

        if self.field.field_type is FieldType.BOOLEAN:
            truthy = sql.SQL("LOWER(TRIM({c})) = ANY(%s)").format(c=column)
            wants_true = self.value if op is Op.EQUALS else not self.value
            if wants_true:
                return truthy, [list(TRUE_VALUES)]
            return sql.SQL("({c} IS NULL OR NOT {t})").format(c=column, t=truthy), [list(TRUE_VALUES)]

        if self.field.field_type is FieldType.DATE:
            templates = {
                Op.EQUALS: "{c} = %s",
                Op.NOT_EQUALS: "({c} IS NULL OR {c} <> %s)",
                Op.BEFORE: "{c} < %s",
                Op.AFTER: "{c} > %s",
                Op.IS_EMPTY: "{c} IS NULL",
                Op.IS_NOT_EMPTY: "{c} IS NOT NULL",
            }
            params = [self.value] if op.needs_value else []
            return sql.SQL(templates[op]).format(c=column), params

        empty = "({c} IS NULL OR TRIM({c}) = '' OR UPPER(TRIM({c})) = 'N/A')"
        templates = {
            Op.EQUALS: ("LOWER({c}) = LOWER(%s)", None),
            Op.NOT_EQUALS: ("({c} IS NULL OR LOWER({c}) <> LOWER(%s))", None),
            Op.CONTAINS: ("{c} ILIKE %s", "%{}%"),
            Op.NOT_CONTAINS: ("({c} IS NULL OR {c} NOT ILIKE %s)", "%{}%"),
            Op.STARTS_WITH: ("{c} ILIKE %s", "{}%"),
            Op.ENDS_WITH: ("{c} ILIKE %s", "%{}"),
            Op.IS_EMPTY: (empty, None),
            Op.IS_NOT_EMPTY: (f"NOT {empty}", None),
        }
        template, pattern = templates[op]
        if not op.needs_value:
            return sql.SQL(template).format(c=column), []
        param = pattern.format(_escape_like(self.value)) if pattern else self.value
        return sql.SQL(template).format(c=column), [param]


class QueryService:
    """
    Runs QueryFilter conditions against one environment.
    """

    def __init__(self, pool: DatabaseConnectionPool, environment: Environment):
        self.pool = pool
        self.environment = environment

    def query(
        self,
        kind: DataKind | str,
        field: str,
        operator: QueryOperator | str,
        value: Any = None,
        limit: int | None = None,
    ) -> list[SourceRecord] | list[CombinedRecord]:
        """
        Records of a kind matching one condition, in table order.

        Raises:
            InvalidQueryError: If the condition is not valid for the field
        """
        condition = QueryFilter.build(kind, field, operator, value)
        where, params = condition.to_sql()

        statement = sql.SQL("SELECT * FROM {table} WHERE {where} ORDER BY id").format(
            table=table_identifier(self.environment, condition.kind),
            where=where,
        )
        if limit is not None:
            statement = sql.SQL("{} LIMIT {}").format(statement, sql.Literal(int(limit)))

        rows = self.pool.execute_query(statement, params)
        model = model_for(condition.kind)
        logger.debug(
            "Query executed",
            extra={
                "environment": self.environment.value,
                "kind": condition.kind.value,
                "field": condition.field.column,
                "operator": condition.operator.value,
                "matches": len(rows),
            },
        )
        return [model.model_validate(row) for row in rows]
