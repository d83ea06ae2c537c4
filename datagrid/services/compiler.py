"""
Filter compiler for the Data Grid API.

Translates a filter request into a SQLAlchemy Core filter over the items
table. Translation is pure: validation errors are raised here, before any
query reaches the database, and executing the result is left to the
record store.

Text columns match the in-memory evaluator for eq, neq and the pattern
operators: comparison is case-insensitive and a null field reads as "".

Numeric columns get numeric predicates. Operators that have no natural
numeric meaning are handled as follows:
- contains/like/ilike: exact match on the parsed number
- starts with: a range from the value up to the value padded with 9s to
  ten characters ("45" -> 45 <= x <= 4599999999); an approximation, not a
  digit-prefix match
- ends with: rejected
"""
import math
from dataclasses import dataclass
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement

from datagrid.errors import InvalidValue, UnsupportedOperator, UnsupportedOperatorForColumn
from datagrid.operators import Operator, SUBSTRING_OPERATORS, to_number
from datagrid.registry import ColumnKind, ColumnRegistry
from datagrid.schemas.filters import FilterRequest
from datagrid.services.db_operations import build_table

# Width numeric "starts with" values are padded to
PREFIX_RANGE_WIDTH = 10


@dataclass(frozen=True)
class QueryFilter:
    """A compiled filter: WHERE clause plus the fixed id-descending order."""
    table: sa.Table
    where: ColumnElement

    @property
    def order_by(self):
        return self.table.c.id.desc()

    def to_select(self) -> sa.Select:
        return sa.select(self.table).where(self.where).order_by(self.order_by)


def numeric_prefix_bounds(text: str):
    """
    Bounds used for numeric "starts with".

    Returns (lower, upper); upper is None when the padded value overflows
    to infinity, leaving the range open-ended.
    """
    lower = to_number(text)
    if lower is None:
        return None
    padded = text + "9" * max(0, PREFIX_RANGE_WIDTH - len(text))
    upper = float(padded)
    return lower, (None if math.isinf(upper) else upper)


class PredicateCompiler:
    """Compiles filter requests against one table."""

    def __init__(self, registry: ColumnRegistry, table: Optional[sa.Table] = None):
        self.registry = registry
        self.table = table if table is not None else build_table(registry)

    def compile(self, request: FilterRequest) -> QueryFilter:
        """
        Compile a filter request.

        Raises:
            InvalidColumn: Column is not registered
            UnsupportedOperator: Operator token is unknown
            InvalidValue: Value cannot be coerced for the operator/column
            UnsupportedOperatorForColumn: Operator has no meaning for the column kind
        """
        kind = self.registry.classify(request.column)
        operator = Operator.parse(request.operator)
        column = self.table.c[request.column]

        if operator is Operator.IS_EMPTY:
            where = sa.or_(column.is_(None), sa.cast(column, sa.String) == "")
        elif kind is ColumnKind.NUMERIC:
            where = self._numeric(column, operator, request)
        else:
            where = self._text(column, operator, request.value)
        return QueryFilter(table=self.table, where=where)

    def _numeric(self, column, operator: Operator, request: FilterRequest) -> ColumnElement:
        value = request.value.strip()

        if operator in SUBSTRING_OPERATORS:
            number = to_number(value)
            if number is None:
                raise UnsupportedOperatorForColumn(
                    f"'{request.operator}' on numeric column '{request.column}' "
                    f"needs a numeric value, got '{request.value}'"
                )
            return column == number

        if operator is Operator.STARTS_WITH:
            bounds = numeric_prefix_bounds(value)
            if bounds is None:
                raise InvalidValue(
                    f"Cannot use 'starts with' operator with non-numeric value "
                    f"'{request.value}' on numeric column '{request.column}'"
                )
            lower, upper = bounds
            if upper is None:
                return column >= lower
            return sa.and_(column >= lower, column <= upper)

        if operator is Operator.ENDS_WITH:
            raise UnsupportedOperatorForColumn(
                "'ends with' operator is not supported for numeric columns. "
                "Use exact match operators instead."
            )

        number = to_number(value)
        if number is None:
            raise InvalidValue(
                f"Column '{request.column}' is numeric; "
                f"'{request.value}' is not a number"
            )
        return self._compare(column, operator, number)

    def _text(self, column, operator: Operator, value: str) -> ColumnElement:
        # Null reads as "" and case is ignored, as in the in-memory evaluator
        field = sa.func.coalesce(column, "")
        if operator in SUBSTRING_OPERATORS:
            return field.icontains(value, autoescape=True)
        if operator is Operator.STARTS_WITH:
            return field.istartswith(value, autoescape=True)
        if operator is Operator.ENDS_WITH:
            return field.iendswith(value, autoescape=True)
        if operator is Operator.EQ:
            return sa.func.lower(field) == value.lower()
        if operator is Operator.NEQ:
            return sa.func.lower(field) != value.lower()
        return self._compare(column, operator, value)

    @staticmethod
    def _compare(column, operator: Operator, value) -> ColumnElement:
        if operator is Operator.EQ:
            return column == value
        if operator is Operator.NEQ:
            return column != value
        if operator is Operator.LT:
            return column < value
        if operator is Operator.LTE:
            return column <= value
        if operator is Operator.GT:
            return column > value
        if operator is Operator.GTE:
            return column >= value
        # Every operator is handled above; reaching here means the enum grew
        raise UnsupportedOperator(operator.value)
