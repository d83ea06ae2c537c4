"""
Filter operator vocabulary shared by the query compiler, the in-memory
evaluator and the filter toolbar.

This module defines:
1. The closed set of operators and the wire tokens that select them
2. Value coercion helpers used by both evaluators
"""
import math
import re
from enum import Enum
from typing import Any, Dict, Optional

from datagrid.errors import UnsupportedOperator


class Operator(Enum):
    """Canonical filter operators."""
    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    CONTAINS = "contains"
    LIKE = "like"
    ILIKE = "ilike"
    STARTS_WITH = "starts with"
    ENDS_WITH = "ends with"
    IS_EMPTY = "is empty"

    @classmethod
    def parse(cls, token: Any) -> "Operator":
        """
        Resolve a wire token to its operator.

        Raises:
            UnsupportedOperator: If the token is not one of OPERATOR_TOKENS
        """
        if not isinstance(token, str):
            raise UnsupportedOperator(token)
        operator = OPERATOR_TOKENS.get(token.strip())
        if operator is None:
            raise UnsupportedOperator(token)
        return operator


# Every accepted wire token. Long forms are what the toolbar shows.
OPERATOR_TOKENS: Dict[str, Operator] = {
    "eq": Operator.EQ,
    "equals": Operator.EQ,
    "neq": Operator.NEQ,
    "not equals": Operator.NEQ,
    "lt": Operator.LT,
    "less than": Operator.LT,
    "lte": Operator.LTE,
    "less than or equal": Operator.LTE,
    "gt": Operator.GT,
    "greater than": Operator.GT,
    "gte": Operator.GTE,
    "greater than or equal": Operator.GTE,
    "contains": Operator.CONTAINS,
    "like": Operator.LIKE,
    "ilike": Operator.ILIKE,
    "starts with": Operator.STARTS_WITH,
    "ends with": Operator.ENDS_WITH,
    "is empty": Operator.IS_EMPTY,
}

ORDERING_OPERATORS = frozenset({
    Operator.EQ, Operator.NEQ, Operator.LT, Operator.LTE, Operator.GT, Operator.GTE,
})
SUBSTRING_OPERATORS = frozenset({Operator.CONTAINS, Operator.LIKE, Operator.ILIKE})

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def to_text(value: Any) -> str:
    """
    Canonical text form of a scalar.

    Integral floats drop their fractional part (60000.0 -> "60000") and
    booleans are lower-case, so a number renders the same whether it came
    from JSON, the database or a form field. None becomes "".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def to_number(text: Any) -> Optional[float]:
    """Strictly parse a finite number, or return None."""
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        number = float(text)
    else:
        text = to_text(text).strip()
        # float() also accepts digit separators ("1_000")
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def leading_number(text: str) -> Optional[float]:
    """Parse the numeric prefix of a string ("300 km" -> 300.0)."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    return float(match.group(1))
