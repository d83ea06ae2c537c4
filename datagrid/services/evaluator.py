"""
In-memory filter evaluation.

Applies the filter operators to records already held by the client, used
when the API cannot be reached. Every field is compared as lower-cased
text, whatever its registered kind; only the ordering operators parse
numbers. As a consequence "contains", "starts with" and "ends with" do a
plain text match on numeric columns here, where the query compiler does a
numeric match, a range, or rejects the request.
"""
from typing import Any, Callable, Iterable, Iterator, List, Mapping

from datagrid.operators import Operator, SUBSTRING_OPERATORS, leading_number, to_text
from datagrid.registry import ColumnRegistry
from datagrid.schemas.filters import FilterRequest

Record = Mapping[str, Any]
Predicate = Callable[[str], bool]


def field_text(record: Record, column: str) -> str:
    return to_text(record.get(column)).lower()


def sort_by_id_desc(records: Iterable[Record]) -> List[Record]:
    """Order records by descending id; records without an id go last."""
    return sorted(
        records,
        key=lambda record: (record.get("id") is not None, record.get("id") or 0),
        reverse=True,
    )


class FilteredRecords:
    """
    Lazy filtered view over a record sequence.

    Each iteration filters the original records again, so the view can be
    iterated any number of times and always reflects the source.
    """

    def __init__(self, records: Iterable[Record], column: str, predicate: Predicate):
        if isinstance(records, Iterator):
            records = tuple(records)
        self._records = records
        self._column = column
        self._predicate = predicate

    def __iter__(self) -> Iterator[Record]:
        for record in self._records:
            if self._predicate(field_text(record, self._column)):
                yield record

    def __len__(self) -> int:
        return sum(1 for _ in self)


def _ordering(operator: Operator, target: str) -> Predicate:
    bound = leading_number(target)

    def compare(text: str) -> bool:
        number = leading_number(text)
        if number is None or bound is None:
            return False
        if operator is Operator.GT:
            return number > bound
        if operator is Operator.GTE:
            return number >= bound
        if operator is Operator.LT:
            return number < bound
        return number <= bound

    return compare


class PredicateEvaluator:
    """Evaluates filter requests against in-memory records."""

    def __init__(self, registry: ColumnRegistry):
        self.registry = registry

    def predicate(self, request: FilterRequest) -> Predicate:
        """
        Build the text predicate for a request.

        Column and operator are validated here, so errors surface before
        any record is read.
        """
        self.registry.classify(request.column)
        operator = Operator.parse(request.operator)
        target = request.value.lower()

        if operator is Operator.EQ:
            return lambda text: text == target
        if operator is Operator.NEQ:
            return lambda text: text != target
        if operator in SUBSTRING_OPERATORS:
            return lambda text: target in text
        if operator is Operator.STARTS_WITH:
            return lambda text: text.startswith(target)
        if operator is Operator.ENDS_WITH:
            return lambda text: text.endswith(target)
        if operator is Operator.IS_EMPTY:
            return lambda text: not text
        return _ordering(operator, target)

    def evaluate(self, records: Iterable[Record], request: FilterRequest) -> FilteredRecords:
        predicate = self.predicate(request)
        return FilteredRecords(records, request.column, predicate)

    def matches(self, record: Record, request: FilterRequest) -> bool:
        return self.predicate(request)(field_text(record, request.column))
