"""
Filter capability shared by the query-backed and the in-memory paths.

Both implementations take the same filter request and return records
ordered by descending id, so one scenario table can be run against each.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping

from datagrid.schemas.filters import FilterRequest
from datagrid.services.compiler import PredicateCompiler
from datagrid.services.db_operations import ItemStore
from datagrid.services.evaluator import PredicateEvaluator, sort_by_id_desc


class FilterEvaluator(ABC):
    @abstractmethod
    async def apply(self, request: FilterRequest) -> List[Dict[str, Any]]:
        """Return the records matching the request, ordered by descending id."""


class CompiledFilter(FilterEvaluator):
    """Compiles the request and runs it through the record store."""

    def __init__(self, compiler: PredicateCompiler, store: ItemStore):
        self.compiler = compiler
        self.store = store

    async def apply(self, request: FilterRequest) -> List[Dict[str, Any]]:
        query_filter = self.compiler.compile(request)
        return await self.store.select(query_filter)


class InMemoryFilter(FilterEvaluator):
    """Evaluates the request over a fixed set of records."""

    def __init__(self, evaluator: PredicateEvaluator, records: Iterable[Mapping[str, Any]]):
        self.evaluator = evaluator
        self.records = tuple(records)

    async def apply(self, request: FilterRequest) -> List[Dict[str, Any]]:
        matches = self.evaluator.evaluate(self.records, request)
        return [dict(record) for record in sort_by_id_desc(matches)]
