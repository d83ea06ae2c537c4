"""
Async API client for the Data Grid API.

Mirrors what the grid front end does: it keeps the last loaded page of
records in memory, and when a filter or search call cannot reach the API
(transport error or server error) it answers from that local copy instead
of failing. Validation errors from the API are raised, not masked.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import httpx

from datagrid.config import API_URL, DEFAULT_PAGE_SIZE
from datagrid.errors import (
    ComparisonUnavailable, DataGridError, DuplicateItem, InvalidColumn, InvalidRecord,
    InvalidValue, ItemNotFound, StorageError, UnsupportedOperator, UnsupportedOperatorForColumn,
)
from datagrid.operators import to_text
from datagrid.registry import ColumnRegistry, get_registry
from datagrid.schemas.filters import FilterRequest
from datagrid.services.evaluator import PredicateEvaluator, sort_by_id_desc

Record = Dict[str, Any]

_MESSAGE_ERRORS = {
    "InvalidValue": InvalidValue,
    "UnsupportedOperatorForColumn": UnsupportedOperatorForColumn,
    "InvalidRecord": InvalidRecord,
    "ComparisonUnavailable": ComparisonUnavailable,
}


def error_from_response(response: httpx.Response, request: Optional[FilterRequest] = None) -> DataGridError:
    """Rebuild the API's error from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("error") or response.text or f"HTTP {response.status_code}"
    code = body.get("code")

    if response.status_code >= 500 and code != "ComparisonUnavailable":
        return StorageError(message)
    if code == "InvalidColumn":
        return InvalidColumn(getattr(request, "column", None), message)
    if code == "UnsupportedOperator":
        return UnsupportedOperator(getattr(request, "operator", None), message)
    if code == "ItemNotFound":
        return ItemNotFound()
    if code == "DuplicateItem":
        return DuplicateItem(None, message)
    if code in _MESSAGE_ERRORS:
        return _MESSAGE_ERRORS[code](message)
    return DataGridError(message, status_code=response.status_code)


class DataGridClient:
    """
    Client for the /api routes with local fallback for filter and search.

    Args:
        base_url: API root, e.g. http://localhost:8000/api
        registry: Column registry used by the local evaluator
        transport: Optional httpx transport (tests use httpx.MockTransport)
        fallback_records: Records to answer from before anything was loaded
    """

    def __init__(
        self,
        base_url: str = API_URL,
        registry: Optional[ColumnRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        fallback_records: Iterable[Mapping[str, Any]] = (),
        timeout: float = 10.0,
    ):
        self.registry = registry or get_registry()
        self.evaluator = PredicateEvaluator(self.registry)
        self.records: List[Record] = [dict(record) for record in fallback_records]
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "DataGridClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, filter_request: Optional[FilterRequest] = None,
                       **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"{method} {path} failed: {str(e)}") from e
        if response.status_code >= 400:
            raise error_from_response(response, filter_request)
        return response

    async def _data(self, method: str, path: str, filter_request: Optional[FilterRequest] = None,
                    **kwargs) -> Any:
        response = await self._request(method, path, filter_request, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise StorageError(f"{method} {path} returned invalid JSON") from e

    # Reads

    async def fetch_items(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> List[Record]:
        """Load a page of records and keep it as the local record set."""
        try:
            body = await self._data("GET", "/items", params={"page": page, "limit": limit})
        except StorageError as e:
            print(f"[client.fetch_items] {str(e)}; using {len(self.records)} local records")
            return list(self.records)
        self.records = list(body["data"])
        return list(self.records)

    async def fetch_item(self, item_id: int) -> Record:
        return await self._data("GET", f"/items/{item_id}")

    async def columns(self) -> Dict[str, Any]:
        return await self._data("GET", "/columns")

    async def search(self, term: str) -> List[Record]:
        """Free-text search; a blank term reloads the grid."""
        term = term.strip()
        if not term:
            return await self.fetch_items()
        try:
            body = await self._data("GET", "/search", params={"q": term})
            return body["data"]
        except StorageError as e:
            print(f"[client.search] {str(e)}; searching local records")
            return self.search_local(term)

    def search_local(self, term: str) -> List[Record]:
        needle = term.lower()
        matches = [
            record for record in self.records
            if any(needle in to_text(value).lower() for value in record.values())
        ]
        return sort_by_id_desc(matches)

    async def filter(self, filter_request: FilterRequest) -> List[Record]:
        """Filter through the API, or over the local records if it is unreachable."""
        try:
            body = await self._data("POST", "/filter", filter_request, json=filter_request.model_dump())
            return body["data"]
        except StorageError as e:
            print(f"[client.filter] {str(e)}; filtering local records")
            return self.filter_local(filter_request)

    def filter_local(self, filter_request: FilterRequest) -> List[Record]:
        return sort_by_id_desc(self.evaluator.evaluate(self.records, filter_request))

    # Writes

    async def create_item(self, record: Mapping[str, Any]) -> Record:
        return await self._data("POST", "/items", json=dict(record))

    async def update_item(self, item_id: int, changes: Mapping[str, Any]) -> Record:
        return await self._data("PUT", f"/items/{item_id}", json=dict(changes))

    async def delete_item(self, item_id: int) -> None:
        await self._request("DELETE", f"/items/{item_id}")

    async def delete_items(self, item_ids: Sequence[int]) -> None:
        await self._request("DELETE", "/items", json={"ids": list(item_ids)})

    async def compare(self, item_ids: Sequence[int]) -> Dict[str, Any]:
        """Natural-language comparison of the selected records."""
        return await self._data("POST", "/compare", json={"ids": list(item_ids)})
