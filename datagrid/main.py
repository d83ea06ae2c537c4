"""
Main application module for the Data Grid API.

This module defines the FastAPI application, routes, and error handlers.
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from datagrid.config import CORS_ORIGINS, DEFAULT_PAGE_SIZE
from datagrid.errors import DataGridError, InvalidRecord, ItemNotFound
from datagrid.operators import OPERATOR_TOKENS
from datagrid.registry import ColumnRegistry, get_registry
from datagrid.schemas.filters import FilterRequest
from datagrid.schemas.responses import (
    ColumnsResponse, CompareResponse, DataResponse, IdsRequest, ItemsResponse,
)
from datagrid.services.compiler import PredicateCompiler
from datagrid.services.db_operations import ItemStore
from datagrid.services.filtering import CompiledFilter
from datagrid.services.llm_provider import TextGenerator, compare_records, generate_text

router = APIRouter(prefix="/api")


def _validation_message(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def validate_record(registry: ColumnRegistry, payload: Any, partial: bool = False) -> Dict[str, Any]:
    """Validate an incoming record against the registry schema."""
    if not isinstance(payload, dict):
        raise InvalidRecord("Request body must be a JSON object")
    model = registry.record_model(partial=partial)
    try:
        record = model.model_validate(payload)
    except ValidationError as e:
        raise InvalidRecord(_validation_message(e.errors()))
    return record.model_dump(exclude_unset=partial, exclude_none=not partial)


# Dependencies

def get_store(request: Request) -> ItemStore:
    return request.app.state.store


def get_app_registry(request: Request) -> ColumnRegistry:
    return request.app.state.registry


# Routes

@router.get("/items", response_model=ItemsResponse)
async def get_items(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=1000),
    store: ItemStore = Depends(get_store),
):
    """Paginated records, newest id first."""
    rows, total = await store.page(page, limit)
    return {"data": rows, "pagination": {"page": page, "limit": limit, "total": total}}


@router.get("/items/{item_id}")
async def get_item(item_id: int, store: ItemStore = Depends(get_store)):
    return await store.get(item_id)


@router.post("/items", status_code=201)
async def create_item(
    payload: Any = Body(...),
    store: ItemStore = Depends(get_store),
    registry: ColumnRegistry = Depends(get_app_registry),
):
    record = validate_record(registry, payload)
    item = await store.insert(record)
    print(f"[items] Created item {item['id']}")
    return item


@router.put("/items/{item_id}")
async def update_item(
    item_id: int,
    payload: Any = Body(...),
    store: ItemStore = Depends(get_store),
    registry: ColumnRegistry = Depends(get_app_registry),
):
    changes = validate_record(registry, payload, partial=True)
    return await store.update(item_id, changes)


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: int, store: ItemStore = Depends(get_store)):
    await store.delete(item_id)
    return Response(status_code=204)


@router.delete("/items", status_code=204)
async def delete_items(body: Optional[IdsRequest] = Body(None), store: ItemStore = Depends(get_store)):
    if body is None or not body.ids:
        raise DataGridError("`ids` must be a non-empty array", status_code=400)
    await store.delete_many(body.ids)
    print(f"[items] Deleted {len(body.ids)} items")
    return Response(status_code=204)


@router.get("/search", response_model=DataResponse)
async def search_items(q: str = Query(""), store: ItemStore = Depends(get_store)):
    """Case-insensitive search across the searchable text columns."""
    term = q.strip()
    if not term:
        raise DataGridError("Query param `q` is required", status_code=400)
    return {"data": await store.search(term)}


@router.post("/filter", response_model=DataResponse)
async def filter_items(filter_request: FilterRequest, request: Request):
    """
    Filter records with a single {column, operator, value} triple.

    Returns:
        DataResponse with matching records ordered by descending id
    """
    print(
        f"[filter] column={filter_request.column!r} operator={filter_request.operator!r} "
        f"value={filter_request.value!r}"
    )
    rows = await request.app.state.filter.apply(filter_request)
    return {"data": rows}


@router.get("/columns", response_model=ColumnsResponse)
async def get_columns(registry: ColumnRegistry = Depends(get_app_registry)):
    """Column and operator vocabulary for the filter toolbar."""
    return {
        "columns": [
            {"name": column.name, "kind": column.kind.value, "label": column.label}
            for column in registry.columns
        ],
        "operators": list(OPERATOR_TOKENS),
    }


@router.post("/compare", response_model=CompareResponse)
async def compare_items(
    request: Request,
    body: Optional[IdsRequest] = Body(None),
    store: ItemStore = Depends(get_store),
    registry: ColumnRegistry = Depends(get_app_registry),
):
    """Ask the LLM for a natural-language comparison of the selected records."""
    ids = list(dict.fromkeys(body.ids)) if body is not None and body.ids else []
    if len(ids) < 2:
        raise DataGridError("Select at least two vehicles to compare", status_code=400)

    records = await store.get_many(ids)
    missing = set(ids) - {record["id"] for record in records}
    if missing:
        raise ItemNotFound(sorted(missing)[0])

    print(f"[compare] Comparing {len(records)} vehicles")
    comparison = await compare_records(records, registry, request.app.state.text_generator)
    return {"comparison": comparison, "data": records}


# Error handlers

async def datagrid_error_handler(request: Request, exc: DataGridError) -> JSONResponse:
    if exc.status_code >= 500:
        print(f"[error] {request.method} {request.url.path}: {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": type(exc).__name__},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": _validation_message(exc.errors()), "code": "RequestValidationError"},
    )


def create_app(
    store: Optional[ItemStore] = None,
    registry: Optional[ColumnRegistry] = None,
    text_generator: Optional[TextGenerator] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        store: Record store; defaults to one on DATABASE_URL
        registry: Column registry; defaults to the packaged registry
        text_generator: Coroutine turning a prompt into text; defaults to the LLM providers
    """
    registry = registry or (store.registry if store is not None else get_registry())
    store = store or ItemStore.from_url(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.dispose()

    app = FastAPI(
        title="Data Grid API",
        description="Search, filter and edit electric-vehicle specifications",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.store = store
    app.state.compiler = PredicateCompiler(registry, store.table)
    app.state.filter = CompiledFilter(app.state.compiler, store)
    app.state.text_generator = text_generator or generate_text

    app.add_exception_handler(DataGridError, datagrid_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/ping")
    @app.head("/ping")
    async def ping():
        """Health check endpoint. Supports both GET and HEAD methods."""
        return {"status": "ok"}

    app.include_router(router)
    return app


app = create_app()
