"""
Column registry for the Data Grid API.

Single source of truth for column classification. The registry is loaded
once from YAML at startup, frozen, and injected into the query compiler,
the in-memory evaluator, the record store and the HTTP layer.
"""
import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

import yaml
from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, create_model

from datagrid.errors import InvalidColumn

SERVICES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "services")
DEFAULT_REGISTRY_PATH = os.path.join(SERVICES_DIR, "column_registry.yaml")

SQL_TYPES = ("float", "integer", "string")


class ColumnKind(Enum):
    NUMERIC = "numeric"
    TEXT = "text"


@dataclass(frozen=True)
class Column:
    name: str
    kind: ColumnKind
    label: str
    sql_type: str
    searchable: bool = False


def load_yaml_config(filepath: str, required_key: str = None) -> Any:
    """Load a YAML configuration file with error handling."""
    filename = os.path.basename(filepath)
    try:
        with open(filepath, "r", encoding="utf-8") as file:
            config = yaml.safe_load(file)
    except FileNotFoundError:
        raise ValueError(f"Configuration file not found: {filename}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {filename}: {str(e)}")
    if config is None:
        raise ValueError(f"Empty configuration file: {filename}")
    if required_key and required_key not in config:
        raise ValueError(f"Missing required key '{required_key}' in {filename}")
    return config[required_key] if required_key else config


def _parse_column(entry: Dict[str, Any]) -> Column:
    if not isinstance(entry, dict) or not entry.get("name"):
        raise ValueError(f"Column entry must be a mapping with a name, got {entry!r}")
    name = entry["name"]
    try:
        kind = ColumnKind(entry.get("kind"))
    except ValueError:
        raise ValueError(f"Column '{name}' has unknown kind {entry.get('kind')!r}")
    default_sql_type = "float" if kind is ColumnKind.NUMERIC else "string"
    sql_type = entry.get("sql_type", default_sql_type)
    if sql_type not in SQL_TYPES:
        raise ValueError(f"Column '{name}' has unknown sql_type {sql_type!r}")
    if (sql_type == "string") != (kind is ColumnKind.TEXT):
        raise ValueError(f"Column '{name}': sql_type {sql_type} does not fit kind {kind.value}")
    return Column(
        name=name,
        kind=kind,
        label=entry.get("label") or name,
        sql_type=sql_type,
        searchable=bool(entry.get("searchable", False)) and kind is ColumnKind.TEXT,
    )


class ColumnRegistry:
    """Immutable name -> column classification table."""

    def __init__(self, columns: Iterable[Column]):
        columns = tuple(columns)
        if not columns:
            raise ValueError("Column registry must declare at least one column")
        by_name = {}
        for column in columns:
            if column.name in by_name:
                raise ValueError(f"Column '{column.name}' is registered more than once")
            if column.name == "id":
                raise ValueError("'id' is reserved for the record identifier")
            by_name[column.name] = column
        self._columns = columns
        self._by_name = MappingProxyType(by_name)
        self._models: Dict[bool, Type[BaseModel]] = {}

    @classmethod
    def from_yaml(cls, filepath: str = DEFAULT_REGISTRY_PATH) -> "ColumnRegistry":
        entries = load_yaml_config(filepath, "columns")
        if not isinstance(entries, list):
            raise ValueError("'columns' must be a list")
        return cls(_parse_column(entry) for entry in entries)

    @property
    def columns(self) -> Tuple[Column, ...]:
        return self._columns

    @property
    def names(self) -> List[str]:
        return [column.name for column in self._columns]

    @property
    def numeric_columns(self) -> List[str]:
        return [c.name for c in self._columns if c.kind is ColumnKind.NUMERIC]

    @property
    def text_columns(self) -> List[str]:
        return [c.name for c in self._columns if c.kind is ColumnKind.TEXT]

    @property
    def searchable_columns(self) -> List[str]:
        return [c.name for c in self._columns if c.searchable]

    @property
    def labels(self) -> Dict[str, str]:
        return {c.name: c.label for c in self._columns}

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._columns)

    def get(self, name: str) -> Optional[Column]:
        return self._by_name.get(name)

    def classify(self, name: str) -> ColumnKind:
        """
        Return the kind of a registered column.

        Raises:
            InvalidColumn: If the column is not registered
        """
        column = self._by_name.get(name) if isinstance(name, str) else None
        if column is None:
            raise InvalidColumn(name)
        return column.kind

    def record_model(self, partial: bool = False) -> Type[BaseModel]:
        """
        Pydantic model validating records at the ingestion boundary.

        With partial=False every column must be present (null is allowed)
        and an optional integer id may be supplied; with partial=True every
        column is optional (for updates). Unknown keys are rejected in both
        cases. Types are strict: numeric columns take JSON numbers only (an
        integer is accepted for a float column), text columns take strings.
        """
        if partial not in self._models:
            python_types = {"float": StrictFloat, "integer": StrictInt, "string": StrictStr}
            fields: Dict[str, Any] = {}
            if not partial:
                fields["id"] = (Optional[StrictInt], None)
            for column in self._columns:
                python_type = python_types[column.sql_type]
                if partial:
                    fields[column.name] = (Optional[python_type], None)
                else:
                    fields[column.name] = (Optional[python_type], ...)
            self._models[partial] = create_model(
                "ItemUpdate" if partial else "ItemCreate",
                __config__=ConfigDict(extra="forbid", protected_namespaces=()),
                **fields,
            )
        return self._models[partial]


_default_registry: Optional[ColumnRegistry] = None


def get_registry() -> ColumnRegistry:
    """Process-wide registry loaded from the packaged YAML file."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ColumnRegistry.from_yaml()
    return _default_registry
