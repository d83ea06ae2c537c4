"""
Database import script for the Data Grid API.

Reads the electric-vehicle CSV (ElectricCarData_Clean.csv layout), validates
every row against the column registry, creates the items table if needed
and inserts the rows.

Database connection is configured through the same environment variables
as the API (DATABASE_URL or DB_USER/DB_PASSWORD/DB_HOST/DB_PORT/DB_NAME).

Usage:
    python db/import_data.py [path/to/ElectricCarData_Clean.csv]
"""
import asyncio
import os
import sys
from typing import Any, Dict, List, Tuple

import pandas as pd
from pydantic import ValidationError

from datagrid.config import DATABASE_URL
from datagrid.operators import to_number, to_text
from datagrid.registry import ColumnRegistry, get_registry
from datagrid.services.db_operations import ItemStore

if os.path.exists('/home/ubuntu/upload'):
    CSV_DIR = "/home/ubuntu/upload"
else:
    CSV_DIR = "upload"
DEFAULT_CSV = os.path.join(CSV_DIR, "ElectricCarData_Clean.csv")

# Header spellings in the public dataset that differ from the registry
CSV_RENAMES = {
    "Accel": "AccelSec",
    "TopSpeed": "TopSpeed_KmH",
    "Range": "Range_Km",
    "Efficiency": "Efficiency_WhKm",
    "FastCharge": "FastCharge_KmH",
}


def _clean(value: Any) -> Any:
    if pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        # "-" marks unknown values in the public dataset
        return None if value in ("", "-") else value
    if hasattr(value, "item"):  # numpy scalar
        return value.item()
    return value


def _as_number(value: Any, sql_type: str) -> Any:
    """Numeric cell as int/float; unparseable text is left for validation to reject."""
    number = to_number(value) if isinstance(value, str) else value
    if number is None:
        return value
    if sql_type == "integer" and isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def load_rows(csv_path: str, registry: ColumnRegistry) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Read and validate the CSV.

    Returns:
        Tuple of (valid records, error messages for skipped rows)
    """
    df = pd.read_csv(csv_path)
    df.columns = [name.strip() for name in df.columns]
    df = df.rename(columns=CSV_RENAMES)

    missing = [name for name in registry.names if name not in df.columns]
    if missing:
        raise ValueError(f"CSV is missing columns: {', '.join(missing)}")

    model = registry.record_model()
    sql_types = {column.name: column.sql_type for column in registry.columns}
    records, errors = [], []
    for index, row in df[registry.names].iterrows():
        raw = {}
        for name, value in row.items():
            value = _clean(value)
            if value is not None:
                if sql_types[name] == "string":
                    value = to_text(value)
                else:
                    value = _as_number(value, sql_types[name])
            raw[name] = value
        try:
            records.append(model.model_validate(raw).model_dump(exclude_none=True))
        except ValidationError as e:
            errors.append(f"row {index + 2}: {e.error_count()} invalid field(s)")
    return records, errors


async def import_csv(csv_path: str, database_url: str = DATABASE_URL) -> int:
    registry = get_registry()
    records, errors = load_rows(csv_path, registry)
    for error in errors:
        print(f"Skipping {error}")

    store = ItemStore.from_url(registry, database_url)
    try:
        await store.create_schema()
        # Sequential ids keep the CSV order when sorting by id
        for offset, record in enumerate(records, start=1):
            record.setdefault("id", offset)
            await store.insert(record)
    finally:
        await store.dispose()

    print(f"Imported {len(records)} rows into {store.table.name}")
    return len(records)


if __name__ == "__main__":
    csv_path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CSV
    if not os.path.exists(csv_path):
        print(f"CSV file not found: {csv_path}")
        sys.exit(1)
    asyncio.run(import_csv(csv_path))
