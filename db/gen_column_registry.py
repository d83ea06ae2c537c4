import os
import sys

import pandas as pd
import yaml

REGISTRY_PATH = 'datagrid/services/column_registry.yaml'


def infer_column(series):
    if pd.api.types.is_integer_dtype(series):
        return {'kind': 'numeric', 'sql_type': 'integer'}
    elif pd.api.types.is_float_dtype(series):
        return {'kind': 'numeric', 'sql_type': 'float'}
    else:
        return {'kind': 'text', 'sql_type': 'string', 'searchable': True}


def generate_column_registry(csv_path, output_path=REGISTRY_PATH):
    df = pd.read_csv(csv_path, nrows=100)
    df.columns = [name.strip() for name in df.columns]
    columns = []
    for name in df.columns:
        if name == 'id':
            continue
        entry = {'name': name, 'label': name}
        entry.update(infer_column(df[name]))
        columns.append(entry)
    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.dump({'columns': columns}, f, allow_unicode=True, sort_keys=False)
    print(f"column_registry.yaml generated at {output_path}")


if __name__ == "__main__":
    if len(sys.argv) < 2 or not os.path.exists(sys.argv[1]):
        print("Usage: python db/gen_column_registry.py path/to/data.csv [output.yaml]")
        sys.exit(1)
    generate_column_registry(*sys.argv[1:3])
