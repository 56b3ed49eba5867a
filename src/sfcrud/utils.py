from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .batch import WriteResult


def load_records(path: str | Path, sobject_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Load records to create/update from a .json or .csv file.

    - JSON: a list of objects (or a single object)
    - CSV: header row = field names; empty cells are left out of the record
    - ``sobject_type`` fills in ``type`` where the record has none
    """
    p = Path(path)
    if p.suffix.lower() == ".json":
        data = json.loads(p.read_text(encoding="utf-8"))
        rows = data if isinstance(data, list) else [data]
    else:
        with p.open(newline="", encoding="utf-8") as f:
            rows = [{k: v for k, v in row.items() if v != ""} for row in csv.DictReader(f)]

    if sobject_type:
        for row in rows:
            row.setdefault("type", sobject_type)
    return rows


def write_results_csv(path: str | Path, results: Iterable[WriteResult]) -> int:
    """Write write-call outcomes to CSV (id, success, errors). Returns row count."""
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=["id", "success", "errors"])
        w.writeheader()
        for res in results:
            row = asdict(res)
            row["errors"] = "; ".join(
                f"{e.get('statusCode', '')}: {e.get('message', '')}" for e in res.errors
            )
            w.writerow(row)
            count += 1
    return count
