"""
Export a job's recorded errors as CSV
"""

import csv
from typing import Any, Dict, Iterable
import pandas as pd

ERROR_EXPORT_COLUMNS = ["rowNumber", "name", "email", "phone", "company", "error"]


def render_errors_csv(errors: Iterable[Dict[str, Any]]) -> str:
    """
    One line per job error under a fixed header.

    Text fields are always quoted with embedded quotes doubled; the row
    number is written bare. Whole-job errors have empty row fields.
    """
    records = []
    for error in errors:
        row = error.get("row") or {}
        records.append({
            "rowNumber": int(error.get("rowNumber", 0)),
            "name": str(row.get("name") or ""),
            "email": str(row.get("email") or ""),
            "phone": str(row.get("phone") or ""),
            "company": str(row.get("company") or ""),
            "error": str(error.get("message") or ""),
        })

    frame = pd.DataFrame.from_records(records, columns=ERROR_EXPORT_COLUMNS)
    frame["rowNumber"] = frame["rowNumber"].astype("int64")
    body = frame.to_csv(
        index=False,
        header=False,
        quoting=csv.QUOTE_NONNUMERIC,
        doublequote=True,
        lineterminator="\n",
    )
    return ",".join(ERROR_EXPORT_COLUMNS) + "\n" + body
