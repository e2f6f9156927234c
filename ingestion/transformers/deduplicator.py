"""
Reject repeated emails inside one batch
"""

from typing import Iterable, List, Tuple
from ingestion.transformers.row_validator import InvalidRow, ValidatedRow

DUPLICATE_IN_BATCH = "duplicate email in file"


class BatchDeduplicator:
    """
    Keep the first row for each email within a batch.

    Only batch-local; repeats across batches or jobs are caught by the
    loader's conflict handling.
    """

    def split(self, rows: Iterable[ValidatedRow]) -> Tuple[List[ValidatedRow], List[InvalidRow]]:
        seen = set()
        accepted: List[ValidatedRow] = []
        duplicates: List[InvalidRow] = []

        for row in rows:
            key = row.customer.email
            if key in seen:
                duplicates.append(InvalidRow(
                    row_number=row.row_number,
                    message=DUPLICATE_IN_BATCH,
                    original=row.original
                ))
                continue
            seen.add(key)
            accepted.append(row)

        return accepted, duplicates
