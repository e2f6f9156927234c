"""
Unit tests for in-batch deduplication
"""

from ingestion.extractors.csv_decoder import DecodedRow
from ingestion.transformers.deduplicator import BatchDeduplicator, DUPLICATE_IN_BATCH
from ingestion.transformers.row_validator import RowValidator


def _valid(number, email):
    row = DecodedRow(number, {"name": f"User {number}", "email": email, "phone": "", "company": "Acme"})
    return RowValidator().validate(row)


class TestBatchDeduplicator:

    def test_first_occurrence_wins(self):
        rows = [_valid(1, "a@acme.io"), _valid(2, "b@acme.io"), _valid(3, "a@acme.io")]

        accepted, duplicates = BatchDeduplicator().split(rows)

        assert [r.row_number for r in accepted] == [1, 2]
        assert [r.row_number for r in duplicates] == [3]
        assert duplicates[0].message == DUPLICATE_IN_BATCH
        assert duplicates[0].original["name"] == "User 3"

    def test_every_repeat_is_rejected(self):
        rows = [_valid(n, "same@acme.io") for n in range(1, 5)]

        accepted, duplicates = BatchDeduplicator().split(rows)

        assert len(accepted) == 1
        assert [r.row_number for r in duplicates] == [2, 3, 4]

    def test_state_does_not_leak_between_batches(self):
        dedup = BatchDeduplicator()

        dedup.split([_valid(1, "a@acme.io")])
        accepted, duplicates = dedup.split([_valid(2, "a@acme.io")])

        assert len(accepted) == 1
        assert duplicates == []
