"""
Validate uploaded rows against the customer schema
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union
from pydantic import ValidationError as PydanticValidationError
from core.exceptions import HeaderValidationError
from ingestion.extractors.csv_decoder import DecodedRow
from schemas.customer import CustomerRow
import logging

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("name", "email", "phone", "company")


@dataclass(frozen=True)
class ValidatedRow:
    row_number: int
    customer: CustomerRow
    original: Dict[str, str]


@dataclass(frozen=True)
class InvalidRow:
    row_number: int
    message: str
    original: Dict[str, str]


RowResult = Union[ValidatedRow, InvalidRow]


class RowValidator:
    """
    Apply the customer schema to decoded rows.

    Handles:
    - Header check, once per job, fatal when a required column is missing
    - Per-row field rules, reporting only the first broken rule
    """

    def __init__(self, required_headers: Iterable[str] = REQUIRED_HEADERS):
        self.required_headers = tuple(required_headers)

    def validate_headers(self, headers: Iterable[str]) -> None:
        present = set(headers)
        missing = [h for h in self.required_headers if h not in present]
        if missing:
            raise HeaderValidationError(
                f"Missing required headers: {', '.join(missing)}",
                context={"missing": missing, "headers": sorted(present)}
            )

    def validate(self, row: DecodedRow) -> RowResult:
        values = {key: row.values.get(key, "") for key in self.required_headers}
        try:
            customer = CustomerRow(**values)
        except PydanticValidationError as e:
            return InvalidRow(
                row_number=row.row_number,
                message=self._first_message(e),
                original=dict(row.values)
            )
        return ValidatedRow(
            row_number=row.row_number,
            customer=customer,
            original=dict(row.values)
        )

    def validate_batch(self, rows: Iterable[DecodedRow]) -> Tuple[List[ValidatedRow], List[InvalidRow]]:
        valid: List[ValidatedRow] = []
        invalid: List[InvalidRow] = []
        for row in rows:
            result = self.validate(row)
            if isinstance(result, ValidatedRow):
                valid.append(result)
            else:
                invalid.append(result)
        return valid, invalid

    @staticmethod
    def _first_message(error: PydanticValidationError) -> str:
        errors = error.errors()
        if not errors:
            return "invalid row"
        first = errors[0]
        # Messages raised by our validators travel in ctx; pydantic prefixes msg
        cause = (first.get("ctx") or {}).get("error")
        if cause is not None:
            return str(cause)
        return first.get("msg", "invalid row")
