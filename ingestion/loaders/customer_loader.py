"""
Bulk insert of validated customers with conflict reconciliation
"""

from typing import Iterable, List, Sequence, Set, Tuple
from uuid import UUID, uuid4
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
from models.customer import Customer
from schemas.customer import CustomerRow
from ingestion.transformers.row_validator import InvalidRow, ValidatedRow
from core.exceptions import PersistenceError
import logging

logger = logging.getLogger(__name__)

EMAIL_EXISTS = "email already exists"


class CustomerLoader:
    """
    Insert customers in one statement per batch.

    Ensures:
    - A row whose email is already stored is skipped, not an error
    - The caller learns exactly which emails were stored
    - No retries; a failed statement is reported once for the whole batch
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def insert_batch(self, job_id: UUID, customers: Sequence[CustomerRow]) -> Set[str]:
        """
        INSERT ... ON CONFLICT (email) DO NOTHING RETURNING email.

        Returns:
            Emails that were newly stored by this statement

        Raises:
            PersistenceError: If the statement or commit fails
        """
        if not customers:
            return set()

        values = [
            {
                "id": uuid4(),
                "job_id": job_id,
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
                "company": customer.company,
            }
            for customer in customers
        ]

        stmt = (
            insert(Customer)
            .values(values)
            .on_conflict_do_nothing(index_elements=["email"])
            .returning(Customer.email)
        )

        try:
            result = await self.db.execute(stmt)
            inserted = set(result.scalars().all())
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise PersistenceError(
                "Bulk customer insert failed",
                context={
                    "job_id": str(job_id),
                    "batch_size": len(customers),
                    "operation": "INSERT",
                    "table_name": "customers"
                },
                original_exception=e
            )

        logger.debug(f"Inserted {len(inserted)}/{len(customers)} customers for job {job_id}")
        return inserted


def reconcile(rows: Iterable[ValidatedRow], inserted: Set[str]) -> Tuple[List[ValidatedRow], List[InvalidRow]]:
    """Split submitted rows into stored ones and store-level conflicts"""
    stored: List[ValidatedRow] = []
    conflicts: List[InvalidRow] = []
    for row in rows:
        if row.customer.email in inserted:
            stored.append(row)
        else:
            conflicts.append(InvalidRow(
                row_number=row.row_number,
                message=EMAIL_EXISTS,
                original=row.original
            ))
    return stored, conflicts
