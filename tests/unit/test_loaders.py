"""
Unit tests for the customer loader and the job repository
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4
from sqlalchemy.dialects import postgresql
from core.exceptions import PersistenceError
from ingestion.extractors.csv_decoder import DecodedRow
from ingestion.loaders.customer_loader import CustomerLoader, reconcile, EMAIL_EXISTS
from ingestion.loaders.job_repository import JobRepository
from ingestion.transformers.row_validator import RowValidator
from models.base import JobStatus
from schemas.customer import CustomerRow


def _customer(email):
    return CustomerRow(name="Test", email=email, phone=None, company="Acme")


@pytest.fixture
def mock_session():
    session = AsyncMock()
    result = MagicMock()
    result.scalars.return_value.all.return_value = ["a@acme.io"]
    session.execute.return_value = result
    return session


class TestCustomerLoader:

    @pytest.mark.asyncio
    async def test_returns_inserted_emails(self, mock_session):
        loader = CustomerLoader(mock_session)

        inserted = await loader.insert_batch(uuid4(), [_customer("a@acme.io"), _customer("b@acme.io")])

        assert inserted == {"a@acme.io"}
        mock_session.execute.assert_awaited_once()
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_statement_skips_conflicts_and_returns_email(self, mock_session):
        loader = CustomerLoader(mock_session)

        await loader.insert_batch(uuid4(), [_customer("a@acme.io")])

        stmt = mock_session.execute.await_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (email) DO NOTHING" in sql
        assert "RETURNING customers.email" in sql

    @pytest.mark.asyncio
    async def test_empty_batch_skips_the_store(self, mock_session):
        loader = CustomerLoader(mock_session)

        assert await loader.insert_batch(uuid4(), []) == set()
        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_statement_failure_rolls_back(self, mock_session):
        mock_session.execute.side_effect = RuntimeError("connection lost")
        loader = CustomerLoader(mock_session)
        job_id = uuid4()

        with pytest.raises(PersistenceError) as exc_info:
            await loader.insert_batch(job_id, [_customer("a@acme.io")])

        mock_session.rollback.assert_awaited_once()
        assert exc_info.value.context["job_id"] == str(job_id)
        assert isinstance(exc_info.value.original_exception, RuntimeError)


class TestReconcile:

    def test_rows_missing_from_returned_set_are_conflicts(self):
        validator = RowValidator()
        rows = [
            validator.validate(DecodedRow(n, {"name": "N", "email": email, "phone": "", "company": "C"}))
            for n, email in [(1, "a@acme.io"), (2, "b@acme.io"), (3, "c@acme.io")]
        ]

        stored, conflicts = reconcile(rows, {"a@acme.io", "c@acme.io"})

        assert [r.row_number for r in stored] == [1, 3]
        assert [(r.row_number, r.message) for r in conflicts] == [(2, EMAIL_EXISTS)]
        assert conflicts[0].original["email"] == "b@acme.io"

    def test_email_match_is_exact(self):
        row = RowValidator().validate(
            DecodedRow(1, {"name": "N", "email": "Ann@acme.io", "phone": "", "company": "C"})
        )

        stored, conflicts = reconcile([row], {"ann@acme.io"})

        assert stored == []
        assert len(conflicts) == 1


class TestJobRepository:

    @pytest.mark.asyncio
    async def test_update_writes_given_fields(self, mock_session):
        repository = JobRepository(mock_session)

        await repository.update_progress(uuid4(), status=JobStatus.PROCESSING, processed_rows=10)

        mock_session.execute.assert_awaited_once()
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, mock_session):
        repository = JobRepository(mock_session)

        with pytest.raises(ValueError, match="filename"):
            await repository.update_progress(uuid4(), filename="other.csv")

        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_update_is_a_no_op(self, mock_session):
        repository = JobRepository(mock_session)

        await repository.update_progress(uuid4())

        mock_session.execute.assert_not_awaited()
        mock_session.commit.assert_not_awaited()
