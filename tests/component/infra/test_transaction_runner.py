"""
Component Tests for TransactionRunner

Begin/commit/rollback envelope over a scripted connection.
"""

import asyncpg
import pytest

from core.errors import StorageError, UniqueViolation
from core.postgres_client import QueryExecutor, TransactionRunner

pytestmark = pytest.mark.component


@pytest.fixture
def runner(mock_pool, sleeps):
    return TransactionRunner(mock_pool, QueryExecutor(mock_pool, sleep=sleeps))


class TestTransactionRunner:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, runner, mock_pool, mock_connection):
        async def work(tx):
            await tx.execute("DELETE FROM donations WHERE campaign_id = $1", ["c1"])
            await tx.execute("DELETE FROM campaigns WHERE id = $1", ["c1"])
            return "done"

        assert await runner.run_in_transaction(work) == "done"

        [transaction] = mock_connection.transactions
        assert transaction.started and transaction.committed
        assert not transaction.rolled_back
        assert len(mock_connection.calls_to("execute")) == 2
        assert mock_pool.calls_to("execute") == []
        assert mock_pool.acquired == mock_pool.released == 1

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises_work_error(self, runner, mock_pool, mock_connection):
        async def work(tx):
            await tx.execute("INSERT INTO users (id) VALUES ($1)", ["u1"])
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await runner.run_in_transaction(work)

        [transaction] = mock_connection.transactions
        assert transaction.rolled_back
        assert not transaction.committed
        assert mock_pool.released == 1

    @pytest.mark.asyncio
    async def test_statement_inside_transaction_is_not_retried(self, runner, mock_connection, sleeps):
        mock_connection.script("execute", asyncpg.exceptions.ConnectionDoesNotExistError("closed"))

        async def work(tx):
            await tx.execute("INSERT INTO donations (id) VALUES ($1)", ["d1"])

        with pytest.raises(StorageError):
            await runner.run_in_transaction(work)

        assert len(mock_connection.calls_to("execute")) == 1
        assert mock_connection.transactions[0].rolled_back
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_unique_violation_surfaces_after_rollback(self, runner, mock_connection):
        error = asyncpg.exceptions.UniqueViolationError("duplicate key")
        error.constraint_name = "campaigns_slug_key"
        mock_connection.script("execute", error)

        async def work(tx):
            await tx.execute("INSERT INTO campaigns (slug) VALUES ($1)", ["help-my-dog"])

        with pytest.raises(UniqueViolation) as exc_info:
            await runner.run_in_transaction(work)

        assert exc_info.value.involves("slug")
        assert mock_connection.transactions[0].rolled_back

    @pytest.mark.asyncio
    async def test_rollback_failure_keeps_original_error(self, runner, mock_connection):
        mock_connection.rollback_error = OSError("socket closed")

        async def work(tx):
            raise ValueError("original")

        with pytest.raises(ValueError, match="original"):
            await runner.run_in_transaction(work)

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(self, runner, mock_connection):
        mock_connection.commit_error = asyncpg.exceptions.SerializationError("could not serialize")

        async def work(tx):
            return 1

        with pytest.raises(StorageError):
            await runner.run_in_transaction(work)

        assert mock_connection.transactions[0].rolled_back

    @pytest.mark.asyncio
    async def test_begin_is_retried_on_transient_error(self, runner, mock_connection, sleeps):
        mock_connection.start_errors = [asyncpg.exceptions.ConnectionDoesNotExistError("closed")]

        async def work(tx):
            return "ok"

        assert await runner.run_in_transaction(work) == "ok"
        assert len(mock_connection.calls_to("start")) == 2
        assert sleeps.delays == [pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_acquire_failure(self, runner, mock_pool):
        mock_pool.acquire_error = asyncpg.exceptions.TooManyConnectionsError("too many")

        async def work(tx):
            return "never"

        with pytest.raises(StorageError):
            await runner.run_in_transaction(work)
