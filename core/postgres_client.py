"""
PostgreSQL Access for the Pledge Ledger

The only module that talks to the asyncpg driver. Provides:
- QueryExecutor: one statement per call, bounded retry with exponential
  backoff gated on an error classifier
- TransactionRunner: begin/commit/rollback envelope around a unit of work
- PostgresClient: owns the asyncpg pool and hands out both of the above

Usage:
    from core.postgres_client import get_postgres_client

    client = await get_postgres_client()
    row = await client.executor.fetch_row(
        "SELECT id FROM users WHERE wallet_address = $1", [wallet]
    )

    async def work(tx):
        await tx.execute("DELETE FROM donations WHERE campaign_id = $1", [cid])
        await tx.execute("DELETE FROM campaigns WHERE id = $1", [cid])

    await client.transactions.run_in_transaction(work)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import asyncpg
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from core.config import InfraConfig, LedgerConfig
from core.errors import ForeignKeyViolation, StorageError, UniqueViolation

logger = logging.getLogger(__name__)

T = TypeVar("T")
Row = Dict[str, Any]
ErrorClassifier = Callable[[BaseException], bool]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 0.1
DEFAULT_BACKOFF_CAP = 2.0

# Connection-class and contention failures worth another attempt
_TRANSIENT_DRIVER_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
)


# ====================
# Error classification
# ====================


def is_transient_error(error: BaseException) -> bool:
    """Default retry predicate: only infrastructure hiccups are retried"""
    if isinstance(error, StorageError):
        return False
    if isinstance(error, (asyncio.TimeoutError, ConnectionError, OSError)):
        return True
    return isinstance(error, _TRANSIENT_DRIVER_ERRORS)


def retry_all_errors(error: BaseException) -> bool:
    """Legacy predicate: retry whatever failed"""
    return not isinstance(error, StorageError)


def backoff_delay(attempt: int, base: float = DEFAULT_BACKOFF_BASE, cap: float = DEFAULT_BACKOFF_CAP) -> float:
    """Delay after failed attempt number ``attempt`` (1-based): min(base * 2^attempt, cap)"""
    return min(base * (2 ** attempt), cap)


def translate_driver_error(error: BaseException, attempts: int = 1) -> StorageError:
    """Map a driver exception to the storage error taxonomy"""
    if isinstance(error, StorageError):
        return error
    if isinstance(error, asyncpg.exceptions.UniqueViolationError):
        return UniqueViolation(getattr(error, "constraint_name", None), attempts=attempts)
    if isinstance(error, asyncpg.exceptions.ForeignKeyViolationError):
        return ForeignKeyViolation(getattr(error, "constraint_name", None), attempts=attempts)
    return StorageError(attempts=attempts)


# ====================
# Query executor
# ====================


class QueryExecutor:
    """Executes single statements with bounded retry

    ``driver`` is anything exposing asyncpg's ``fetch``/``fetchrow``/
    ``fetchval``/``execute`` coroutines: a Pool, or a Connection inside a
    transaction.
    """

    def __init__(
        self,
        driver: Any,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_cap: float = DEFAULT_BACKOFF_CAP,
        is_transient: ErrorClassifier = is_transient_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "pool",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._driver = driver
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.is_transient = is_transient
        self._sleep = sleep
        self.name = name

    def scoped(self, driver: Any, max_attempts: int = 1, name: str = "transaction") -> "QueryExecutor":
        """Executor bound to another driver with the same policy"""
        return QueryExecutor(
            driver,
            max_attempts=max_attempts,
            backoff_base=self.backoff_base,
            backoff_cap=self.backoff_cap,
            is_transient=self.is_transient,
            sleep=self._sleep,
            name=name,
        )

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None, max_attempts: Optional[int] = None) -> str:
        """Execute INSERT/UPDATE/DELETE/DDL, returning the command status"""
        return await self._run("execute", sql, params, max_attempts)

    async def fetch(self, sql: str, params: Optional[Sequence[Any]] = None, max_attempts: Optional[int] = None) -> List[Row]:
        """Execute a query and return all rows as dictionaries"""
        rows = await self._run("fetch", sql, params, max_attempts)
        return [dict(row) for row in rows or []]

    async def fetch_row(self, sql: str, params: Optional[Sequence[Any]] = None, max_attempts: Optional[int] = None) -> Optional[Row]:
        """Execute a query and return the first row or None"""
        row = await self._run("fetchrow", sql, params, max_attempts)
        return dict(row) if row is not None else None

    async def fetch_value(self, sql: str, params: Optional[Sequence[Any]] = None, max_attempts: Optional[int] = None) -> Any:
        """Execute a query and return the first column of the first row"""
        return await self._run("fetchval", sql, params, max_attempts)

    def _wait(self, retry_state: RetryCallState) -> float:
        return backoff_delay(retry_state.attempt_number, self.backoff_base, self.backoff_cap)

    def _log_attempt_failure(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"[{self.name}] Query attempt {retry_state.attempt_number}/{self._attempt_limit(retry_state)} failed: {error!r}"
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.debug(f"[{self.name}] Retrying query in {delay:.3f}s")

    @staticmethod
    def _attempt_limit(retry_state: RetryCallState) -> int:
        return getattr(retry_state.retry_object.stop, "max_attempt_number", 0)

    async def _run(self, method: str, sql: str, params: Optional[Sequence[Any]], max_attempts: Optional[int]) -> Any:
        attempts_allowed = max_attempts or self.max_attempts
        call = getattr(self._driver, method)
        attempts = 0

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts_allowed),
            wait=self._wait,
            retry=retry_if_exception(self.is_transient),
            after=self._log_attempt_failure,
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    return await call(sql, *(params or ()))
        except Exception as e:
            if self.is_transient(e):
                logger.error(f"[{self.name}] Query failed after {attempts} attempt(s): {e!r}")
            else:
                logger.error(f"[{self.name}] Query failed with non-retryable error: {e!r}")
            raise translate_driver_error(e, attempts) from e


# ====================
# Transaction runner
# ====================


class TransactionRunner:
    """All-or-nothing execution of multi-statement writes"""

    def __init__(self, pool: Any, executor: QueryExecutor):
        self._pool = pool
        self._executor = executor

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        try:
            conn = await self._pool.acquire()
        except Exception as e:
            logger.error(f"Failed to acquire database connection: {e!r}")
            raise translate_driver_error(e) from e
        try:
            yield conn
        finally:
            await self._pool.release(conn)

    async def _begin(self, transaction: Any) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._executor.max_attempts),
            wait=self._executor._wait,
            retry=retry_if_exception(self._executor.is_transient),
            sleep=self._executor._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await transaction.start()
        except Exception as e:
            logger.error(f"Failed to begin transaction: {e!r}")
            raise translate_driver_error(e) from e

    @staticmethod
    async def _rollback(transaction: Any) -> None:
        try:
            await transaction.rollback()
        except Exception as rollback_error:
            logger.error(f"Transaction rollback failed: {rollback_error!r}")

    async def run_in_transaction(self, work: Callable[[QueryExecutor], Awaitable[T]]) -> T:
        """
        Run ``work(tx)`` inside one database transaction.

        Commits when ``work`` returns; rolls back and re-raises the original
        exception when it (or the commit) fails. A rollback failure is logged
        and never replaces the original error.
        """
        async with self._connection() as conn:
            transaction = conn.transaction()
            await self._begin(transaction)
            tx = self._executor.scoped(conn)

            try:
                result = await work(tx)
            except BaseException:
                await self._rollback(transaction)
                raise

            try:
                await transaction.commit()
            except Exception as e:
                logger.error(f"Transaction commit failed: {e!r}")
                await self._rollback(transaction)
                raise translate_driver_error(e) from e

            return result


# ====================
# Client
# ====================


class PostgresClient:
    """Owns the asyncpg pool and the executor/transaction runner built on it"""

    def __init__(
        self,
        infra: Optional[InfraConfig] = None,
        ledger: Optional[LedgerConfig] = None,
    ):
        self.infra = infra or InfraConfig.from_env()
        self.ledger = ledger or LedgerConfig.from_env()
        self._pool: Optional[asyncpg.Pool] = None
        self._executor: Optional[QueryExecutor] = None
        self._transactions: Optional[TransactionRunner] = None

    async def connect(self) -> None:
        """Create the connection pool"""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            dsn=self.infra.postgres_dsn,
            min_size=self.infra.pool_min_size,
            max_size=self.infra.pool_max_size,
            command_timeout=self.infra.command_timeout,
        )
        self._executor = QueryExecutor(
            self._pool,
            max_attempts=self.ledger.query_max_attempts,
            backoff_base=self.ledger.query_backoff_base,
            backoff_cap=self.ledger.query_backoff_cap,
            is_transient=retry_all_errors if self.ledger.retry_all_errors else is_transient_error,
        )
        self._transactions = TransactionRunner(self._pool, self._executor)
        logger.info(
            f"PostgreSQL pool ready: {self.infra.postgres_host}:{self.infra.postgres_port}/{self.infra.postgres_db}"
        )

    @property
    def executor(self) -> QueryExecutor:
        if self._executor is None:
            raise RuntimeError("PostgreSQL client not connected. Call connect() first.")
        return self._executor

    @property
    def transactions(self) -> TransactionRunner:
        if self._transactions is None:
            raise RuntimeError("PostgreSQL client not connected. Call connect() first.")
        return self._transactions

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            return await self.executor.fetch_value("SELECT 1", max_attempts=1) == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._executor = None
            self._transactions = None
            logger.info("PostgreSQL pool closed")


# Process-wide client
_postgres_client: Optional[PostgresClient] = None


async def get_postgres_client(**kwargs) -> PostgresClient:
    """Get or create the connected process-wide PostgreSQL client"""
    global _postgres_client

    if _postgres_client is None:
        client = PostgresClient(**kwargs)
        await client.connect()
        _postgres_client = client

    return _postgres_client


async def close_postgres_client() -> None:
    """Close the process-wide PostgreSQL client"""
    global _postgres_client
    if _postgres_client is not None:
        await _postgres_client.close()
        _postgres_client = None


__all__ = [
    "QueryExecutor",
    "TransactionRunner",
    "PostgresClient",
    "get_postgres_client",
    "close_postgres_client",
    "is_transient_error",
    "retry_all_errors",
    "backoff_delay",
    "translate_driver_error",
]
