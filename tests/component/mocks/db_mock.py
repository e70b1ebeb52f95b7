"""
Database Mock for Component Testing

Stands in for the asyncpg Pool/Connection that QueryExecutor and
TransactionRunner drive. Each driver method pops the next scripted
outcome: an exception instance is raised, anything else is returned.
"""
from typing import Any, Dict, List, Optional


class MockTransaction:
    """Records start/commit/rollback calls on one connection"""

    def __init__(self, connection: "MockConnection"):
        self.connection = connection
        self.started = False
        self.committed = False
        self.rolled_back = False
        self._start_errors: List[Exception] = list(connection.start_errors)
        self._commit_error = connection.commit_error
        self._rollback_error = connection.rollback_error

    async def start(self):
        self.connection.calls.append(("start",))
        if self._start_errors:
            raise self._start_errors.pop(0)
        self.started = True

    async def commit(self):
        self.connection.calls.append(("commit",))
        if self._commit_error:
            raise self._commit_error
        self.committed = True

    async def rollback(self):
        self.connection.calls.append(("rollback",))
        if self._rollback_error:
            raise self._rollback_error
        self.rolled_back = True


class MockConnection:
    """asyncpg.Connection stand-in with scripted results"""

    def __init__(self):
        self.calls: List[tuple] = []
        self._scripts: Dict[str, List[Any]] = {}
        self._defaults: Dict[str, Any] = {
            "execute": "OK",
            "fetch": [],
            "fetchrow": None,
            "fetchval": None,
        }
        self.transactions: List[MockTransaction] = []
        self.start_errors: List[Exception] = []
        self.commit_error: Optional[Exception] = None
        self.rollback_error: Optional[Exception] = None

    # Test helper methods

    def script(self, method: str, *outcomes: Any) -> "MockConnection":
        """Queue outcomes for ``method``; exceptions are raised in turn"""
        self._scripts.setdefault(method, []).extend(outcomes)
        return self

    def set_default(self, method: str, value: Any) -> "MockConnection":
        self._defaults[method] = value
        return self

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def _call(self, method: str, sql: str, args: tuple) -> Any:
        self.calls.append((method, sql, args))
        queue = self._scripts.get(method)
        outcome = queue.pop(0) if queue else self._defaults[method]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    # Driver API used by QueryExecutor

    async def execute(self, sql: str, *args: Any) -> Any:
        return await self._call("execute", sql, args)

    async def fetch(self, sql: str, *args: Any) -> Any:
        return await self._call("fetch", sql, args)

    async def fetchrow(self, sql: str, *args: Any) -> Any:
        return await self._call("fetchrow", sql, args)

    async def fetchval(self, sql: str, *args: Any) -> Any:
        return await self._call("fetchval", sql, args)

    def transaction(self) -> MockTransaction:
        tx = MockTransaction(self)
        self.transactions.append(tx)
        return tx


class MockPool(MockConnection):
    """asyncpg.Pool stand-in handing out a single connection"""

    def __init__(self, connection: Optional[MockConnection] = None):
        super().__init__()
        self.connection = connection or MockConnection()
        self.acquired = 0
        self.released = 0
        self.acquire_error: Optional[Exception] = None

    async def acquire(self) -> MockConnection:
        if self.acquire_error:
            raise self.acquire_error
        self.acquired += 1
        return self.connection

    async def release(self, connection: MockConnection) -> None:
        self.released += 1
