"""
Log stream storage for CI/CD configuration runs.

Each run owns an append-only, ordered list of structured log entries keyed
by its request id and stored in a Redis list. Clients poll the stream to
follow a run; appending never fails observably to the caller.

Includes connection pooling and retry logic for resilience.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional
from contextlib import asynccontextmanager
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError, ConnectionError, TimeoutError

from cicd_bot.models.error import ErrorRecord
from cicd_bot.models.log_entry import LogEntry, LogEvent, LogStatus


logger = logging.getLogger(__name__)


class LogStoreConnectionError(Exception):
    """Raised when the log store connection fails after retries."""
    pass


class LogsService:
    """
    Redis-backed log stream per CI/CD request.

    Provides methods for:
    - Appending structured entries (list push)
    - Reading a whole stream back (list range)
    - Deriving a run status from the last entry
    """

    LOGS_KEY = "logs:{ci_cd_id}"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        connection_timeout: int = 5
    ):
        """
        Initialize the log store.

        Args:
            redis_url: Redis connection URL. If None, will load from settings.
            ttl_seconds: Expiry of a stream after its last append. If None,
                will load from settings.
            max_retries: Maximum number of retry attempts for transient errors
            retry_delay: Base delay between retries (exponential backoff)
            connection_timeout: Connection timeout in seconds
        """
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._connection_timeout = connection_timeout

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool.

        Should be called during application startup.

        Raises:
            LogStoreConnectionError: If connection fails
        """
        try:
            if not self._redis_url:
                from cicd_bot.config import settings
                self._redis_url = settings.redis_url

            self._pool = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                decode_responses=True,
                socket_timeout=self._connection_timeout,
                socket_connect_timeout=self._connection_timeout
            )

            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()

            logger.info("Log store connection pool initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize log store connection pool: {e}")
            raise LogStoreConnectionError(f"Failed to connect to Redis: {e}") from e

    async def close(self) -> None:
        """
        Close Redis connection pool.

        Should be called during application shutdown.
        """
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

        logger.info("Log store connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        """
        Get Redis client with connection check.

        Yields:
            redis.Redis: Redis client instance

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Log store not initialized. Call initialize() first.")

        yield self._client

    async def _retry_operation(self, operation, *args, **kwargs):
        """
        Execute Redis operation with retry logic.

        Args:
            operation: Async function to execute
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Operation result

        Raises:
            LogStoreConnectionError: If operation fails after all retries
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                return await operation(*args, **kwargs)

            except (ConnectionError, TimeoutError) as e:
                last_error = e
                if attempt < self._max_retries - 1:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Log store operation failed (attempt {attempt + 1}/{self._max_retries}), "
                        f"retrying in {delay}s: {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Log store operation failed after {self._max_retries} attempts: {e}")

            except RedisError as e:
                # Non-transient errors, don't retry
                logger.error(f"Log store operation failed with non-transient error: {e}")
                raise

        raise LogStoreConnectionError(
            f"Log store operation failed after {self._max_retries} retries: {last_error}"
        )

    def _logs_key(self, ci_cd_id: str) -> str:
        """Get Redis key for a request's log stream."""
        return self.LOGS_KEY.format(ci_cd_id=ci_cd_id)

    def _ttl(self) -> int:
        if self._ttl_seconds is None:
            from cicd_bot.config import settings
            self._ttl_seconds = settings.log_ttl_seconds
        return self._ttl_seconds

    async def _is_tail(self, client: redis.Redis, key: str, entry: LogEntry) -> bool:
        """Whether ``entry`` is already the last element of the stream."""
        raw_tail = await client.lindex(key, -1)
        if raw_tail is None:
            return False
        return json.loads(raw_tail).get("entry_id") == entry.entry_id

    # ========== Append ==========

    async def append(self, ci_cd_id: str, entry: LogEntry) -> None:
        """
        Append an entry to a request's log stream.

        Never raises: a failing log store is reported on the application
        log and the run carries on.

        The push and the expiry are applied as one transaction. A retry
        first checks whether the previous attempt already landed, so an
        entry whose reply was lost is never written twice.

        Args:
            ci_cd_id: CI/CD request ID
            entry: Entry to append
        """
        key = self._logs_key(ci_cd_id)
        entry_json = json.dumps(entry.model_dump(mode='json'))
        attempts = 0

        async def _append():
            nonlocal attempts
            attempts += 1
            async with self._get_client() as client:
                if attempts > 1 and await self._is_tail(client, key, entry):
                    await client.expire(key, self._ttl())
                    return

                async with client.pipeline(transaction=True) as pipe:
                    pipe.rpush(key, entry_json)
                    pipe.expire(key, self._ttl())
                    await pipe.execute()

        try:
            await self._retry_operation(_append)
            logger.debug(f"[{ci_cd_id}] {entry.render()}")
        except Exception as e:
            logger.error(
                f"Failed to append log entry for {ci_cd_id}: {e}",
                extra={"ci_cd_id": ci_cd_id, "event": entry.event.value},
            )

    async def add_log(
        self,
        ci_cd_id: str,
        event: LogEvent,
        message: str,
        error: Optional[ErrorRecord] = None,
        **fields: Any
    ) -> LogEntry:
        """
        Build and append an entry.

        Args:
            ci_cd_id: CI/CD request ID
            event: Entry kind
            message: Human-readable line
            error: Structured error, for error entries
            **fields: Event specific data

        Returns:
            The appended entry
        """
        entry = LogEntry(event=event, message=message, fields=fields, error=error)
        await self.append(ci_cd_id, entry)
        return entry

    # ========== Read ==========

    async def get_logs(self, ci_cd_id: str) -> List[LogEntry]:
        """
        Read a request's whole log stream in append order.

        Args:
            ci_cd_id: CI/CD request ID

        Returns:
            List of entries, empty if the stream does not exist

        Raises:
            LogStoreConnectionError: If operation fails after retries
        """
        async def _get():
            async with self._get_client() as client:
                raw_entries = await client.lrange(self._logs_key(ci_cd_id), 0, -1)
                return [LogEntry(**json.loads(raw)) for raw in raw_entries]

        return await self._retry_operation(_get)

    async def get_status(self, ci_cd_id: str) -> LogStatus:
        """
        Derive a run status from its log stream.

        Args:
            ci_cd_id: CI/CD request ID

        Returns:
            UNKNOWN for no stream, FINISHED/FAILED for terminal entries,
            RUNNING otherwise
        """
        entries = await self.get_logs(ci_cd_id)
        return status_of(entries)

    async def delete_logs(self, ci_cd_id: str) -> None:
        """
        Delete a request's log stream.

        Args:
            ci_cd_id: CI/CD request ID
        """
        async def _delete():
            async with self._get_client() as client:
                await client.delete(self._logs_key(ci_cd_id))
                logger.debug(f"Deleted log stream for {ci_cd_id}")

        await self._retry_operation(_delete)

    async def ping(self) -> bool:
        """
        Test Redis connection.

        Returns:
            True if connection is healthy
        """
        async def _ping():
            async with self._get_client() as client:
                return await client.ping()

        return await self._retry_operation(_ping)


def status_of(entries: List[LogEntry]) -> LogStatus:
    """Status of a run given its log entries."""
    if not entries:
        return LogStatus.UNKNOWN

    last_event = entries[-1].event
    if last_event == LogEvent.FINISHED:
        return LogStatus.FINISHED
    if last_event == LogEvent.FAILED:
        return LogStatus.FAILED
    return LogStatus.RUNNING
