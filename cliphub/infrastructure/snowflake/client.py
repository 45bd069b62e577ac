"""
Snowflake database connection management.

Provides a small connection pool shared by the repositories. The pool is
created once at start-up as part of the application context and closed
at shutdown, so connections are reused across requests instead of being
opened per query.

Using the repository pattern means most code never touches this module
directly - it goes through ClipRepository/UserRepository, which handle
the translation between domain models and database rows.
"""

import base64
import logging
import queue
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional, Protocol

from ...core.errors import BackendUnavailableError, ConfigurationError

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def close(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "CLIPHUB"
    schema: str = "MEDIA"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class SnowflakeConnectionError(BackendUnavailableError):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_pem: bytes) -> bytes:
    """
    Convert a PEM private key into the DER bytes Snowflake expects.

    snowflake-connector wants the key itself, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        key_pem,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    return None


def connect(config: SnowflakeConfig) -> SnowflakeConnection:
    """
    Open a new Snowflake connection.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth
    """
    import snowflake.connector

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'client_session_keep_alive': True,
    }

    private_key = _read_private_key(config)
    if private_key:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = private_key
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise ConfigurationError(
            "Either SNOWFLAKE_PASSWORD or a Snowflake private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(
            f"Document store is unreachable: {e}. "
            "Check SNOWFLAKE_ACCOUNT, credentials and network access."
        )

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )
    return conn


# ---------------------------------------------------------------------------
# Connection Pool
# ---------------------------------------------------------------------------

class SnowflakeConnectionPool:
    """
    Simple connection pool for Snowflake.

    Idle connections are kept in a LIFO queue and handed out again;
    connections that come back closed (e.g. after a network error) are
    dropped. At most pool_size idle connections are retained.
    """

    def __init__(self, config: SnowflakeConfig, pool_size: int = 5, connector=connect):
        self._config = config
        self._pool_size = pool_size
        self._connect = connector
        self._idle: "queue.LifoQueue[SnowflakeConnection]" = queue.LifoQueue()

        logger.info(
            "Initialized Snowflake connection pool",
            extra={"pool_size": pool_size}
        )

    @contextmanager
    def get_connection(self) -> Generator[SnowflakeConnection, None, None]:
        """Borrow a connection, returning it to the pool afterwards."""
        try:
            conn = self._idle.get_nowait()
        except queue.Empty:
            conn = self._connect(self._config)

        try:
            yield conn
        finally:
            self._release(conn)

    def _release(self, conn: SnowflakeConnection) -> None:
        is_closed = getattr(conn, "is_closed", None)
        if callable(is_closed) and is_closed():
            return
        if self._idle.qsize() < self._pool_size:
            self._idle.put(conn)
            return
        self._close(conn)

    def close(self) -> None:
        """Close every idle connection. Called at application shutdown."""
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            self._close(conn)
        logger.info("Closed Snowflake connection pool")

    @staticmethod
    def _close(conn: SnowflakeConnection) -> None:
        try:
            conn.close()
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )
