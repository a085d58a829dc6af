import logging
import threading
from concurrent.futures import Future
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from intake.core.config import settings
from intake.core.errors import classify_database_error

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


def build_engine(url: str, connect_timeout: int) -> Engine:
    """Create the SQLAlchemy engine with a bounded connect timeout."""
    options = {"pool_pre_ping": True}  # Verify connections before using them
    if url.startswith("postgresql"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=connect_timeout,
            connect_args={"connect_timeout": connect_timeout},
        )
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False, "timeout": connect_timeout}
    return create_engine(url, **options)


class DatabasePool:
    """
    Process-wide, lazily established database connection handle.

    ``ensure_connected()`` is single-flight: the first caller opens and
    probes the engine while concurrent callers block on the same pending
    attempt and receive its outcome. A failed attempt is cleared so the next
    call retries from scratch.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        engine_factory: Optional[Callable[[], Engine]] = None,
    ):
        self.url = url or settings.DATABASE_URL
        self.connect_timeout = connect_timeout or settings.DB_CONNECT_TIMEOUT_SECONDS
        self._engine_factory = engine_factory or (lambda: build_engine(self.url, self.connect_timeout))
        self._lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._pending: Optional[Future] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def ensure_connected(self) -> Engine:
        with self._lock:
            if self._engine is not None:
                return self._engine
            if self._pending is not None:
                pending, owner = self._pending, False
            else:
                pending, owner = Future(), True
                self._pending = pending

        if not owner:
            # Wait for the in-flight attempt; re-raises its exception on failure
            return pending.result()

        try:
            engine = self._connect()
        except Exception as exc:
            with self._lock:
                self._pending = None
            pending.set_exception(exc)
            logger.error(f"Database connection failed: {type(exc).__name__}: {exc}")
            raise

        with self._lock:
            self._engine = engine
            self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine)
            self._pending = None
        pending.set_result(engine)
        logger.info("Database connection established")
        return engine

    def _connect(self) -> Engine:
        engine = self._engine_factory()
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            engine.dispose()
            raise
        return engine

    def session(self) -> Session:
        """Open a new session, connecting first if needed."""
        self.ensure_connected()
        return self._sessionmaker()

    def dispose(self) -> None:
        with self._lock:
            engine, self._engine, self._sessionmaker = self._engine, None, None
        if engine is not None:
            engine.dispose()


# Composition root: one pool per process
pool = DatabasePool()


def get_db() -> Iterator[Session]:
    """
    Dependency function to get database session.
    Used in FastAPI endpoints with Depends(get_db)
    """
    try:
        db = pool.session()
    except Exception as exc:
        raise classify_database_error(exc) from exc
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """
    Dependency returning a session opener instead of an open session.

    The submission pipeline runs its origin and request checks before it
    touches the database, so it opens the session itself.
    """
    return pool.session


def init_db():
    """
    Register models on Base.metadata.

    Tables are managed by Alembic ("alembic upgrade head").
    """
    from intake.models import application, file_upload  # noqa: F401  Import models to register them
