import time
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from parkmitra.core.config import (
    DATABASE_URL,
    DB_CONNECT_RETRIES,
    DB_CONNECT_BACKOFF_SECONDS,
)
from parkmitra.core.logging_config import get_logger

Base = declarative_base()
logger = get_logger()


class Database:
    """Engine + session factory owned by the process entry point.

    Services receive an opened ``Database`` in their constructor and open one
    transaction per operation through :meth:`session`.
    """

    def __init__(
        self,
        url: str = DATABASE_URL,
        retries: int = DB_CONNECT_RETRIES,
        backoff: float = DB_CONNECT_BACKOFF_SECONDS,
        **engine_kwargs,
    ):
        self.url = url
        self.retries = retries
        self.backoff = backoff
        self.engine_kwargs = engine_kwargs
        self.engine = None
        self.SessionLocal = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self):
        if self.is_open:
            return self

        engine = create_engine(self.url, pool_pre_ping=True, **self.engine_kwargs)

        attempt = 0
        while True:
            attempt += 1
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                break
            except OperationalError as e:
                if attempt >= self.retries:
                    engine.dispose()
                    logger.error(f"Database unreachable after {attempt} attempts: {e}")
                    raise
                wait = self.backoff * attempt
                logger.warning(f"Database connect attempt {attempt} failed, retrying in {wait}s")
                time.sleep(wait)

        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        logger.info("Database opened")
        return self

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database closed")
        self.engine = None
        self.SessionLocal = None

    def create_all(self):
        # Import models so every table is registered on Base.metadata
        import parkmitra.db.base  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self):
        if not self.is_open:
            raise RuntimeError("Database is not open")

        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
