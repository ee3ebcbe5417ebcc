"""Database initialization and utilities for the Asset Map geocode cache"""
import os
import logging
from typing import Optional
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool, StaticPool

from models import Base
from config import Config

logger = logging.getLogger(__name__)


class Database:
    """Database management class with scoped sessions"""

    def __init__(self):
        self.config = Config()
        self.engine = None
        self.SessionFactory = None
        self.scoped = None

    @property
    def is_initialized(self) -> bool:
        return self.scoped is not None

    def initialize(self, database_url: Optional[str] = None) -> bool:
        """Initialize database connection and session registry"""
        url = database_url or os.getenv('DATABASE_URL', self.config.DATABASE_URL)
        try:
            if url in ('sqlite://', 'sqlite:///:memory:'):
                # One shared connection, otherwise every checkout sees an empty database
                self.engine = create_engine(
                    'sqlite://',
                    connect_args={'check_same_thread': False},
                    poolclass=StaticPool,
                    echo=False,
                )
                logger.info("Using in-memory SQLite geocode cache")
            elif url.startswith('sqlite'):
                db_path = url.replace('sqlite:///', '', 1)
                if db_path:
                    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
                self.engine = create_engine(
                    url,
                    connect_args={'check_same_thread': False, 'timeout': 30},
                    poolclass=NullPool,
                    echo=False,
                )
                logger.info(f"Using SQLite geocode cache at {db_path}")

                @event.listens_for(self.engine, "connect")
                def _set_sqlite_pragmas(dbapi_conn, connection_record):
                    cur = dbapi_conn.cursor()
                    cur.execute("PRAGMA journal_mode = WAL")
                    cur.execute("PRAGMA busy_timeout = 30000")
                    cur.close()
            else:
                self.engine = create_engine(url, pool_pre_ping=True, echo=False)
                logger.info("Connected to geocode cache database")

            Base.metadata.create_all(self.engine)

            self.SessionFactory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
            self.scoped = scoped_session(self.SessionFactory)

            logger.info("Database initialized successfully")
            return True

        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database initialization error: {e}")
            self.engine = None
            self.scoped = None
            return False

    def get_session(self):
        """Get a thread-local scoped session"""
        if not self.scoped:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.scoped()

    def close_all_sessions(self):
        if self.scoped:
            self.scoped.remove()


# Global database instance
db = Database()
