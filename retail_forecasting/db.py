from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from retail_forecasting.config import config
from retail_forecasting.exceptions import ConfigError, DatabaseError

class Database:
    """Database connection manager for the Retail Forecasting engine."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Database, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the database connection if not already initialized."""
        if self._initialized:
            return

        self._engine = None
        self._session_factory = None
        self._session = None
        self._initialized = True

    def initialize(self, connection_string=None):
        """Initialize database connection.

        Args:
            connection_string: Optional database connection string.
                              If not provided, will use configuration.

        Raises:
            ConfigError: If no database URL is configured
            DatabaseError: If the engine cannot be created
        """
        if connection_string is None:
            connection_string = config.get_db_url()
        if not connection_string:
            raise ConfigError("No database URL configured", code='MISSING_DB_URL')

        echo = config.get_boolean('DATABASE', 'echo', False)

        if self._session is not None:
            self._session.remove()
        if self._engine is not None:
            self._engine.dispose()

        engine_kwargs = {'echo': echo}
        if connection_string.startswith('sqlite'):
            engine_kwargs['connect_args'] = {'check_same_thread': False}
            # In-memory databases live on a single shared connection
            if connection_string in ('sqlite://', 'sqlite:///:memory:'):
                engine_kwargs['poolclass'] = StaticPool
        else:
            engine_kwargs.update(
                pool_size=config.get_int('DATABASE', 'pool_size', 10),
                max_overflow=config.get_int('DATABASE', 'max_overflow', 20),
                pool_timeout=config.get_int('DATABASE', 'pool_timeout', 30),
                pool_recycle=config.get_int('DATABASE', 'pool_recycle', 1800)
            )

        try:
            self._engine = create_engine(connection_string, **engine_kwargs)
        except Exception as e:
            raise DatabaseError(f"Failed to initialize database connection: {str(e)}")

        self._session_factory = sessionmaker(bind=self._engine, autoflush=False)
        self._session = scoped_session(self._session_factory)

    def create_all_tables(self):
        """Create all tables defined in the models."""
        from retail_forecasting.models import Base
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        """Drop all tables from the database."""
        from retail_forecasting.models import Base
        Base.metadata.drop_all(self.engine)

    @property
    def session(self):
        """Get the thread-local session registry."""
        if self._session is None:
            self.initialize()
        return self._session

    @property
    def engine(self):
        """Get the database engine."""
        if self._engine is None:
            self.initialize()
        return self._engine

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self):
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as e:
            raise DatabaseError(f"Database connection test failed: {str(e)}")
        return True

# Global database instance
db = Database()

def uses_single_connection(engine):
    """Whether every session of an engine shares one DBAPI connection.

    In-memory SQLite runs on a StaticPool, where one session committing also
    commits the pending work of every other session.
    """
    return isinstance(engine.pool, StaticPool)

@contextmanager
def session_scope():
    """Session scope context manager."""
    with db.session_scope() as session:
        yield session
