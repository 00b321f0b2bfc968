from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool
from ubconnect.config import settings
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

# Database connection pooling configuration
POOL_SIZE = 5          # Base connections per worker
MAX_OVERFLOW = 10      # Additional connections when needed
POOL_TIMEOUT = 30      # Seconds to wait for connection
POOL_RECYCLE = 1800    # Recycle connections every 30 minutes
POOL_PRE_PING = True   # Validate connections before use
CONNECT_TIMEOUT = 10   # Seconds to establish a new connection

# Global variables for lazy initialization
_engine = None
_session_local = None

Base = declarative_base()


def create_db_engine(database_url: str):
    """Build a pooled engine; SQLite files get a thread-shareable connection."""
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": CONNECT_TIMEOUT}
    else:
        connect_args = {"connect_timeout": CONNECT_TIMEOUT}
    engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=POOL_PRE_PING,
        connect_args=connect_args,
        echo=settings.DEBUG,  # Log SQL queries in debug mode
    )
    logger.info(f"Database pool configured: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s")
    return engine


def get_engine():
    """Get database engine with lazy initialization for worker compatibility."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(settings.DATABASE_URL)
    return _engine


def get_session_local():
    """Get SessionLocal with lazy initialization for worker compatibility."""
    global _session_local
    if _session_local is None:
        _session_local = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())
    return _session_local


def init_db(engine=None):
    """Create the documents table when it does not exist yet (local dev, tests)."""
    # Registers the model on Base.metadata
    from ubconnect.models import StoredDocument  # noqa: F401
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database initialization check complete")


def get_pool_status():
    """
    Get current database connection pool status.
    Useful for monitoring and debugging.
    """
    try:
        pool = get_engine().pool
        return {
            "pool_size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
            "pool_type": type(pool).__name__
        }
    except Exception as e:
        return {
            "error": f"Could not get pool status: {str(e)}",
            "pool_type": "unknown"
        }


def reset_pool():
    """Dispose the pool so the next call builds a fresh engine."""
    global _engine, _session_local
    if _engine is not None:
        logger.info("Resetting database connection pool...")
        _engine.dispose()
    _engine = None
    _session_local = None
