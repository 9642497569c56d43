"""Database configuration and initialization."""
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri, echo):
    """Pool options per backend (SQLite has no connection pool to size)."""
    if database_uri.startswith('sqlite'):
        return {
            'echo': echo,
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        }
    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    if app.config.get('DB_CREATE_ALL'):
        create_all()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table registered on Base."""
    # Import models so their tables are registered on the metadata
    import jewelbill.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


def dialect_insert(session):
    """
    The dialect-specific insert() for the session's bind.

    Needed for INSERT ... ON CONFLICT, which SQLAlchemy only exposes per dialect.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"ON CONFLICT upserts are not supported on {dialect_name}")
    return insert
