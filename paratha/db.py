from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from . import config, errors, models


def make_engine(url: str):
    if url.startswith("sqlite"):
        # busy timeout doubles as the store timeout for the file backend
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": config.DB_TIMEOUT_SECONDS},
        )
    return create_engine(url, pool_pre_ping=True, pool_timeout=config.DB_TIMEOUT_SECONDS)


engine = make_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=None):
    models.Base.metadata.create_all(bind=bind or engine)


def commit(db_sess: Session, conflict_message: str | None = None):
    """Commit the unit of work, reporting lost races as ``Conflict``.

    ``StaleDataError`` comes from the order version check, ``IntegrityError``
    from unique constraints (one rating per user, one default address).
    Either way the session is rolled back and nothing from the operation
    is persisted.
    """
    try:
        db_sess.commit()
    except (StaleDataError, IntegrityError) as e:
        db_sess.rollback()
        raise errors.Conflict(conflict_message) from e
