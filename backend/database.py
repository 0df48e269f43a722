# backend/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from config import settings
from utils.errors import InventoryError, TransactionFailure

logger = logging.getLogger(__name__)

# 1. Address from settings (.env / environment) or the local SQLite default
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. SQLAlchemy needs postgresql:// instead of the postgres:// some hosts hand out
if SQLALCHEMY_DATABASE_URL and SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)


def make_engine(url: str):
    # SQLite connections are shared across the request thread pool
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Register every model on Base.metadata before creating tables
    import models.users, models.customers, models.item, models.cart  # noqa: F401
    import models.order, models.pos, models.stock, models.log  # noqa: F401
    Base.metadata.create_all(bind=engine)


@contextmanager
def transaction(db: Session):
    """
    Run a block as one atomic unit on the given session.

    Commits when the block finishes, rolls back every write otherwise. Domain
    errors are re-raised unchanged; database faults surface as TransactionFailure.
    """
    try:
        yield db
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction rolled back after database error")
        raise TransactionFailure("Could not complete the operation, nothing was saved") from exc
    except BaseException:
        db.rollback()
        raise
