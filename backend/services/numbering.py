# backend/services/numbering.py
import secrets
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from utils.errors import TransactionFailure

NUMBER_ATTEMPTS = 5


def generate_number(prefix: str) -> str:
    # UTC timestamp down to microseconds keeps numbers sortable by creation time;
    # 24 random bits separate numbers minted in the same microsecond
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return f"{prefix}-{stamp}-{secrets.token_hex(3).upper()}"


def next_unique_number(db: Session, column, prefix: str) -> str:
    """Mint a number and confirm no row already carries it."""
    for _ in range(NUMBER_ATTEMPTS):
        number = generate_number(prefix)
        if db.query(column).filter(column == number).first() is None:
            return number
    raise TransactionFailure("Could not allocate a unique document number")
