from datetime import datetime, timezone
from typing import Callable, TypeVar
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from tableside.config import settings
from tableside.logging_config import get_logger
from tableside.models.core import Order, Payment

log = get_logger(__name__)

T = TypeVar("T")


def day_prefix(kind: str, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{kind}-{now.strftime('%Y%m%d')}"


def _last_seq(db: Session, column, owner_col, owner_id: str, prefix: str) -> int:
    # longest suffix first: "-10000" must rank above "-9999"
    last = (
        db.query(column)
        .filter(owner_col == owner_id, column.like(f"{prefix}-%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
        .scalar()
    )
    if not last:
        return 0
    try:
        return int(last.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


def allocate(db: Session, kind: str, owner_id: str, build: Callable[[str], T]) -> T:
    """
    Insert rows carrying a fresh daily number and commit.

    `build(number)` must add every row of the unit of work to the session
    and return the primary one. Numbers are unique per (owner, number); on a
    collision the transaction is rolled back and `build` is called again
    with the next sequence.
    """
    if kind == "ORD":
        column, owner_col = Order.order_number, Order.user_id
    else:
        column, owner_col = Payment.payment_number, Payment.user_id

    prefix = day_prefix(kind)
    start_n = _last_seq(db, column, owner_col, owner_id, prefix)

    attempts = 0
    while attempts < settings.NUMBER_RETRIES:
        number = f"{prefix}-{start_n + 1 + attempts:04d}"
        try:
            row = build(number)
            db.commit()
            return row
        except IntegrityError:
            db.rollback()
            attempts += 1
            log.warning("number collision", extra={"number": number, "attempt": attempts})

    raise HTTPException(409, detail=f"Could not allocate a unique {kind} number")
