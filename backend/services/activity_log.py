# backend/services/activity_log.py
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from models.log import Log


def list_entries(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    action: Optional[str] = None,
    actor: Optional[str] = None,
    resource: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Tuple[List[Log], int]:
    """Activity log page, newest first. Date bounds are inclusive whole days."""
    query = db.query(Log)
    if action:
        query = query.filter(Log.action.ilike(f"%{action}%"))
    if actor:
        query = query.filter(Log.actor == actor)
    if resource:
        query = query.filter(Log.resource.ilike(f"%{resource}%"))
    if status:
        query = query.filter(Log.status == status.upper())
    if date_from:
        query = query.filter(Log.ts >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(Log.ts <= datetime.combine(date_to, time.max))

    total = query.count()
    rows = (
        query.order_by(Log.ts.desc(), Log.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total
