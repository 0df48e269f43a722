# backend/routes/logs.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.log import LogPage
from services import activity_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/logs", tags=["Logs"])


# Activity log browser, admin only
@router.get("", response_model=LogPage)
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Action name fragment, e.g. CART"),
    actor: Optional[str] = Query(None, description="Exact actor, e.g. customer:12 or staff:3"),
    resource: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    rows, total = activity_log.list_entries(
        db,
        page=page,
        page_size=page_size,
        action=action,
        actor=actor,
        resource=resource,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )
    return {"items": rows, "total": total, "page": page, "page_size": page_size}
