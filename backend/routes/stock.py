# backend/routes/stock.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from models.stock import StockLog
from models.users import User
from utils.tokenJWT import role_required
from utils.audit import write_log, client_ip
from services import stock_log as stock_log_service
from services import stock_movements
from services.stock_movements import DeliveryLine
import schemas.stock as stock_schemas

router = APIRouter(tags=["Stock"])

# Roles allowed to read and move stock
STOCK_ROLES = ("admin", "manager", "warehouse")

def _log_to_out(entry: StockLog) -> stock_schemas.StockLogResponse:
    return stock_schemas.StockLogResponse(
        id=entry.id,
        item_id=entry.item_id,
        item_name=entry.item.name if entry.item else "Unknown",
        item_code=entry.item.code if entry.item else "-",
        type=entry.type,
        transaction_type=entry.transaction_type,
        quantity=entry.quantity,
        previous_stock=entry.previous_stock,
        current_stock=entry.current_stock,
        notes=entry.notes,
        reference_no=entry.reference_no,
        user_id=entry.user_id,
        user_name=(entry.user.full_name or entry.user.username) if entry.user else None,
        created_by=entry.created_by,
        created_at=entry.created_at,
    )


@router.get("/logs", response_model=stock_schemas.StockLogPage)
def list_stock_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    item_id: Optional[int] = Query(None),
    type: Optional[stock_schemas.StockMovementType] = Query(None),
    reference_no: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STOCK_ROLES)),
):
    rows, total = stock_log_service.list_entries(
        db, page=page, limit=limit, item_id=item_id, type=type, reference_no=reference_no
    )
    return {"items": [_log_to_out(e) for e in rows], "total": total, "page": page, "limit": limit}


@router.post("/adjust", response_model=stock_schemas.StockLogResponse)
def adjust_stock(
    payload: stock_schemas.StockAdjustCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STOCK_ROLES)),
):
    entry = stock_movements.adjust_stock(
        db,
        item_id=payload.item_id,
        type=payload.type,
        quantity=payload.quantity,
        staff_id=current_user.id,
        notes=payload.notes,
        reference_no=payload.reference_no,
    )
    out = _log_to_out(entry)
    write_log(db, actor=f"staff:{current_user.id}", action="STOCK_ADJUSTMENT", resource="stock",
              status="SUCCESS", ip=client_ip(request), meta={"stock_log_id": out.id, "type": payload.type})
    return out


@router.post("/delivery", response_model=dict)
def receive_delivery(
    payload: stock_schemas.DeliveryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*STOCK_ROLES)),
):
    entries = stock_movements.receive_delivery(
        db,
        [DeliveryLine(item_id=it.item_id, quantity=it.quantity) for it in payload.items],
        staff_id=current_user.id,
        reason=payload.reason,
        reference_no=payload.reference_no,
    )
    write_log(db, actor=f"staff:{current_user.id}", action="STOCK_DELIVERY", resource="stock",
              status="SUCCESS", ip=client_ip(request), meta={"count": len(entries)})
    return {"message": f"Received {len(entries)} lines", "count": len(entries)}
