# backend/routes/pos.py
import math
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import role_required
from utils.audit import write_log, write_failure_log, client_ip
from utils.errors import InventoryError
from models.users import User
from models.pos import POSTransaction
from services import pos as pos_service
from services.pos import POSLine
from schemas.pos import (
    POSTransactionCreate, POSTransactionResult, POSTransactionPage, POSTransactionOut,
    POSTransactionDetail, POSTransactionLineOut,
)

router = APIRouter(prefix="/pos", tags=["POS"])

POS_ROLES = ("admin", "manager", "cashier")

def _header_fields(t: POSTransaction) -> dict:
    return dict(
        id=t.id,
        transaction_number=t.transaction_number,
        customer_id=t.customer_id,
        customer_name=t.customer.name if t.customer else None,
        user_id=t.user_id,
        cashier_name=t.cashier.username if t.cashier else None,
        payment_method=t.payment_method,
        total_amount=t.total_amount,
        paid_amount=t.paid_amount,
        change_amount=t.change_amount,
        status=t.status,
        created_at=t.created_at,
    )

# Register a counter sale
@router.post("/transactions", response_model=POSTransactionResult)
def create_pos_transaction(
    payload: POSTransactionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*POS_ROLES)),
):
    lines = [POSLine(item_id=it.item_id, quantity=it.quantity, unit_price=it.price) for it in payload.items]
    actor = f"staff:{current_user.id}"
    try:
        result = pos_service.create_transaction(
            db,
            cashier_id=current_user.id,
            lines=lines,
            payment_method=payload.payment_method,
            paid_amount=payload.paid_amount,
            customer_id=payload.customer_id,
        )
    except InventoryError as exc:
        write_failure_log(db, actor=actor, action="POS_SALE", resource="pos",
                          ip=client_ip(request), meta={"error": exc.code, "lines": len(lines)})
        raise

    write_log(db, actor=actor, action="POS_SALE", resource="pos",
              status="SUCCESS", ip=client_ip(request),
              meta={"transaction_id": result.transaction_id, "transaction_number": result.transaction_number,
                    "total": result.total})
    return POSTransactionResult(
        transaction_id=result.transaction_id,
        transaction_number=result.transaction_number,
        total=result.total,
        paid_amount=result.paid_amount,
        change=result.change,
        receipt=result.receipt,
    )

# Paged list of counter sales, newest first
@router.get("/transactions", response_model=POSTransactionPage)
def list_pos_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*POS_ROLES)),
):
    rows, total = pos_service.list_transactions(db, page=page, limit=limit)
    return {
        "items": [POSTransactionOut(**_header_fields(t)) for t in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "total_pages": math.ceil(total / limit)},
    }

@router.get("/transactions/{transaction_id}", response_model=POSTransactionDetail)
def get_pos_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(*POS_ROLES)),
):
    t = pos_service.get_transaction(db, transaction_id)
    items = [
        POSTransactionLineOut(
            item_id=it.item_id,
            item_name=it.item.name if it.item else "Deleted item",
            item_code=it.item.code if it.item else "-",
            quantity=it.quantity,
            unit_price=it.unit_price,
            total_price=it.total_price,
        )
        for it in t.items
    ]
    return POSTransactionDetail(**_header_fields(t), items=items)
