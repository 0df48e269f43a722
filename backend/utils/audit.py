import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)

def write_log(db: Session, *, actor, action, resource, status="SUCCESS", ip=None, meta=None):
    entry = Log(actor=actor, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    db.commit()

# Records a failed attempt while its own exception is being handled; a broken
# log write must not replace the error the caller is about to see
def write_failure_log(db: Session, **fields):
    try:
        write_log(db, status="FAIL", **fields)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record failed %s", fields.get("action"))

def client_ip(request):
    return request.client.host if request is not None and request.client else None
