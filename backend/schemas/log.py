from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime


# One activity log entry as shown in the admin dashboard
class LogResponse(BaseModel):
    id: int
    ts: datetime
    actor: Optional[str] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int
