from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class EventResponse(BaseModel):
    id: int
    organization_id: int
    entity_type: str
    entity_id: Optional[int] = None
    event_type: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
