import logging
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.models.event import Event

logger = logging.getLogger(__name__)


class EventService:
    """Audit trail of business changes.

    ``record`` only adds the row to the session; the caller commits it
    together with the change it describes.
    """

    def record(
        self,
        db: Session,
        organization_id: int,
        entity_type: str,
        entity_id: Optional[int],
        event_type: str,
        payload: Optional[Dict] = None
    ) -> Event:
        event = Event(
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload=payload or {}
        )
        db.add(event)
        logger.debug(f"Recorded {event_type} for {entity_type} {entity_id}")
        return event

    def list_events(
        self,
        db: Session,
        organization_id: int,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        event_type: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = db.query(Event).filter(Event.organization_id == organization_id)
        if entity_type:
            query = query.filter(Event.entity_type == entity_type)
        if entity_id is not None:
            query = query.filter(Event.entity_id == entity_id)
        if event_type:
            query = query.filter(Event.event_type == event_type)

        total = query.count()
        events: List[Event] = query.order_by(Event.created_at.desc(), Event.id.desc()).offset(offset).limit(limit).all()
        return {"success": True, "events": events, "total": total}


event_service = EventService()
