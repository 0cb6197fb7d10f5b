# app/crud/crud_audit_log.py
from typing import List, Optional, Any, Dict
from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog
from app.schemas.payment import AuditLogCreate


class CRUDAuditLog:
    """
    CRUD operations for AuditLog model.

    Note: This is a special CRUD class that only allows create and read operations.
    Audit logs are immutable and cannot be updated or deleted.
    """

    def __init__(self, model):
        self.model = model

    def get(self, db: Session, *, id: str) -> Optional[AuditLog]:
        """Get an audit log entry by ID."""
        return db.query(self.model).filter(self.model.id == id).first()

    def get_by_entity(
        self, db: Session, *, entity_type: str, entity_id: str
    ) -> List[AuditLog]:
        """Get the history of one entity, oldest first."""
        return (
            db.query(self.model)
            .filter(
                self.model.entity_type == entity_type,
                self.model.entity_id == entity_id,
            )
            .order_by(self.model.created_at, self.model.id)
            .all()
        )

    def create(self, db: Session, *, obj_in: AuditLogCreate) -> AuditLog:
        """Create a new audit log entry inside the caller's transaction."""
        db_obj = AuditLog(**obj_in.model_dump())
        db.add(db_obj)
        db.flush()
        return db_obj

    def log_action(
        self,
        db: Session,
        *,
        action: str,
        actor_type: str,
        entity_type: str,
        entity_id: str,
        actor_id: Optional[str] = None,
        previous_state: Optional[Dict[str, Any]] = None,
        new_state: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
    ) -> AuditLog:
        """Convenience method to log an action."""
        obj_in = AuditLogCreate(
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_state=previous_state,
            new_state=new_state,
            event_id=event_id,
        )
        return self.create(db, obj_in=obj_in)


audit_log = CRUDAuditLog(AuditLog)
