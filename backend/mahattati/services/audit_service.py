import logging
from typing import Any, Optional
from fastapi import Request
from sqlalchemy.orm import Session
from mahattati.models.log import LogEntry

logger = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


class AuditService:
    """Writes application events to the logs table"""

    @staticmethod
    def record(
        db: Session,
        event_type: str,
        user_id: Optional[int] = None,
        request: Optional[Request] = None,
        **metadata: Any,
    ) -> LogEntry:
        entry = LogEntry(
            event_type=event_type,
            user_id=user_id,
            ip_address=client_ip(request),
            details=metadata or {},
        )
        db.add(entry)
        db.commit()
        logger.debug("Audit event %s (user %s)", event_type, user_id)
        return entry


audit_service = AuditService()
