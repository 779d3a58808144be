"""Activity log sink - human-readable trail of every mutating operation"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .models import ActivityLog

logger = logging.getLogger(__name__)


def record_activity(db: Session, action: str, actor: Optional[str] = None) -> ActivityLog:
    """
    Append an entry to the activity log.

    The row joins the caller's unit of work, so it is committed together with
    the change it describes and discarded if that change rolls back.
    """
    entry = ActivityLog(action=action, actor=actor)
    db.add(entry)
    logger.info(f"📝 {action}")
    return entry


def get_recent_activity(db: Session, limit: int = 10) -> list[ActivityLog]:
    return (
        db.query(ActivityLog)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )
