"""Telemetry service: records user-visible actions and errors.

Events are immutable. Writes never raise; a failed telemetry insert is
logged and rolled back so it cannot break the operation that produced it.

Usage in service layer:
    telemetry_service.log(db, user_id="abc", event_type="workflow_deployed",
                          category="deployment", workflow_id="wf-123",
                          data={"n8n_workflow_id": "42"})
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..models.telemetry import TelemetryEvent

logger = logging.getLogger(__name__)


def log(
    db: Session,
    user_id: Optional[str],
    event_type: str,
    category: str,
    project_id: Optional[str] = None,
    workflow_id: Optional[str] = None,
    data: Optional[dict] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    duration_ms: Optional[int] = None,
) -> None:
    """Write a telemetry event. Never raises."""
    try:
        event = TelemetryEvent(
            user_id=user_id,
            event_type=event_type,
            event_category=category,
            project_id=project_id,
            workflow_id=workflow_id,
            event_data=json.dumps(data, default=str) if data else None,
            success=success,
            error_message=error_message,
            duration_ms=duration_ms,
        )
        db.add(event)
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to write telemetry event %s: %s", event_type, e)
        db.rollback()


def count_since(
    db: Session,
    user_id: str,
    since: datetime,
    event_types: Optional[Iterable[str]] = None,
) -> int:
    """Number of events a user produced since *since*, optionally of the given types."""
    query = db.query(TelemetryEvent).filter(
        TelemetryEvent.user_id == user_id, TelemetryEvent.created_at >= since
    )
    if event_types is not None:
        query = query.filter(TelemetryEvent.event_type.in_(list(event_types)))
    return query.count()


def purge_old_events(db: Session, days: int = 90) -> int:
    """Delete events older than `days`. Returns count of deleted rows.

    Skipped when days <= 0 (keep forever). Never raises.
    """
    if days <= 0:
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    try:
        count = db.query(TelemetryEvent).filter(TelemetryEvent.created_at < cutoff).delete()
        db.commit()
        return count
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge telemetry events: %s", e)
        db.rollback()
        return 0
