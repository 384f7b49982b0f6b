"""
Activity log writer.

Entries are written fire-and-forget on a dedicated session: a failed write is
logged and dropped, never propagated into the workflow call that emitted it.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from backoffice.models.activity_log import ActivityLog
from backoffice.services.actor import Actor

logger = logging.getLogger(__name__)


@dataclass
class ActivityEntry:
    user_id: str
    user_type: str
    action: str
    description: str
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def for_actor(cls, actor: Actor, action: str, description: str, **kwargs: Any) -> "ActivityEntry":
        return cls(user_id=actor.user_id, user_type=actor.user_type, action=action, description=description, **kwargs)


ActivitySink = Callable[[ActivityEntry], None]


class ActivityLogWriter:
    """Persist ActivityEntry rows through ``bind`` (engine or connection)."""

    def __init__(self, bind: Engine):
        self.bind = bind

    def __call__(self, entry: ActivityEntry) -> None:
        try:
            with Session(self.bind) as session:
                session.add(ActivityLog(**asdict(entry)))
                session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Failed to write activity log entry %s for %s %s",
                entry.action,
                entry.target_type,
                entry.target_id,
            )
