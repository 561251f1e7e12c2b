import logging

from sqlalchemy.exc import SQLAlchemyError

from predictor import db
from predictor.models import AdminAction

logger = logging.getLogger(__name__)


def record(context, action_type, description, week=None, metadata=None):
    """
    Write an AdminAction row for a state-changing operation.

    The operation itself has already committed, so a failed audit write is
    logged and otherwise ignored.
    """
    source = context.source if context is not None else "manual"
    try:
        return AdminAction.log_action(
            action_type,
            description,
            week=week,
            source=source,
            action_metadata=metadata,
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not record admin action {action_type}: {e}")
        return None


def recent_actions(limit=50, action_type=None):
    query = AdminAction.query
    if action_type:
        query = query.filter_by(action_type=action_type)
    return query.order_by(AdminAction.created_at.desc(), AdminAction.id.desc()).limit(limit).all()
