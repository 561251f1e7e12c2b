from datetime import datetime, timezone

from predictor import db


class AdminAction(db.Model):
    """Audit trail of state-changing admin and automation operations"""

    __tablename__ = "admin_actions"

    id = db.Column(db.Integer, primary_key=True)

    # Action type and details
    action_type = db.Column(
        db.String(50), nullable=False
    )  # 'seed_week', 'set_results', 'score_week', 'auto_score', 'reset_users', etc.
    action_description = db.Column(db.String(500), nullable=False)

    # Week the action applied to, if any
    week = db.Column(db.Integer, nullable=True)

    # Who triggered it: 'manual', 'scheduler' or 'cli'
    source = db.Column(db.String(20), nullable=False, default="manual")

    # Additional context data (JSON)
    action_metadata = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Indexes
    __table_args__ = (
        db.Index("idx_admin_action_type", "action_type"),
        db.Index("idx_admin_action_week", "week"),
        db.Index("idx_admin_action_created", "created_at"),
    )

    def __repr__(self):
        return f"<AdminAction {self.action_type} week={self.week} via {self.source}>"

    @staticmethod
    def log_action(
        action_type, description, week=None, source="manual", action_metadata=None
    ):
        """Record an admin action and commit it.

        Audit rows are written after the work they describe has committed,
        so a failure here is logged by the caller and never undoes that work.
        """
        action = AdminAction(
            action_type=action_type,
            action_description=description[:500],
            week=week,
            source=source,
            action_metadata=action_metadata or {},
        )

        db.session.add(action)
        db.session.commit()
        return action

    def to_dict(self):
        """Convert action to dictionary for API responses"""
        return {
            "id": self.id,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "week": self.week,
            "source": self.source,
            "action_metadata": self.action_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
