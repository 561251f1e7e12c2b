from datetime import datetime, timezone

from predictor import db


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)

    # Denormalised from the match so a week can be read in one query
    week = db.Column(db.Integer, nullable=False)

    # HOME / DRAW / AWAY
    pick = db.Column(db.String(4), nullable=False)

    # Set by scoring: 1 or 0, never the full-house bonus
    points_awarded = db.Column(db.Integer, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "match_id", name="unique_user_match_prediction"),
        db.Index("idx_prediction_week", "week"),
        db.Index("idx_prediction_user_week", "user_id", "week"),
    )

    def __repr__(self):
        return f"<Prediction user_id={self.user_id} match_id={self.match_id} pick={self.pick}>"

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "matchId": self.match_id,
            "week": self.week,
            "pick": self.pick,
            "pointsAwarded": self.points_awarded,
        }
