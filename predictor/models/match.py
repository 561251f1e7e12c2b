import enum
from datetime import datetime, timezone

from predictor import db


class Outcome(str, enum.Enum):
    """The three possible outcomes of a match, from the home side's view."""

    HOME = "HOME"
    DRAW = "DRAW"
    AWAY = "AWAY"

    @classmethod
    def parse(cls, value):
        """Return the Outcome for ``value`` (case-insensitive) or None"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    @property
    def compact(self):
        """Short notation used in the weekly table (1 / X / 2)"""
        return {"HOME": "1", "DRAW": "X", "AWAY": "2"}[self.value]


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)

    # Competition week this fixture belongs to
    week = db.Column(db.Integer, nullable=False, index=True)

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)

    # Predictions close at this instant (UTC)
    lockout_time = db.Column(db.DateTime(timezone=True), nullable=False)
    locked = db.Column(db.Boolean, default=False, nullable=False)

    # HOME / DRAW / AWAY once known
    correct_result = db.Column(db.String(4), nullable=True)

    # football-data.org fixture id
    api_fixture_id = db.Column(db.Integer, nullable=True, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="match", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_match_week_lockout", "week", "lockout_time"),
    )

    def __repr__(self):
        return f"<Match {self.home_team} v {self.away_team} Week {self.week}>"

    @property
    def result(self):
        """The stored result as an Outcome (None when unset or unrecognised)"""
        return Outcome.parse(self.correct_result)

    @property
    def is_resolved(self):
        return self.result is not None

    def to_dict(self):
        return {
            "id": self.id,
            "week": self.week,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "lockoutTime": (
                self.lockout_time.isoformat() if self.lockout_time else None
            ),
            "locked": bool(self.locked),
            "correctResult": self.correct_result,
            "apiFixtureId": self.api_fixture_id,
        }
