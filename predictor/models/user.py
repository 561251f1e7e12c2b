from datetime import datetime, timezone

from predictor import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100))

    # Cumulative season totals, maintained by weekly scoring
    points = db.Column(db.Integer, default=0, nullable=False)
    correct_results = db.Column(db.Integer, default=0, nullable=False)
    incorrect_results = db.Column(db.Integer, default=0, nullable=False)
    full_houses = db.Column(db.Integer, default=0, nullable=False)
    blanks = db.Column(db.Integer, default=0, nullable=False)

    # Lowest week not yet credited to this user
    current_week = db.Column(db.Integer, default=1, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def name(self):
        """Name shown on tables, falling back to the username"""
        return self.display_name or self.username

    @property
    def accuracy(self):
        """Percentage of scored predictions that were correct"""
        total = (self.correct_results or 0) + (self.incorrect_results or 0)
        if total == 0:
            return 0.0
        return round((self.correct_results or 0) / total * 100, 1)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "points": self.points,
            "correctResults": self.correct_results,
            "incorrectResults": self.incorrect_results,
            "fullHouses": self.full_houses,
            "blanks": self.blanks,
            "currentWeek": self.current_week,
        }
