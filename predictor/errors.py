"""Error taxonomy for the prediction competition.

Every error carries the HTTP status it is rendered with by the application's
error handler, so routes can simply let them propagate.
"""


class PredictorError(Exception):
    status_code = 500

    def __init__(self, message=None, status_code=None, **details):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    @property
    def code(self):
        return self.__class__.__name__

    @property
    def message(self):
        return str(self)

    def to_dict(self):
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class NoSuchWeek(PredictorError):
    """Week has no matches"""

    status_code = 404

    def __init__(self, week, message=None):
        self.week = week
        super().__init__(message or f"Week {week} has no matches", week=week)


class NotFound(PredictorError):
    """Record not found"""

    status_code = 404


class NotFullyResolved(PredictorError):
    """Not every match in the week has a result"""

    status_code = 409

    def __init__(self, week, unresolved=None):
        self.week = week
        self.unresolved = list(unresolved or [])
        super().__init__(
            f"Week {week} has {len(self.unresolved)} match(es) without a result",
            week=week,
            unresolvedMatchIds=self.unresolved,
        )


class AlreadyScored(PredictorError):
    """Week has already been scored"""

    status_code = 409

    def __init__(self, week):
        self.week = week
        super().__init__(
            f"Week {week} has already been scored; pass force to re-apply",
            week=week,
        )


class RateLimited(PredictorError):
    """Fixture API rate limit exceeded"""

    status_code = 429


class FixtureApiError(PredictorError):
    """Fixture API request failed"""

    status_code = 502


class StoreError(PredictorError):
    """Database write failed"""

    status_code = 503


class ValidationError(PredictorError):
    """Invalid request"""

    status_code = 400


class InvalidPick(ValidationError):
    """Invalid prediction"""


class PicksLocked(PredictorError):
    """Predictions for this week are locked"""

    status_code = 403


class WeekAlreadySeeded(PredictorError):
    """Week already has matches"""

    status_code = 409


class ConfigurationError(PredictorError):
    """Required configuration is missing"""

    status_code = 500
