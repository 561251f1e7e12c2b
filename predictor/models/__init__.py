from predictor import db  # noqa: F401 - imported for model imports

from .admin_action import AdminAction
from .match import Match, Outcome
from .prediction import Prediction
from .user import User

__all__ = [
    "User",
    "Match",
    "Outcome",
    "Prediction",
    "AdminAction",
]
