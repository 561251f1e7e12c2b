"""
Who started an operation.

Built once at the edge (an admin route, the scheduler or the CLI) and passed
down explicitly. Services read ``source`` for auditing and never inspect the
request to decide whether the caller is trusted.
"""

from dataclasses import dataclass, field
from datetime import datetime

from predictor.utils.timezone_utils import get_utc_time


@dataclass(frozen=True)
class InvocationContext:
    started_at: datetime = field(default_factory=get_utc_time, compare=False)

    @property
    def source(self):
        raise NotImplementedError


@dataclass(frozen=True)
class ManualAuthenticated(InvocationContext):
    """An admin call that presented the shared secret"""

    credential: str = field(default="", repr=False)
    remote_addr: str = None

    @property
    def source(self):
        return "manual"


@dataclass(frozen=True)
class ScheduledTrusted(InvocationContext):
    """An internal trigger: the background scheduler or the management CLI"""

    trigger: str = "scheduler"

    @property
    def source(self):
        return self.trigger
