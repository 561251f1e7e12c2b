import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

from predictor.errors import ConfigurationError, FixtureApiError, RateLimited
from predictor.models import Outcome
from predictor.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

FINAL_STATUSES = frozenset({"FINISHED", "AWARDED"})


class FixtureServerError(FixtureApiError):
    """Fixture API answered with a server error"""


def result_from_score(home_goals, away_goals):
    """Derive the match outcome from a final score"""
    if home_goals > away_goals:
        return Outcome.HOME
    if away_goals > home_goals:
        return Outcome.AWAY
    return Outcome.DRAW


@dataclass(frozen=True)
class FixtureSnapshot:
    fixture_id: int
    status: Optional[str]
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None

    @property
    def is_final(self):
        return self.status in FINAL_STATUSES

    @property
    def has_score(self):
        return self.home_goals is not None and self.away_goals is not None

    @property
    def result(self):
        """The outcome, or None while the fixture is not usable"""
        if not self.is_final or not self.has_score:
            return None
        return result_from_score(self.home_goals, self.away_goals)

    @classmethod
    def from_payload(cls, fixture_id, payload):
        full_time = (payload.get("score") or {}).get("fullTime") or {}
        return cls(
            fixture_id=fixture_id,
            status=payload.get("status"),
            home_goals=full_time.get("home"),
            away_goals=full_time.get("away"),
        )


class FixtureApiClient:
    """
    Read-only client for the football-data.org fixtures API.

    The free tier allows 10 requests per minute, so calls are spaced by a
    fixed interval rather than burst. Transient failures (connection errors,
    timeouts, 5xx) are retried with jittered exponential backoff; a 429 waits
    out a longer cooldown and is retried exactly once.
    """

    def __init__(
        self,
        api_key,
        base_url="https://api.football-data.org/v4",
        call_delay=6.5,
        rate_limit_cooldown=12.0,
        timeout=30,
        transient_policy=None,
        session=None,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock

        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "Weekly-Predictor/1.0"})
        if api_key:
            self.session.headers.update({"X-Auth-Token": api_key})

        self.transient_policy = transient_policy or RetryPolicy(
            max_attempts=3, base_delay=2.0, backoff_factor=2.0, jitter=1.0
        )
        self.rate_limit_policy = RetryPolicy(
            max_attempts=2, base_delay=rate_limit_cooldown, backoff_factor=1.0
        )

        # Rate limiting configuration
        self.min_request_interval = call_delay
        self.last_request_time = None
        self.api_calls = 0

    def _enforce_rate_limit(self):
        """Space consecutive requests by at least ``min_request_interval``"""
        if self.last_request_time is not None:
            time_since_last = self.clock() - self.last_request_time
            if time_since_last < self.min_request_interval:
                self.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = self.clock()
        self.api_calls += 1

    def _request_fixture(self, fixture_id):
        """One HTTP round trip. Returns the payload, or None for an unknown fixture."""
        self._enforce_rate_limit()

        url = f"{self.base_url}/matches/{fixture_id}"
        response = self.session.get(url, timeout=self.timeout)

        if response.status_code == 429:
            logger.warning(f"Rate limited: {url}")
            raise RateLimited(f"Fixture API rate limit reached for fixture {fixture_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.warning(f"Server error {response.status_code}: {url}")
            raise FixtureServerError(
                f"Fixture API {response.status_code} for fixture {fixture_id}"
            )
        if response.status_code >= 400:
            logger.error(f"HTTP error {response.status_code}: {url}")
            raise FixtureApiError(
                f"Fixture API {response.status_code} for fixture {fixture_id}"
            )

        try:
            return response.json() or None
        except ValueError:
            raise FixtureApiError(f"Fixture API returned invalid JSON for fixture {fixture_id}")

    def _request_with_backoff(self, fixture_id):
        outcome = call_with_retry(
            lambda: self._request_fixture(fixture_id),
            self.transient_policy,
            retry_on=(
                requests.exceptions.ConnectionError,
                requests.exceptions.Timeout,
                FixtureServerError,
            ),
            sleep=self.sleep,
            description=f"Fixture {fixture_id} request",
        )
        return outcome.unwrap()

    def get_fixture(self, fixture_id):
        """
        Fetch one fixture.

        Returns a FixtureSnapshot, or None when the API does not know the
        fixture. Raises RateLimited when the single post-cooldown retry is
        throttled as well, and FixtureApiError for any other failure.
        """
        if not self.api_key:
            raise ConfigurationError("FOOTBALL_DATA_KEY not configured")

        outcome = call_with_retry(
            lambda: self._request_with_backoff(fixture_id),
            self.rate_limit_policy,
            retry_on=(RateLimited,),
            sleep=self.sleep,
            description=f"Fixture {fixture_id} lookup",
        )

        if not outcome.ok:
            error = outcome.error
            if isinstance(error, FixtureApiError):
                raise error
            if isinstance(error, requests.exceptions.RequestException):
                raise FixtureApiError(f"Fixture {fixture_id} request failed: {error}")
            raise error

        payload = outcome.value
        if not payload or not payload.get("status"):
            return None
        return FixtureSnapshot.from_payload(fixture_id, payload)


def build_fixture_client(config, **overrides):
    """Create a FixtureApiClient from a Flask config mapping"""
    options = dict(
        api_key=config.get("FOOTBALL_DATA_KEY"),
        base_url=config.get("FOOTBALL_DATA_BASE_URL", "https://api.football-data.org/v4"),
        call_delay=config.get("FIXTURE_API_CALL_DELAY", 6.5),
        rate_limit_cooldown=config.get("FIXTURE_API_RATE_LIMIT_COOLDOWN", 12.0),
        timeout=config.get("FIXTURE_API_TIMEOUT", 30),
        transient_policy=RetryPolicy(
            max_attempts=config.get("FIXTURE_API_MAX_RETRIES", 3),
            base_delay=config.get("FIXTURE_API_RETRY_BASE_DELAY", 2.0),
            backoff_factor=2.0,
            jitter=config.get("FIXTURE_API_RETRY_JITTER", 1.0),
        ),
    )
    options.update(overrides)
    return FixtureApiClient(**options)
