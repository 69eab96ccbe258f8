"""Translation of GitHub's rate limit headers into pause decisions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from .clock import SystemClock

LOGGER = logging.getLogger(__name__)

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"


@dataclass(slots=True, frozen=True)
class RateLimitInfo:
    """Snapshot of the rate limit headers of one response."""

    remaining: int
    reset_at: datetime | None


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    wait: bool
    seconds: float = 0.0


NO_WAIT = RateLimitDecision(wait=False)


class RateLimitGovernor:
    """Decides whether the caller must pause before its next GitHub call.

    A pause is requested once fewer than ``threshold`` calls remain. The pause
    lasts until the reset timestamp; when GitHub sends no reset timestamp the
    decision still asks for a wait, with a zero duration. Responses without a
    usable remaining-quota header never cause a pause.
    """

    def __init__(self, *, threshold: int = 5, clock: SystemClock | None = None) -> None:
        self._threshold = threshold
        self._clock = clock or SystemClock()
        self._latest: RateLimitInfo | None = None

    @property
    def latest(self) -> RateLimitInfo | None:
        """Rate limit state seen on the most recent response, if any."""

        return self._latest

    def should_wait(self, headers: Mapping[str, str]) -> RateLimitDecision:
        info = parse_rate_limit(headers)
        if info is None:
            return NO_WAIT
        self._latest = info
        if info.remaining >= self._threshold:
            return NO_WAIT
        if info.reset_at is None:
            LOGGER.warning("GitHub rate limit low (%s remaining) and no reset time given", info.remaining)
            return RateLimitDecision(wait=True, seconds=0.0)
        delay = (info.reset_at - self._clock.now()).total_seconds()
        if delay <= 0:
            return NO_WAIT
        return RateLimitDecision(wait=True, seconds=delay)


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitInfo | None:
    lowered = {key.lower(): value for key, value in headers.items()}
    try:
        remaining = int(lowered[REMAINING_HEADER])
    except (KeyError, TypeError, ValueError):
        return None
    reset_at = None
    raw_reset = lowered.get(RESET_HEADER)
    if raw_reset is not None:
        try:
            reset_at = datetime.fromtimestamp(int(raw_reset), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            reset_at = None
    return RateLimitInfo(remaining=remaining, reset_at=reset_at)


__all__ = ["RateLimitGovernor", "RateLimitDecision", "RateLimitInfo", "parse_rate_limit"]
