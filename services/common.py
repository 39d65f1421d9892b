"""
Common utilities and shared functions.
Provider symbol defaults, request pacing, and best-effort fan-out.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Mapping, Optional

from models import AssetType

logger = logging.getLogger(__name__)


def default_yahoo_ticker(ticker: str, asset_type: AssetType) -> Optional[str]:
    """
    Derive the equity-provider symbol for an asset that has none configured.

    Args:
        ticker: Local ticker (e.g., "AAPL", "GGAL")
        asset_type: Instrument type

    Returns:
        Provider symbol, or None for types quoted elsewhere

    Examples:
        >>> default_yahoo_ticker("GGAL", AssetType.arg_stock)
        'GGAL.BA'
        >>> default_yahoo_ticker("AAPL", AssetType.stock)
        'AAPL'
        >>> default_yahoo_ticker("BTC", AssetType.crypto) is None
        True
    """
    if asset_type in (AssetType.cedear, AssetType.arg_stock):
        # Buenos Aires listings use the .BA suffix
        if ticker.endswith(".BA"):
            return ticker
        return f"{ticker}.BA"
    elif asset_type == AssetType.stock:
        return ticker
    return None


class RateLimiter:
    """
    Allows at most `max_calls` acquisitions per sliding `period` seconds.
    Clock and sleep are injectable so pacing can be tested without real timers.
    """

    def __init__(
        self,
        max_calls: int = 1,
        period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self.max_calls = max_calls
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.period:
            self._calls.popleft()

    def acquire(self) -> float:
        """
        Block until a call is allowed, then record it.

        Returns:
            Seconds spent waiting
        """
        now = self._clock()
        self._prune(now)

        waited = 0.0
        if len(self._calls) >= self.max_calls:
            waited = max(0.0, self.period - (now - self._calls[0]))
            if waited > 0:
                logger.debug(f"Rate limiter waiting {waited:.2f}s")
                self._sleep(waited)
            self._calls.popleft()
            now = self._clock()

        self._calls.append(now)
        return waited


@dataclass
class FanOutResult:
    """Outcome of running independent tasks: values by label and errors by label."""
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def run_best_effort(tasks: Mapping[str, Callable[[], Any]]) -> FanOutResult:
    """
    Run labelled tasks in order; a failing task never stops the others.

    Args:
        tasks: Label to zero-argument callable

    Returns:
        FanOutResult with each task's return value or the exception it raised
    """
    outcome = FanOutResult()
    for label, task in tasks.items():
        try:
            outcome.results[label] = task()
        except Exception as e:
            logger.error(f"{label} failed: {e}")
            outcome.errors[label] = e
    return outcome
