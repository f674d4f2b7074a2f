"""Retry, backoff and timeout settings for every workflow step."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently a step is retried.

    Attributes:
        attempts: Total number of tries, the first one included
        delay: Seconds to wait before the first retry
        backoff: "constant", "linear" or "exponential"
    """

    attempts: int = 5
    delay: float = 10.0
    backoff: str = "exponential"

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.backoff not in ("constant", "linear", "exponential"):
            raise ValueError(f"Unknown backoff: {self.backoff}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        if self.backoff == "constant":
            return self.delay
        if self.backoff == "linear":
            return self.delay * attempt
        return self.delay * (2 ** (attempt - 1))


@dataclass(frozen=True)
class StepConfig:
    """Retry policy plus a per-attempt timeout in seconds (None for no limit)."""

    retries: RetryPolicy = field(default_factory=RetryPolicy)
    timeout: Optional[float] = 600.0


# Used by steps that declare no policy of their own
DEFAULT_STEP = StepConfig()

# Discovery
FETCH_SOURCE_STEP = StepConfig(
    retries=RetryPolicy(attempts=3, delay=5.0, backoff="exponential"),
    timeout=60.0,
)

# Delivery
SUMMARIZE_STEP = StepConfig(
    retries=RetryPolicy(attempts=3, delay=5.0, backoff="exponential"),
    timeout=60.0,
)
COMPOSE_STEP = StepConfig(retries=RetryPolicy(attempts=1), timeout=None)
SEND_STEP = StepConfig(
    retries=RetryPolicy(attempts=5, delay=10.0, backoff="exponential"),
    timeout=120.0,
)
RECORD_STEP = StepConfig(
    retries=RetryPolicy(attempts=3, delay=3.0, backoff="exponential"),
    timeout=30.0,
)
