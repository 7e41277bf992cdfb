"""Bounded retries with exponential backoff around a single fetch."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .exceptions import MegaError
from .output import OutputFormatter
from .progress import ProgressReporter
from .utils import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently a transfer is retried."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_RETRY_DELAY
    backoff_multiplier: int = DEFAULT_BACKOFF_MULTIPLIER

    def delay_for(self, attempt_index: int) -> float:
        """Calculate the delay slept after a failed attempt.

        Args:
            attempt_index: Index of the failed attempt (0-based)

        Returns:
            Delay in seconds (2, 4, 8, 16 with the default policy)
        """
        return self.initial_delay * (self.backoff_multiplier**attempt_index)


DEFAULT_RETRY_POLICY = RetryPolicy()


class RetryingTransfer:
    """Runs a blocking fetch until it succeeds or fails for good."""

    def __init__(
        self,
        out: OutputFormatter,
        reporter: Optional[ProgressReporter] = None,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the retrying transfer.

        Args:
            out: Output formatter for error and attempt messages
            reporter: Progress reporter whose line is cleared between attempts
            policy: Retry policy
            sleep: Blocking sleep function
        """
        self.out = out
        self.reporter = reporter
        self.policy = policy
        self.sleep = sleep

    @property
    def show_progress(self) -> bool:
        return self.reporter is not None and self.reporter.show_progress

    def attempt(self, fetch_once: Callable[[], T], description: str) -> T:
        """Call ``fetch_once`` with retries.

        Args:
            fetch_once: Performs one complete fetch, raising ``MegaError``
                on failure
            description: What is being fetched, used in error messages

        Returns:
            Whatever ``fetch_once`` returned on the successful attempt

        Raises:
            MegaError: The first fatal error, or the last transient error
                once the attempt budget is spent
        """
        for attempt_index in range(self.policy.max_attempts):
            try:
                return fetch_once()
            except MegaError as e:
                if self.reporter is not None:
                    self.reporter.clear()

                if not e.is_retryable:
                    self.out.error(f"Download failed for {description}: {e}")
                    logger.debug(
                        f"Not retrying {description}: {e.kind.value} error"
                    )
                    raise

                if attempt_index + 1 >= self.policy.max_attempts:
                    self.out.error(f"Download failed for {description}: {e}")
                    logger.debug(
                        f"Giving up on {description} after "
                        f"{self.policy.max_attempts} attempts"
                    )
                    raise

                logger.warning(
                    f"Attempt #{attempt_index + 1} for {description} failed: {e}"
                )
                delay = self.policy.delay_for(attempt_index)
                if self.show_progress:
                    self.out.info(
                        f"Attempt #{attempt_index + 1} failed, "
                        f"trying again in {delay:g} seconds..."
                    )
                self.sleep(delay)

        # max_attempts < 1
        raise MegaError(f"No download attempts allowed for {description}")
