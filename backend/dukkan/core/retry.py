"""
Retry Configuration for optimistic read-modify-write cycles

Provides:
- Configurable retry logic with exponential backoff
- A retry helper for version-conflicted writes to the key-value store

Usage:
    from dukkan.core.retry import retry_async

    async def bump_once():
        product = await repos.products.get(product_id)
        ...
        await repos.products.put(updated, expected_version=product.version)

    await retry_async(bump_once, description="stock bump")
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar, Optional, Type, Tuple

from dukkan.core.config import settings
from dukkan.core.exceptions import VersionConflictError

logger = logging.getLogger(__name__)

# =============================================================================
# Module Exports
# =============================================================================
__all__ = [
    "RetryConfig",
    "retry_async",
    "optimistic_lock_retry_config",
]

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""

    max_attempts: int = 3
    base_delay: float = 0.01  # seconds
    max_delay: float = 1.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (VersionConflictError,)
    on_retry: Optional[Callable[[int, Exception], None]] = None

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number"""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay
        )
        if self.jitter:
            delay *= (0.5 + random.random())
        return delay


def optimistic_lock_retry_config() -> RetryConfig:
    """Retry policy for conditional writes on versioned documents"""
    return RetryConfig(
        max_attempts=settings.OPTIMISTIC_LOCK_MAX_ATTEMPTS,
        base_delay=settings.OPTIMISTIC_LOCK_BASE_DELAY,
    )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    description: str = "operation",
) -> T:
    """
    Run an async operation, re-running it on retryable exceptions.

    The operation must be a fresh read-modify-write on every call; it is
    invoked again from scratch after each conflict.
    """
    config = config or optimistic_lock_retry_config()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await operation()
        except config.retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.error(
                    f"All {config.max_attempts} attempts failed for {description}: {e}"
                )
                raise

            delay = config.get_delay(attempt)
            logger.warning(
                f"Attempt {attempt}/{config.max_attempts} failed for {description}: {e}. "
                f"Retrying in {delay:.3f}s"
            )

            if config.on_retry:
                config.on_retry(attempt, e)

            await asyncio.sleep(delay)

    raise RuntimeError(f"retry loop for {description} exited without a result")
