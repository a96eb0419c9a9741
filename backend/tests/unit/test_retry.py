"""
Unit Tests for the retry helpers
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from dukkan.core.exceptions import StoreError, VersionConflictError
from dukkan.core.retry import RetryConfig, retry_async

NO_DELAY = RetryConfig(max_attempts=3, base_delay=0, jitter=False)

pytestmark = pytest.mark.unit


class TestRetryAsync:

    @pytest.mark.asyncio
    async def test_retries_version_conflicts(self):
        operation = AsyncMock(side_effect=[VersionConflictError("k", 1, 2), "done"])
        on_retry = MagicMock()
        config = RetryConfig(max_attempts=3, base_delay=0, jitter=False, on_retry=on_retry)

        assert await retry_async(operation, config) == "done"
        assert operation.await_count == 2
        on_retry.assert_called_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        operation = AsyncMock(side_effect=VersionConflictError("k", 1, 2))

        with pytest.raises(VersionConflictError):
            await retry_async(operation, NO_DELAY)

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        operation = AsyncMock(side_effect=StoreError("down"))

        with pytest.raises(StoreError):
            await retry_async(operation, NO_DELAY)

        assert operation.await_count == 1


class TestRetryConfig:

    def test_delay_grows_and_is_capped(self):
        config = RetryConfig(base_delay=0.1, max_delay=0.3, jitter=False)

        assert config.get_delay(1) == pytest.approx(0.1)
        assert config.get_delay(2) == pytest.approx(0.2)
        assert config.get_delay(5) == pytest.approx(0.3)
