"""Unit tests for the bounded, jittered retry controller."""

from __future__ import annotations

import pytest

from src.infra.retry import _FixedWithFractionalJitter, bounded_retry


class RetryableError(Exception):
    """Error that should trigger retry."""


class NonRetryableError(Exception):
    """Error that should not trigger retry."""


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bounded_retry_retries_on_matching_exception() -> None:
    """Test that the controller retries matching exceptions until success."""
    call_count = [0]

    async for attempt in bounded_retry(max_attempts=3, wait_seconds=0, retry_on=RetryableError):
        with attempt:
            call_count[0] += 1
            if call_count[0] < 3:
                raise RetryableError("Temporary failure")

    assert call_count[0] == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bounded_retry_does_not_retry_on_non_matching_exception() -> None:
    """Test that non-matching exceptions escape on the first attempt."""
    call_count = [0]

    with pytest.raises(NonRetryableError):
        async for attempt in bounded_retry(
            max_attempts=3, wait_seconds=0, retry_on=RetryableError
        ):
            with attempt:
                call_count[0] += 1
                raise NonRetryableError("Permanent failure")

    assert call_count[0] == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bounded_retry_reraises_last_error_after_max_attempts() -> None:
    """Test that the original exception, not a RetryError, surfaces at the limit."""
    call_count = [0]

    with pytest.raises(RetryableError, match="attempt 2"):
        async for attempt in bounded_retry(
            max_attempts=2, wait_seconds=0, retry_on=RetryableError
        ):
            with attempt:
                call_count[0] += 1
                raise RetryableError(f"attempt {call_count[0]}")

    assert call_count[0] == 2


@pytest.mark.unit
def test_bounded_retry_wait_applies_jitter() -> None:
    """Test that wait times stay within the jitter band around the base wait."""
    controller = bounded_retry(wait_seconds=0.1, jitter_range=(-0.1, 0.1))

    assert isinstance(controller.wait, _FixedWithFractionalJitter)
    for _ in range(50):
        assert 0.09 <= controller.wait(None) <= 0.11


@pytest.mark.unit
def test_wait_is_clamped_to_bounds() -> None:
    assert _FixedWithFractionalJitter(5.0, 1.0, (0.0, 0.0))(None) == 1.0
    assert _FixedWithFractionalJitter(0.1, 1.0, (-2.0, -2.0))(None) == 0.0
