"""Tests for deadline-bounded polling."""

import asyncio

import pytest

from outpost_core.exceptions import DeadlineExceededError
from outpost_core.utils.polling import poll_until


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_returns_first_ready_value(self):
        """Returns as soon as the probe yields a value."""
        calls = 0

        async def probe():
            nonlocal calls
            calls += 1
            return "ready" if calls >= 3 else None

        result = await poll_until(probe, what="thing", timeout=1.0, interval=0.001)

        assert result == "ready"
        assert calls == 3

    @pytest.mark.asyncio
    async def test_probe_errors_count_as_not_ready(self):
        """A raising probe is retried."""
        calls = 0

        async def probe():
            nonlocal calls
            calls += 1
            if calls < 2:
                raise ConnectionRefusedError("refused")
            return True

        assert await poll_until(probe, what="port", timeout=1.0, interval=0.001) is True

    @pytest.mark.asyncio
    async def test_deadline_exceeded_keeps_last_error(self):
        """The last probe error is attached to the deadline failure."""

        async def probe():
            raise ConnectionRefusedError("refused")

        with pytest.raises(DeadlineExceededError) as exc_info:
            await poll_until(probe, what="SSH port", timeout=0.03, interval=0.005)

        assert exc_info.value.what == "SSH port"
        assert isinstance(exc_info.value.last_error, ConnectionRefusedError)
        assert "SSH port not ready within" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_hanging_probe_bounded_by_deadline(self):
        """A probe that never returns cannot push past the deadline."""

        async def probe():
            await asyncio.sleep(10)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(DeadlineExceededError):
            await poll_until(probe, what="hang", timeout=0.05, interval=0.01)

        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_never_ready_without_errors(self):
        """A probe that keeps returning None fails with no last error."""

        async def probe():
            return None

        with pytest.raises(DeadlineExceededError) as exc_info:
            await poll_until(probe, what="project", timeout=0.02, interval=0.005)

        assert exc_info.value.last_error is None
